"""Transaction model."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoledger.models.base import Base, TimestampMixin


class Transaction(Base, TimestampMixin):
    """A bank transaction after classification.

    ``tenant_id`` and ``category_id`` are both set when a rule matched and
    both NULL otherwise; a NULL tenant is what marks a transaction as
    unclassified.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    category_id: Mapped[str | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    withdrawal_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    balance_after: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    category = relationship("Category", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_tenant_date", "tenant_id", "transaction_date"),
    )
