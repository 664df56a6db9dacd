"""Classification rule and rule keyword models."""

from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoledger.models.base import Base, TimestampMixin


class ClassificationRule(Base, TimestampMixin):
    """A rule that classifies transactions of one tenant into a category.

    A transaction matches when its type, its amount (inclusive bounds) and
    its description (include/exclude keywords) all pass. Among matching
    rules the lowest priority value wins.
    """

    __tablename__ = "classification_rules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), nullable=False)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    transaction_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="ALL", server_default="ALL"
    )  # DEPOSIT, WITHDRAWAL, ALL
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )  # lower = wins
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    # Relationships
    tenant = relationship("Tenant", back_populates="classification_rules")
    category = relationship("Category", back_populates="classification_rules")
    keywords = relationship(
        "RuleKeyword",
        back_populates="rule",
        order_by="RuleKeyword.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_classification_rules_tenant_active", "tenant_id", "is_active"),
    )


class RuleKeyword(Base, TimestampMixin):
    __tablename__ = "rule_keywords"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("classification_rules.id"), nullable=False, index=True)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    keyword_type: Mapped[str] = mapped_column(String(10), nullable=False)  # INCLUDE, EXCLUDE

    rule = relationship("ClassificationRule", back_populates="keywords")
