"""Category model."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoledger.models.base import Base, TimestampMixin


class Category(Base, TimestampMixin):
    """Accounting category a rule classifies into. Ids come from the rules file."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    tenant = relationship("Tenant", back_populates="categories")
    classification_rules = relationship("ClassificationRule", back_populates="category")
    transactions = relationship("Transaction", back_populates="category")
