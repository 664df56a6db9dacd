"""Tenant (company) model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoledger.models.base import Base, TimestampMixin


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    categories = relationship("Category", back_populates="tenant", lazy="select")
    classification_rules = relationship("ClassificationRule", back_populates="tenant", lazy="select")
