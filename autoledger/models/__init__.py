"""SQLAlchemy models."""

from autoledger.models.base import Base
from autoledger.models.category import Category
from autoledger.models.classification_rule import ClassificationRule, RuleKeyword
from autoledger.models.tenant import Tenant
from autoledger.models.transaction import Transaction

__all__ = [
    "Base",
    "Tenant",
    "Category",
    "ClassificationRule",
    "RuleKeyword",
    "Transaction",
]
