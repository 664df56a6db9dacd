"""Shared API dependencies."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from autoledger.config import settings
from autoledger.core.database import get_db
from autoledger.core.security import get_current_caller
from autoledger.repositories.transaction import TransactionRepository
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.transaction_classification_service import TransactionClassificationService


def get_rule_engine(request: Request) -> RuleEngine:
    """The process-wide engine created at startup (holds the rule cache)."""
    return request.app.state.rule_engine


def get_transaction_repository(db: AsyncSession = Depends(get_db)) -> TransactionRepository:
    return TransactionRepository(db)


def get_classification_service(
    repository: TransactionRepository = Depends(get_transaction_repository),
    engine: RuleEngine = Depends(get_rule_engine),
) -> TransactionClassificationService:
    return TransactionClassificationService(
        repository, engine, batch_size=settings.classification_batch_size
    )


__all__ = [
    "get_db",
    "get_current_caller",
    "get_rule_engine",
    "get_transaction_repository",
    "get_classification_service",
]
