"""Transaction repository: persistence for classified transactions."""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from autoledger.models.transaction import Transaction


class TransactionRepository:
    """Async SQLAlchemy access to the transactions table.

    Every save commits, so groups saved before a later failure stay durable.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_all(self, transactions: list[Transaction]) -> list[Transaction]:
        """Persist a group of transactions in one commit."""
        self.db.add_all(transactions)
        await self._commit()
        return transactions

    async def assign(self, transaction: Transaction, tenant_id: str, category_id: str) -> Transaction:
        """Record a tenant and category on a stored transaction and commit.

        The update runs in a savepoint: if it fails, only this row is rolled
        back and expired, so the other rows loaded in the session stay usable.
        """
        async with self.db.begin_nested():
            transaction.tenant_id = tenant_id
            transaction.category_id = category_id
            transaction.processed_at = datetime.now(timezone.utc)
        await self._commit()
        return transaction

    async def find_unassigned(self, limit: int) -> list[Transaction]:
        """Unclassified transactions (no tenant), newest first."""
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.tenant_id.is_(None))
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_by_tenant(self, tenant_id: str, skip: int = 0, limit: int = 50) -> list[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.tenant_id == tenant_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_unassigned_page(self, skip: int = 0, limit: int = 50) -> list[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.tenant_id.is_(None))
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(Transaction.id)))
        return result.scalar_one()

    async def count_by_tenant(self, tenant_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(Transaction.tenant_id == tenant_id)
        )
        return result.scalar_one()

    async def count_unassigned(self) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(Transaction.tenant_id.is_(None))
        )
        return result.scalar_one()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
