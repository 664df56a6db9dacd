"""Classify parsed transactions and persist them.

Transactions are classified and saved in fixed-size groups. Each group is
committed before the next one is classified, so a failure only loses the
group being saved.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

import structlog

from autoledger.core.exceptions import PersistenceError
from autoledger.models.transaction import Transaction
from autoledger.repositories.transaction import TransactionRepository
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.rule_types import ClassificationResult, TransactionData

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 100


@dataclass
class ParsedTransaction:
    """A bank statement row as handed over by the parser, already decrypted."""

    transaction_date: date
    description: str
    deposit_amount: Decimal = Decimal("0")
    withdrawal_amount: Decimal = Decimal("0")
    balance_after: Decimal | None = None
    branch: str | None = None


@dataclass
class BatchResult:
    total_processed: int = 0
    classified_count: int = 0
    unclassified_count: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "BatchResult") -> None:
        self.total_processed += other.total_processed
        self.classified_count += other.classified_count
        self.unclassified_count += other.unclassified_count
        self.errors.extend(other.errors)


@dataclass
class ClassificationStats:
    total_transactions: int
    classified_count: int
    unclassified_count: int
    classification_rate: float  # percent, 2 decimals


@dataclass
class TransactionPage:
    items: list[Transaction]
    total: int
    page: int
    total_pages: int


class TransactionClassificationService:
    def __init__(
        self,
        repository: TransactionRepository,
        engine: RuleEngine,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.repository = repository
        self.engine = engine
        self.batch_size = batch_size

    # ── Classify & save ─────────────────────────────────

    async def classify_and_save(
        self,
        tenant_id: str,
        transactions: list[ParsedTransaction],
        acting_as_privileged: bool = False,
    ) -> BatchResult:
        """Classify transactions group by group and save each group.

        Raises PersistenceError if a group cannot be saved; groups saved
        before it stay committed.
        """
        logger.info(
            "classification_started",
            tenant_id=tenant_id,
            transactions=len(transactions),
            privileged=acting_as_privileged,
        )
        result = BatchResult()

        for start in range(0, len(transactions), self.batch_size):
            group = transactions[start:start + self.batch_size]
            try:
                group_result = await self._process_group(tenant_id, group, start, acting_as_privileged)
            except PersistenceError as e:
                e.saved_count = result.total_processed
                raise
            result.merge(group_result)

        logger.info(
            "classification_completed",
            tenant_id=tenant_id,
            total=result.total_processed,
            classified=result.classified_count,
            unclassified=result.unclassified_count,
            errors=len(result.errors),
        )
        return result

    async def _process_group(
        self,
        tenant_id: str,
        group: list[ParsedTransaction],
        offset: int,
        acting_as_privileged: bool,
    ) -> BatchResult:
        result = BatchResult()

        prepared: list[tuple[int, ParsedTransaction, TransactionData]] = []
        for index, parsed in enumerate(group, start=offset + 1):
            try:
                prepared.append((index, parsed, to_transaction_data(parsed)))
            except Exception as e:
                result.errors.append(f"Transaction {index}: classification error: {e}")
                logger.warning("transaction_classification_error", index=index, error=str(e))

        run = await self.engine.run_batch(
            tenant_id, [data for _, _, data in prepared], acting_as_privileged
        )

        entities: list[Transaction] = []
        for (index, parsed, _), verdict in zip(prepared, run.results):
            try:
                entity = self._build_entity(parsed, verdict, tenant_id, acting_as_privileged)
            except Exception as e:
                result.errors.append(f"Transaction {index}: classification error: {e}")
                logger.warning("transaction_classification_error", index=index, error=str(e))
                continue

            if entity.category_id is not None:
                result.classified_count += 1
            else:
                result.unclassified_count += 1
            entities.append(entity)
            result.total_processed += 1

        if entities:
            try:
                await self.repository.save_all(entities)
            except Exception as e:
                logger.error("transactions_save_failed", tenant_id=tenant_id, count=len(entities), error=str(e))
                raise PersistenceError(f"Failed to save {len(entities)} transactions: {e}") from e
            logger.info("transactions_saved", tenant_id=tenant_id, count=len(entities))

        return result

    @staticmethod
    def _build_entity(
        parsed: ParsedTransaction,
        verdict: ClassificationResult,
        tenant_id: str,
        acting_as_privileged: bool,
    ) -> Transaction:
        entity = Transaction(
            transaction_date=parsed.transaction_date,
            description=parsed.description,
            deposit_amount=parsed.deposit_amount,
            withdrawal_amount=parsed.withdrawal_amount,
            balance_after=parsed.balance_after,
            branch=parsed.branch,
            processed_at=datetime.now(timezone.utc),
        )
        if verdict.is_classified and verdict.category_id:
            # Admins record the tenant that owns the winning rule
            if acting_as_privileged and verdict.tenant_id:
                entity.tenant_id = verdict.tenant_id
            else:
                entity.tenant_id = tenant_id
            entity.category_id = verdict.category_id
        else:
            entity.tenant_id = None
            entity.category_id = None
        return entity

    # ── Reclassification ───────────────────────────────

    async def reclassify_unclassified(self, tenant_id: str, limit: int = 100) -> BatchResult:
        """Retry unassigned transactions against one tenant's rules."""
        result = BatchResult()

        unassigned = await self.repository.find_unassigned(limit)
        if not unassigned:
            logger.info("no_unclassified_transactions", tenant_id=tenant_id)
            return result

        logger.info("reclassification_started", tenant_id=tenant_id, transactions=len(unassigned))

        prepared: list[tuple[Transaction, int, TransactionData]] = []
        for txn in unassigned:
            # Ids are read up front: a failed save expires the instance
            txn_id = txn.id
            try:
                prepared.append((txn, txn_id, to_transaction_data(txn)))
            except Exception as e:
                result.errors.append(f"Transaction {txn_id} reclassification error: {e}")
                logger.warning("transaction_reclassification_error", transaction_id=txn_id, error=str(e))

        run = await self.engine.run_batch(tenant_id, [data for _, _, data in prepared])

        for (txn, txn_id, _), verdict in zip(prepared, run.results):
            try:
                if verdict.is_classified and verdict.category_id:
                    await self.repository.assign(txn, tenant_id, verdict.category_id)
                    result.classified_count += 1
                    logger.debug(
                        "transaction_reclassified",
                        transaction_id=txn_id,
                        category_id=verdict.category_id,
                    )
                else:
                    result.unclassified_count += 1
                result.total_processed += 1
            except Exception as e:
                # The row stays unassigned for the next pass
                result.errors.append(f"Transaction {txn_id} reclassification error: {e}")
                logger.warning("transaction_reclassification_error", transaction_id=txn_id, error=str(e))

        logger.info(
            "reclassification_completed",
            tenant_id=tenant_id,
            processed=result.total_processed,
            newly_classified=result.classified_count,
            still_unclassified=result.unclassified_count,
            errors=len(result.errors),
        )
        return result

    # ── Queries ────────────────────────────────────────

    async def get_transactions_by_tenant(self, tenant_id: str, page: int = 1, limit: int = 50) -> TransactionPage:
        """Classified transactions of a tenant, newest first."""
        items = await self.repository.find_by_tenant(tenant_id, skip=(page - 1) * limit, limit=limit)
        total = await self.repository.count_by_tenant(tenant_id)
        return TransactionPage(items=items, total=total, page=page, total_pages=math.ceil(total / limit))

    async def get_unclassified_transactions(self, page: int = 1, limit: int = 50) -> TransactionPage:
        items = await self.repository.find_unassigned_page(skip=(page - 1) * limit, limit=limit)
        total = await self.repository.count_unassigned()
        return TransactionPage(items=items, total=total, page=page, total_pages=math.ceil(total / limit))

    async def get_classification_stats(self, tenant_id: str | None = None) -> ClassificationStats:
        """Classification rate from persisted state.

        For a tenant, every stored row is classified (unclassified rows have
        no tenant). Without a tenant the figures cover the whole table.
        """
        if tenant_id:
            total = await self.repository.count_by_tenant(tenant_id)
            classified = total
            unclassified = 0
        else:
            total = await self.repository.count()
            unclassified = await self.repository.count_unassigned()
            classified = total - unclassified

        rate = classified / total * 100 if total > 0 else 0.0
        return ClassificationStats(
            total_transactions=total,
            classified_count=classified,
            unclassified_count=unclassified,
            classification_rate=round(rate, 2),
        )


def to_transaction_data(txn: ParsedTransaction | Transaction) -> TransactionData:
    return TransactionData(
        description=txn.description or "",
        deposit_amount=Decimal(str(txn.deposit_amount or 0)),
        withdrawal_amount=Decimal(str(txn.withdrawal_amount or 0)),
        transaction_date=txn.transaction_date,
        branch=txn.branch,
    )
