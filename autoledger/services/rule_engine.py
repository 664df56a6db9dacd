"""Classification rule engine.

Classifies plaintext transactions against a tenant's active rules, one at a
time or as a batch that loads the rule set once.
"""

import time

import structlog

from autoledger.services import rule_matcher
from autoledger.services.rule_cache import RuleCache
from autoledger.services.rule_types import (
    REASON_ERROR,
    REASON_NO_ACTIVE_RULES,
    REASON_NO_ACTIVE_RULES_ANY,
    REASON_NO_MATCH,
    BatchRun,
    ClassificationContext,
    ClassificationResult,
    Rule,
    TransactionData,
    summarize,
)

logger = structlog.get_logger()

DEFAULT_PROGRESS_INTERVAL = 1000


class RuleEngine:
    def __init__(self, cache: RuleCache, progress_interval: int = DEFAULT_PROGRESS_INTERVAL):
        self.cache = cache
        self.progress_interval = progress_interval

    # ── Single transaction ─────────────────────────────

    async def classify(self, context: ClassificationContext) -> ClassificationResult:
        """Classify one transaction. Never raises: failures come back as a result."""
        try:
            rules = await self._load_rules(context.tenant_id, context.acting_as_privileged)
            if not rules:
                return ClassificationResult.unclassified(
                    _no_rules_reason(context.acting_as_privileged)
                )

            result = self._classify_with(context.transaction_data, rules)
            if result.is_classified:
                logger.debug(
                    "transaction_classified",
                    category_id=result.category_id,
                    category_name=result.category_name,
                    rule_id=result.rule_id,
                    tenant_id=result.tenant_id,
                )
            return result
        except Exception:
            logger.exception("classification_error", tenant_id=context.tenant_id)
            return ClassificationResult.unclassified(REASON_ERROR)

    # ── Batch ─────────────────────────────────────────

    async def classify_batch(
        self,
        tenant_id: str,
        transactions: list[TransactionData],
        acting_as_privileged: bool = False,
    ) -> list[ClassificationResult]:
        """One verdict per transaction, in input order."""
        run = await self.run_batch(tenant_id, transactions, acting_as_privileged)
        return run.results

    async def run_batch(
        self,
        tenant_id: str,
        transactions: list[TransactionData],
        acting_as_privileged: bool = False,
    ) -> BatchRun:
        """Classify a batch and return the verdicts with summary statistics.

        The rule set is loaded once and reused for every transaction. An
        exception on one transaction becomes an error verdict for that
        transaction only.
        """
        if not transactions:
            return BatchRun(results=[], summary=summarize([]))

        start_time = time.perf_counter()
        total = len(transactions)
        logger.info("batch_classification_started", tenant_id=tenant_id, transactions=total)

        try:
            rules = await self._load_rules(tenant_id, acting_as_privileged)
        except Exception:
            logger.exception("batch_rule_loading_failed", tenant_id=tenant_id)
            results = [ClassificationResult.unclassified(REASON_ERROR) for _ in transactions]
            return BatchRun(results=results, summary=summarize(results, _elapsed_ms(start_time)))

        if not rules:
            logger.warning("no_active_rules", tenant_id=tenant_id, privileged=acting_as_privileged)
            reason = _no_rules_reason(acting_as_privileged)
            results = [ClassificationResult.unclassified(reason) for _ in transactions]
            return BatchRun(results=results, summary=summarize(results, _elapsed_ms(start_time)))

        results: list[ClassificationResult] = []
        classified_count = 0
        for i, txn in enumerate(transactions, start=1):
            try:
                result = self._classify_with(txn, rules)
            except Exception:
                logger.exception("batch_transaction_error", tenant_id=tenant_id, index=i)
                result = ClassificationResult.unclassified(REASON_ERROR)
            if result.is_classified:
                classified_count += 1
            results.append(result)

            if self.progress_interval and i % self.progress_interval == 0:
                logger.info("batch_classification_progress", processed=i, total=total)

        summary = summarize(results, _elapsed_ms(start_time))
        logger.info(
            "batch_classification_completed",
            tenant_id=tenant_id,
            processed=summary.total,
            classified=classified_count,
            unclassified=summary.total - classified_count,
            elapsed_ms=round(summary.elapsed_ms, 2),
            ms_per_transaction=round(summary.ms_per_transaction, 2),
        )
        return BatchRun(results=results, summary=summary)

    # ── Cache control ─────────────────────────────────

    def invalidate_rules_cache(self, tenant_id: str) -> None:
        self.cache.invalidate(tenant_id)

    def clear_all_cache(self) -> None:
        self.cache.clear_all()

    # ── Helpers ─────────────────────────────────────────

    async def _load_rules(self, tenant_id: str, acting_as_privileged: bool) -> list[Rule]:
        if acting_as_privileged:
            return await self.cache.get_all_rules()
        return await self.cache.get_rules(tenant_id)

    @staticmethod
    def _classify_with(txn: TransactionData, rules: list[Rule]) -> ClassificationResult:
        matched = rule_matcher.find_matching_rules(txn, rules)
        if not matched:
            return ClassificationResult.unclassified(REASON_NO_MATCH)

        selected = rule_matcher.select_best_rule(matched)
        return ClassificationResult.from_rule(selected, rule_matcher.matched_keywords(txn, selected))


def _no_rules_reason(acting_as_privileged: bool) -> str:
    return REASON_NO_ACTIVE_RULES_ANY if acting_as_privileged else REASON_NO_ACTIVE_RULES


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000
