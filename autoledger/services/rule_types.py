"""Value types shared by the rule engine.

The engine never works on ORM rows: the rule store hands it frozen
snapshots, and callers hand it plaintext ``TransactionData``.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

# Tenant id used when an administrator processes transactions against
# the rules of every company.
ALL_TENANTS = "ADMIN_ALL_COMPANIES"

# Fixed set of verdict reasons
REASON_CLASSIFIED = "Successfully classified"
REASON_NO_ACTIVE_RULES = "No active rules found for company"
REASON_NO_ACTIVE_RULES_ANY = "No active rules found for any company"
REASON_NO_MATCH = "No matching rules found"
REASON_ERROR = "Classification error occurred"


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    ALL = "ALL"


class KeywordType(str, enum.Enum):
    INCLUDE = "INCLUDE"
    EXCLUDE = "EXCLUDE"


@dataclass(frozen=True)
class RuleKeyword:
    keyword: str
    keyword_type: KeywordType = KeywordType.INCLUDE


@dataclass(frozen=True)
class Rule:
    """Immutable snapshot of an active classification rule."""

    rule_id: int
    tenant_id: str
    category_id: str
    category_name: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    transaction_type: TransactionType = TransactionType.ALL
    priority: int = 1  # lower = wins
    is_active: bool = True
    keywords: tuple[RuleKeyword, ...] = ()

    @property
    def include_keywords(self) -> list[RuleKeyword]:
        return [k for k in self.keywords if k.keyword_type == KeywordType.INCLUDE]

    @property
    def exclude_keywords(self) -> list[RuleKeyword]:
        return [k for k in self.keywords if k.keyword_type == KeywordType.EXCLUDE]


@dataclass
class TransactionData:
    """Plaintext transaction as seen by the classifier."""

    description: str
    deposit_amount: Decimal = Decimal("0")
    withdrawal_amount: Decimal = Decimal("0")
    transaction_date: date | None = None
    branch: str | None = None

    @property
    def amount(self) -> Decimal:
        """Magnitude of the transaction, whichever side it is on."""
        return max(self.deposit_amount, self.withdrawal_amount)


@dataclass
class ClassificationContext:
    tenant_id: str
    transaction_data: TransactionData
    acting_as_privileged: bool = False


@dataclass
class ClassificationResult:
    """Verdict for one transaction. Failures carry a ``reason``, never raise."""

    is_classified: bool
    reason: str
    category_id: str | None = None
    category_name: str | None = None
    rule_id: int | None = None
    matched_keywords: list[str] = field(default_factory=list)
    tenant_id: str | None = None  # owner of the winning rule

    @classmethod
    def unclassified(cls, reason: str) -> ClassificationResult:
        return cls(is_classified=False, reason=reason)

    @classmethod
    def from_rule(cls, rule: Rule, matched_keywords: list[str]) -> ClassificationResult:
        return cls(
            is_classified=True,
            reason=REASON_CLASSIFIED,
            category_id=rule.category_id,
            category_name=rule.category_name,
            rule_id=rule.rule_id,
            matched_keywords=matched_keywords,
            tenant_id=rule.tenant_id,
        )


@dataclass
class BatchSummary:
    total: int = 0
    classified: int = 0
    unclassified: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ms_per_transaction(self) -> float:
        return self.elapsed_ms / self.total if self.total else 0.0


@dataclass
class BatchRun:
    results: list[ClassificationResult]
    summary: BatchSummary


def summarize(results: list[ClassificationResult], elapsed_ms: float = 0.0) -> BatchSummary:
    """Aggregate verdicts into totals and per-category counts."""
    classified = [r for r in results if r.is_classified]
    category_counts = Counter(r.category_id for r in classified if r.category_id)
    return BatchSummary(
        total=len(results),
        classified=len(classified),
        unclassified=len(results) - len(classified),
        category_counts=dict(category_counts),
        elapsed_ms=elapsed_ms,
    )
