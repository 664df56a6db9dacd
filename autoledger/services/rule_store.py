"""Rule store: where the rule cache gets its active rules from."""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from autoledger.models.classification_rule import ClassificationRule
from autoledger.services.rule_types import KeywordType, Rule, RuleKeyword, TransactionType


class RuleStore(Protocol):
    async def get_rules_by_tenant(self, tenant_id: str) -> list[Rule]: ...

    async def get_all_active_rules(self) -> list[Rule]: ...


class SqlRuleStore:
    """Loads active rules with their keywords and category name.

    Opens a short-lived session per fetch so it can be owned by the
    long-lived engine rather than by a request.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_rules_by_tenant(self, tenant_id: str) -> list[Rule]:
        return await self._load(ClassificationRule.tenant_id == tenant_id)

    async def get_all_active_rules(self) -> list[Rule]:
        return await self._load()

    async def _load(self, *clauses) -> list[Rule]:
        query = (
            select(ClassificationRule)
            .where(ClassificationRule.is_active.is_(True), *clauses)
            .options(
                selectinload(ClassificationRule.keywords),
                selectinload(ClassificationRule.category),
            )
            .order_by(ClassificationRule.priority.asc(), ClassificationRule.id.asc())
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [to_rule(row) for row in result.scalars().all()]


def to_rule(row: ClassificationRule) -> Rule:
    """Snapshot an ORM rule into the engine's immutable Rule."""
    return Rule(
        rule_id=row.id,
        tenant_id=row.tenant_id,
        category_id=row.category_id,
        category_name=row.category.name if row.category else None,
        min_amount=row.min_amount,
        max_amount=row.max_amount,
        transaction_type=TransactionType(row.transaction_type),
        priority=row.priority,
        is_active=row.is_active,
        keywords=tuple(
            RuleKeyword(keyword=k.keyword, keyword_type=KeywordType(k.keyword_type))
            for k in row.keywords
        ),
    )
