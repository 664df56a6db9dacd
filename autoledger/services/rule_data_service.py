"""Rules file ingestion.

Parses and validates a rules document, replaces the stored rules of every
company it lists, then invalidates the engine's cached rule sets.
"""

import json

import pydantic
import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from autoledger.core.exceptions import PersistenceError, RulesFileError
from autoledger.models.category import Category
from autoledger.models.classification_rule import ClassificationRule, RuleKeyword
from autoledger.models.tenant import Tenant
from autoledger.schemas.rules_file import CategoryRule, CompanyRules, RulesFile
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.rule_types import ALL_TENANTS, KeywordType

logger = structlog.get_logger()


class RuleDataService:
    def __init__(self, db: AsyncSession, engine: RuleEngine | None = None):
        self.db = db
        self.engine = engine

    async def process_rules_file(self, content: str | bytes) -> dict[str, int]:
        """Parse, validate and store a rules file.

        Returns the number of rules stored per tenant.
        """
        rules_file = self.parse_rules_file(content)
        counts = await self.save_rules(rules_file)
        logger.info("rules_file_processed", tenants=len(counts), rules=sum(counts.values()))
        return counts

    # ── Parsing ────────────────────────────────────────

    @staticmethod
    def parse_rules_file(content: str | bytes) -> RulesFile:
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RulesFileError("Invalid JSON format in rules file") from e

        try:
            return RulesFile.model_validate(data)
        except pydantic.ValidationError as e:
            raise RulesFileError(f"Validation failed: {_format_errors(e)}") from e

    # ── Persistence ────────────────────────────────────

    async def save_rules(self, rules_file: RulesFile) -> dict[str, int]:
        """Replace the rules of every company in the file, all in one transaction."""
        counts: dict[str, int] = {}
        try:
            for company in rules_file.companies:
                counts[company.company_id] = await self._save_company_rules(company)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("rules_save_failed", error=str(e))
            raise PersistenceError("Failed to save rules to database") from e

        self._invalidate(counts.keys())
        return counts

    async def _save_company_rules(self, company: CompanyRules) -> int:
        tenant = await self.db.get(Tenant, company.company_id)
        if tenant is None:
            self.db.add(Tenant(id=company.company_id, name=company.company_name))
            await self.db.flush()

        await self._delete_existing_rules(company.company_id)

        for category in company.categories:
            await self._save_category_rule(company.company_id, category)

        logger.debug("company_rules_saved", tenant_id=company.company_id, rules=len(company.categories))
        return len(company.categories)

    async def _delete_existing_rules(self, tenant_id: str) -> None:
        # Categories are kept: stored transactions still reference them
        tenant_rules = select(ClassificationRule.id).where(ClassificationRule.tenant_id == tenant_id)
        await self.db.execute(delete(RuleKeyword).where(RuleKeyword.rule_id.in_(tenant_rules)))
        await self.db.execute(delete(ClassificationRule).where(ClassificationRule.tenant_id == tenant_id))

    async def _save_category_rule(self, tenant_id: str, data: CategoryRule) -> None:
        await self.db.merge(Category(id=data.category_id, tenant_id=tenant_id, name=data.category_name))

        keywords = [
            RuleKeyword(keyword=k, keyword_type=KeywordType.INCLUDE.value) for k in data.keywords
        ]
        keywords += [
            RuleKeyword(keyword=k, keyword_type=KeywordType.EXCLUDE.value)
            for k in data.exclude_keywords or []
        ]

        amount_range = data.amount_range
        rule = ClassificationRule(
            tenant_id=tenant_id,
            category_id=data.category_id,
            min_amount=amount_range.min if amount_range else None,
            max_amount=amount_range.max if amount_range else None,
            transaction_type=data.transaction_type,
            priority=data.priority,
            is_active=True,
            keywords=keywords,
        )
        self.db.add(rule)
        await self.db.flush()

    def _invalidate(self, tenant_ids) -> None:
        if self.engine is None:
            return
        for tenant_id in tenant_ids:
            self.engine.invalidate_rules_cache(tenant_id)
        self.engine.invalidate_rules_cache(ALL_TENANTS)


def _format_errors(error: pydantic.ValidationError) -> str:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}" if location else err["msg"])
    return ", ".join(messages)
