"""Classification rules API routes."""

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from autoledger.api.deps import get_current_caller, get_db, get_rule_engine
from autoledger.config import settings
from autoledger.core.exceptions import ForbiddenError, ValidationError
from autoledger.core.security import Caller
from autoledger.schemas.classification import RulesUploadResponse
from autoledger.services.rule_data_service import RuleDataService
from autoledger.services.rule_engine import RuleEngine

logger = structlog.get_logger()

router = APIRouter()


@router.post("/upload", response_model=RulesUploadResponse)
async def upload_rules(
    file: UploadFile = File(...),
    current_caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    engine: RuleEngine = Depends(get_rule_engine),
):
    """Upload a rules.json file. Replaces the rules of every company it lists."""
    filename = file.filename or "rules.json"
    if not filename.lower().endswith(".json"):
        raise ValidationError("Rules file must be a .json file")

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_size_mb} MB",
        )

    service = RuleDataService(db, engine)
    rules_file = service.parse_rules_file(content)

    # Business users may only upload rules for their own company
    if not current_caller.is_admin:
        for company in rules_file.companies:
            if company.company_id != current_caller.company_id:
                raise ForbiddenError("Cannot upload rules for another company")

    counts = await service.save_rules(rules_file)
    logger.info("rules_uploaded", user_id=current_caller.user_id, filename=filename, rules_by_tenant=counts)
    return RulesUploadResponse(rules_by_tenant=counts)


@router.delete("/cache", status_code=204)
async def clear_rules_cache(
    current_caller: Caller = Depends(get_current_caller),
    engine: RuleEngine = Depends(get_rule_engine),
):
    """Drop every cached rule set (administrators only)."""
    if not current_caller.is_admin:
        raise ForbiddenError()
    engine.clear_all_cache()

