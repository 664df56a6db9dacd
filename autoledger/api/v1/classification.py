"""Classification API routes.

preview classifies without saving; process classifies and saves in groups;
reclassify retries unassigned transactions against one company's rules.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Query

from autoledger.api.deps import get_classification_service, get_current_caller, get_rule_engine
from autoledger.config import settings
from autoledger.core.exceptions import BadRequestError
from autoledger.core.security import Caller
from autoledger.schemas.classification import (
    BatchResultResponse,
    BatchSummaryResponse,
    ClassificationResultResponse,
    ClassificationStatsResponse,
    ClassifyRequest,
    PreviewResponse,
    TransactionIn,
)
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.transaction_classification_service import (
    ParsedTransaction,
    TransactionClassificationService,
    to_transaction_data,
)

logger = structlog.get_logger()

router = APIRouter()


def _to_parsed(txn: TransactionIn) -> ParsedTransaction:
    return ParsedTransaction(
        transaction_date=txn.transaction_date,
        description=txn.description,
        deposit_amount=txn.deposit_amount,
        withdrawal_amount=txn.withdrawal_amount,
        balance_after=txn.balance_after,
        branch=txn.branch,
    )


@router.post("/preview", response_model=PreviewResponse)
async def preview_classification(
    data: ClassifyRequest,
    current_caller: Caller = Depends(get_current_caller),
    engine: RuleEngine = Depends(get_rule_engine),
):
    """Classify transactions without saving them."""
    transactions = [to_transaction_data(_to_parsed(t)) for t in data.transactions]
    run = await engine.run_batch(
        current_caller.processing_tenant(),
        transactions,
        acting_as_privileged=current_caller.is_admin,
    )
    return PreviewResponse(
        results=[ClassificationResultResponse.model_validate(r) for r in run.results],
        summary=BatchSummaryResponse.model_validate(run.summary),
    )


@router.post("/process", response_model=BatchResultResponse)
async def process_transactions(
    data: ClassifyRequest,
    current_caller: Caller = Depends(get_current_caller),
    service: TransactionClassificationService = Depends(get_classification_service),
):
    """Classify transactions and save them. Unmatched ones are saved unassigned."""
    tenant_id = current_caller.processing_tenant()
    start_time = time.perf_counter()

    result = await service.classify_and_save(
        tenant_id,
        [_to_parsed(t) for t in data.transactions],
        acting_as_privileged=current_caller.is_admin,
    )

    logger.info(
        "transactions_processed",
        user_id=current_caller.user_id,
        tenant_id=tenant_id,
        total=result.total_processed,
        classified=result.classified_count,
        unclassified=result.unclassified_count,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
    return BatchResultResponse.model_validate(result)


@router.post("/reclassify", response_model=BatchResultResponse)
async def reclassify_transactions(
    company_id: str | None = Query(None, description="Target company (admins only; defaults to own)"),
    limit: int = Query(settings.reclassify_default_limit, ge=1, le=1000),
    current_caller: Caller = Depends(get_current_caller),
    service: TransactionClassificationService = Depends(get_classification_service),
):
    """Retry unclassified transactions against one company's rules."""
    tenant_id = company_id or current_caller.company_id
    if not tenant_id:
        raise BadRequestError("company_id is required")
    current_caller.check_tenant_access(tenant_id)
    result = await service.reclassify_unclassified(tenant_id, limit=limit)
    return BatchResultResponse.model_validate(result)


@router.get("/stats", response_model=ClassificationStatsResponse)
async def get_classification_stats(
    company_id: str | None = Query(None, description="Company (admins may omit for global stats)"),
    current_caller: Caller = Depends(get_current_caller),
    service: TransactionClassificationService = Depends(get_classification_service),
):
    """Classification rate for a company, or overall for administrators."""
    tenant_id = company_id or current_caller.company_id
    if tenant_id:
        current_caller.check_tenant_access(tenant_id)
    elif not current_caller.is_admin:
        raise BadRequestError("User has no company")
    stats = await service.get_classification_stats(tenant_id)
    return ClassificationStatsResponse.model_validate(stats)
