"""Transaction API routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from autoledger.api.deps import get_classification_service, get_current_caller
from autoledger.core.security import Caller
from autoledger.models.transaction import Transaction
from autoledger.schemas.classification import (
    ClassificationStatsResponse,
    Pagination,
    TransactionListResponse,
    TransactionResponse,
)
from autoledger.services.transaction_classification_service import TransactionClassificationService

router = APIRouter()


def _to_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        tenant_id=txn.tenant_id,
        category_id=txn.category_id,
        category_name=txn.category.name if txn.category else None,
        transaction_date=txn.transaction_date,
        description=txn.description,
        deposit_amount=txn.deposit_amount,
        withdrawal_amount=txn.withdrawal_amount,
        balance_after=txn.balance_after,
        branch=txn.branch,
        processed_at=txn.processed_at,
    )


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    company_id: str = Query(..., description="Company whose records to list"),
    status: Literal["classified", "unclassified"] = "classified",
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_caller: Caller = Depends(get_current_caller),
    service: TransactionClassificationService = Depends(get_classification_service),
):
    """List a company's classified transactions, or the unclassified pool.

    Classification stats are included on the first page.
    """
    current_caller.check_tenant_access(company_id)

    if status == "unclassified":
        result = await service.get_unclassified_transactions(page, limit)
    else:
        result = await service.get_transactions_by_tenant(company_id, page, limit)

    stats = None
    if page == 1:
        stats = ClassificationStatsResponse.model_validate(
            await service.get_classification_stats(company_id)
        )

    return TransactionListResponse(
        transactions=[_to_response(t) for t in result.items],
        pagination=Pagination(
            total=result.total,
            page=result.page,
            limit=limit,
            total_pages=result.total_pages,
        ),
        stats=stats,
    )
