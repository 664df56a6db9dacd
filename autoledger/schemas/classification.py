"""Classification API schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class TransactionIn(BaseModel):
    """A parsed, decrypted bank transaction submitted for classification."""
    transaction_date: date
    description: str
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    withdrawal_amount: Decimal = Field(default=Decimal("0"), ge=0)
    balance_after: Decimal | None = None
    branch: str | None = None

    @model_validator(mode="after")
    def one_side_only(self) -> "TransactionIn":
        if self.deposit_amount > 0 and self.withdrawal_amount > 0:
            raise ValueError("a transaction cannot be both a deposit and a withdrawal")
        return self


class ClassifyRequest(BaseModel):
    transactions: list[TransactionIn]


class ClassificationResultResponse(BaseModel):
    is_classified: bool
    reason: str
    category_id: str | None = None
    category_name: str | None = None
    rule_id: int | None = None
    matched_keywords: list[str] = []
    tenant_id: str | None = None

    model_config = {"from_attributes": True}


class BatchSummaryResponse(BaseModel):
    total: int
    classified: int
    unclassified: int
    category_counts: dict[str, int]
    elapsed_ms: float

    model_config = {"from_attributes": True}


class PreviewResponse(BaseModel):
    results: list[ClassificationResultResponse]
    summary: BatchSummaryResponse


class BatchResultResponse(BaseModel):
    total_processed: int
    classified_count: int
    unclassified_count: int
    errors: list[str] = []

    model_config = {"from_attributes": True}


class ClassificationStatsResponse(BaseModel):
    total_transactions: int
    classified_count: int
    unclassified_count: int
    classification_rate: float  # percent

    model_config = {"from_attributes": True}


class RulesUploadResponse(BaseModel):
    rules_by_tenant: dict[str, int]


class TransactionResponse(BaseModel):
    id: int
    tenant_id: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    transaction_date: date
    description: str
    deposit_amount: Decimal
    withdrawal_amount: Decimal
    balance_after: Decimal | None = None
    branch: str | None = None
    processed_at: datetime | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    pagination: Pagination
    stats: ClassificationStatsResponse | None = None
