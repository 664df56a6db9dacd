"""Rules document schema (rules.json uploaded by a merchant or admin)."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class AmountRange(BaseModel):
    min: Decimal | None = Field(default=None, ge=0)
    max: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "AmountRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("amount_range.min cannot be greater than amount_range.max")
        return self


class CategoryRule(BaseModel):
    category_id: str = Field(min_length=1)
    category_name: str = Field(min_length=1)
    keywords: list[str] = Field(min_length=1)
    exclude_keywords: list[str] | None = None
    amount_range: AmountRange | None = None
    transaction_type: Literal["DEPOSIT", "WITHDRAWAL", "ALL"] = "ALL"
    priority: int = Field(default=1, ge=1)

    @field_validator("keywords", "exclude_keywords")
    @classmethod
    def strip_keywords(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        stripped = [k.strip() for k in value]
        if any(not k for k in stripped):
            raise ValueError("keywords cannot be blank")
        return stripped


class CompanyRules(BaseModel):
    company_id: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    categories: list[CategoryRule] = Field(min_length=1)


class RulesFile(BaseModel):
    companies: list[CompanyRules] = Field(min_length=1)
