# catalog_pricing/schemas/price_lists.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from catalog_pricing.models.enums import PriceListEntryStatus, PriceListType


# ---------------------------
# apply list prices to products
# ---------------------------


class ApplyOutcome(str, Enum):
    UPDATED = "Updated"
    SKIPPED_CATEGORY = "SkippedCategoryFilter"
    SKIPPED_NOT_HIGHER = "SkippedNotHigher"
    SKIPPED_NOT_LOWER = "SkippedNotLower"
    PRODUCT_NOT_FOUND = "ProductNotFound"


class ApplyPriceListToProductsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    only_update_if_higher: bool = False
    only_update_if_lower: bool = False
    filter_by_product_ids: Optional[List[str]] = None
    filter_by_category_ids: Optional[List[str]] = None
    # one audit event per product with the previous default price
    create_backup: bool = True

    @model_validator(mode="after")
    def _one_direction(self):
        if self.only_update_if_higher and self.only_update_if_lower:
            raise ValueError("only_update_if_higher and only_update_if_lower are mutually exclusive")
        return self


class ProductDefaultPriceChange(BaseModel):
    product_id: str
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    old_price: Optional[Decimal] = None
    new_price: Decimal
    outcome: ApplyOutcome


class ApplyPriceListResult(BaseModel):
    price_list_id: str
    price_list_name: str
    products_updated: int = 0
    products_skipped: int = 0
    products_not_found: int = 0
    details: List[ProductDefaultPriceChange] = Field(default_factory=list)
    applied_at: datetime
    applied_by: str


# ---------------------------
# export
# ---------------------------


class ExportablePriceListEntry(BaseModel):
    id: str
    price_list_id: str
    product_id: str
    product_code: Optional[str] = None
    product_name: str
    product_category_id: Optional[str] = None
    product_default_price: Optional[Decimal] = None
    price: Decimal
    currency: str
    min_quantity: int
    max_quantity: int
    status: PriceListEntryStatus
    is_active: bool
    notes: Optional[str] = None
    created_at: datetime
    created_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None


# ---------------------------
# precedence validation
# ---------------------------


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"


class PrecedenceIssue(BaseModel):
    issue_type: str
    severity: Severity
    description: str
    price_list_ids: List[str] = Field(default_factory=list)
    suggested_resolution: Optional[str] = None


class PrecedenceWarning(BaseModel):
    warning_type: str
    description: str
    price_list_ids: List[str] = Field(default_factory=list)
    recommendation: Optional[str] = None


class PrecedenceValidationResult(BaseModel):
    type: Optional[PriceListType] = None
    is_valid: bool = True
    price_lists_validated: int = 0
    active_count: int = 0
    default_count: int = 0
    expired_count: int = 0
    issues: List[PrecedenceIssue] = Field(default_factory=list)
    warnings: List[PrecedenceWarning] = Field(default_factory=list)
    recommended_default_price_list_id: Optional[str] = None
    validated_at: datetime
