# catalog_pricing/schemas/bulk.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_pricing.calculators.bulk_operation import BulkUpdateOperation, SupplierPriceUpdateMode
from catalog_pricing.calculators.rounding import RoundingStrategy


class BulkItemError(BaseModel):
    """Per-item failure inside a batch. Batches report these instead of raising."""

    item_id: str
    error_code: str
    message: str


# --- price list entries: skip-and-report ---


class BulkUpdateFilters(BaseModel):
    """All filters combine with AND; None means "no restriction"."""

    model_config = ConfigDict(extra="forbid")

    product_ids: Optional[List[str]] = None
    category_ids: Optional[List[str]] = None
    brand_ids: Optional[List[str]] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class BulkPriceUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    operation: BulkUpdateOperation
    value: Decimal
    rounding_strategy: RoundingStrategy = RoundingStrategy.NONE
    filters: BulkUpdateFilters = Field(default_factory=BulkUpdateFilters)
    reason: Optional[str] = None


class PriceChangePreview(BaseModel):
    entry_id: str
    product_id: str
    product_name: Optional[str] = None
    current_price: Decimal
    new_price: Decimal
    change_amount: Decimal
    change_percentage: Decimal
    skipped: bool = False
    skip_reason: Optional[str] = None


class BulkUpdatePreview(BaseModel):
    price_list_id: str
    affected_count: int
    skipped_count: int
    changes: List[PriceChangePreview] = Field(default_factory=list)
    total_current_value: Decimal
    total_new_value: Decimal
    average_increase_percentage: Decimal


class BulkUpdateResult(BaseModel):
    price_list_id: str
    updated_count: int
    failed_count: int
    errors: List[BulkItemError] = Field(default_factory=list)
    updated_at: datetime


class PriceListEntryImport(BaseModel):
    product_id: Optional[str] = None
    product_code: Optional[str] = None
    price: Decimal
    currency: Optional[str] = None
    min_quantity: int = 1
    max_quantity: int = 0
    lead_time_days: Optional[int] = None
    minimum_order_quantity: Optional[int] = None
    notes: Optional[str] = None

    @property
    def item_key(self) -> str:
        return self.product_id or self.product_code or "<unknown>"


class BulkImportResult(BaseModel):
    price_list_id: str
    total: int
    created_count: int = 0
    updated_count: int = 0
    failed_count: int = 0
    errors: List[BulkItemError] = Field(default_factory=list)
    warnings: List[BulkItemError] = Field(default_factory=list)


# --- supplier products: all-or-nothing ---


class SupplierBulkUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_ids: List[str] = Field(min_length=1)
    update_mode: SupplierPriceUpdateMode = SupplierPriceUpdateMode.SET
    value: Optional[Decimal] = None
    currency: Optional[str] = None
    lead_time_days: Optional[int] = None
    set_preferred: Optional[bool] = None
    reason: Optional[str] = None


class SupplierProductPreview(BaseModel):
    product_id: str
    product_supplier_id: Optional[str] = None
    product_name: Optional[str] = None
    current_unit_cost: Optional[Decimal] = None
    new_unit_cost: Optional[Decimal] = None
    current_lead_time_days: Optional[int] = None
    new_lead_time_days: Optional[int] = None
    current_currency: Optional[str] = None
    new_currency: Optional[str] = None
    error: Optional[str] = None


class SupplierBulkUpdateResult(BaseModel):
    supplier_id: str
    total_requested: int
    success_count: int
    failure_count: int
    errors: List[BulkItemError] = Field(default_factory=list)
    rolled_back: bool = False
