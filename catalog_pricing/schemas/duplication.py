# catalog_pricing/schemas/duplication.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_pricing.calculators.rounding import RoundingStrategy
from catalog_pricing.models.enums import PriceListDirection, PriceListStatus, PriceListType


class PriceListSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    type: PriceListType
    direction: PriceListDirection
    status: PriceListStatus
    priority: int
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_default: bool


class DuplicatePriceListOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = None

    new_type: Optional[PriceListType] = None
    new_direction: Optional[PriceListDirection] = None
    new_status: Optional[PriceListStatus] = None
    new_priority: Optional[int] = None
    new_valid_from: Optional[datetime] = None
    new_valid_to: Optional[datetime] = None

    copy_prices: bool = True
    copy_business_parties: bool = False

    apply_markup_percentage: Optional[Decimal] = Field(default=None, ge=-100)
    rounding_strategy: Optional[RoundingStrategy] = None

    filter_by_product_ids: Optional[List[str]] = None
    filter_by_category_ids: Optional[List[str]] = None
    only_active_products: bool = False


class DuplicatePriceListResult(BaseModel):
    new_price_list: PriceListSummary
    source_price_count: int
    copied_price_count: int
    skipped_price_count: int
    copied_business_party_count: int
    applied_markup_percentage: Optional[Decimal] = None
    applied_rounding_strategy: Optional[RoundingStrategy] = None
