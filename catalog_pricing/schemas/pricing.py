# catalog_pricing/schemas/pricing.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_pricing.models.enums import PriceApplicationMode, PriceListDirection, PriceSource


class ResolvedPrice(BaseModel):
    """Outcome of the precedence cascade, with provenance."""

    price: Decimal
    source: PriceSource
    price_list_id: Optional[str] = None
    price_list_name: Optional[str] = None
    original_price: Optional[Decimal] = None
    is_price_from_list: bool = False


class ProductPriceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str
    business_party_id: Optional[str] = None
    mode: Optional[PriceApplicationMode] = None
    forced_price_list_id: Optional[str] = None
    manual_price: Optional[Decimal] = None
    quantity: int = Field(default=1, ge=1)
    as_of: Optional[datetime] = None
    # None = lists of either direction are candidates
    direction: Optional[PriceListDirection] = None


class AvailablePriceList(BaseModel):
    price_list_id: str
    price_list_name: str
    price: Decimal
    currency: Optional[str] = None
    priority: int
    is_assigned_to_party: bool = False
    discount_percentage: Optional[Decimal] = None


class ProductPriceResult(BaseModel):
    product_id: str
    final_price: Decimal
    currency: Optional[str] = None

    base_price_from_list: Optional[Decimal] = None
    applied_discount_percentage: Optional[Decimal] = None
    applied_price_list_id: Optional[str] = None
    applied_price_list_name: Optional[str] = None

    applied_mode: PriceApplicationMode
    is_manual: bool = False
    is_price_list_forced: bool = False

    available_price_lists: List[AvailablePriceList] = Field(default_factory=list)
    search_path: List[str] = Field(default_factory=list)
    calculated_at: datetime


class PurchasePriceComparison(BaseModel):
    supplier_id: str
    supplier_name: str
    price_list_id: str
    price_list_name: str
    base_price: Decimal
    discount_percentage: Optional[Decimal] = None
    effective_price: Decimal
    currency: Optional[str] = None
    lead_time_days: Optional[int] = None
    minimum_order_quantity: Optional[int] = None
