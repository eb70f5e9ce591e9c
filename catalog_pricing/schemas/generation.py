# catalog_pricing/schemas/generation.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_pricing.calculators.aggregation import PriceCalculationStrategy
from catalog_pricing.calculators.rounding import RoundingStrategy
from catalog_pricing.models.enums import PriceListDirection, PriceListType


class PostProcessingOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    calculation_strategy: PriceCalculationStrategy = PriceCalculationStrategy.LAST_PURCHASE_PRICE
    rounding_strategy: RoundingStrategy = RoundingStrategy.NONE
    markup_percentage: Optional[Decimal] = Field(default=None, ge=-100)

    filter_by_category_ids: Optional[List[str]] = None
    only_active_products: bool = True
    # products whose total purchased quantity in the window is below this are dropped
    minimum_quantity: Optional[Decimal] = None


class GenerateFromPurchasesRequest(PostProcessingOptions):
    supplier_id: str
    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = None
    from_date: datetime
    to_date: datetime
    priority: int = 0
    currency: Optional[str] = None


class UpdateFromPurchasesRequest(PostProcessingOptions):
    price_list_id: str
    # omitted: the last UPDATE_FROM_PURCHASES_DEFAULT_DAYS days
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    add_new_products: bool = False
    remove_obsolete_products: bool = False


class GenerateFromProductPricesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = None
    type: PriceListType = PriceListType.SALES
    direction: PriceListDirection = PriceListDirection.OUTPUT
    priority: int = 0
    markup_percentage: Optional[Decimal] = Field(default=None, ge=-100)
    rounding_strategy: RoundingStrategy = RoundingStrategy.NONE
    only_active_products: bool = True
    filter_by_category_ids: Optional[List[str]] = None
    currency: Optional[str] = None


class GeneratedPricePreview(BaseModel):
    product_id: str
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    aggregated_price: Decimal
    calculated_price: Decimal
    purchase_count: int
    total_quantity: Decimal
    last_purchase_date: datetime
    existing_price: Optional[Decimal] = None


class GenerationPreview(BaseModel):
    supplier_id: str
    supplier_name: str
    price_list_id: Optional[str] = None
    from_date: datetime
    to_date: datetime
    documents_analyzed: int
    products_found: int
    prices: List[GeneratedPricePreview] = Field(default_factory=list)
    total_value: Decimal
    # refresh previews only: live entries with no purchase in the window
    obsolete_product_ids: List[str] = Field(default_factory=list)


class GenerationMetadata(BaseModel):
    """Provenance record stored as JSON on generated price lists."""

    strategy: Optional[PriceCalculationStrategy] = None
    rounding: RoundingStrategy
    markup_percentage: Optional[Decimal] = None
    analysis_from: Optional[datetime] = None
    analysis_to: Optional[datetime] = None
    documents_analyzed: int = 0
    products_generated: int = 0
    source: str = "Purchases"
    generated_at: datetime
    generated_by: str


class UpdateFromPurchasesResult(BaseModel):
    price_list_id: str
    prices_updated: int = 0
    prices_added: int = 0
    prices_removed: int = 0
    prices_unchanged: int = 0
    warnings: List[str] = Field(default_factory=list)
    synced_at: datetime
