# catalog_pricing/schemas/suggestions.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ConfidenceLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ScoreBreakdown(BaseModel):
    price_score: Decimal
    lead_time_score: Decimal
    reliability_score: Decimal
    trend_score: Decimal


class ReliabilityMetrics(BaseModel):
    """
    Proxy metrics derived from supplier age and catalog breadth until
    real fulfilment data (deliveries, defects, response times) is recorded.
    """

    total_orders: int
    on_time_deliveries: int
    on_time_delivery_rate: Decimal
    order_accuracy_rate: Decimal
    defect_rate: Decimal
    average_response_time_hours: Decimal


class SupplierSuggestion(BaseModel):
    supplier_id: str
    supplier_name: str
    product_supplier_id: str
    unit_cost: Optional[Decimal] = None
    currency: Optional[str] = None
    lead_time_days: Optional[int] = None
    is_preferred: bool = False

    total_score: Decimal
    score_breakdown: ScoreBreakdown
    confidence_level: ConfidenceLevel
    recommendation_reasons: List[str] = Field(default_factory=list)
    # factor name -> human readable explanation
    explanations: Dict[str, str] = Field(default_factory=dict)


class SupplierSuggestionResponse(BaseModel):
    product_id: str
    product_name: str
    current_preferred_supplier: Optional[SupplierSuggestion] = None
    recommended_supplier: Optional[SupplierSuggestion] = None
    all_suppliers: List[SupplierSuggestion] = Field(default_factory=list)
    potential_savings: Optional[Decimal] = None
    recommendation_explanation: str = ""
    calculated_at: datetime


class SupplierReliabilityResponse(BaseModel):
    supplier_id: str
    supplier_name: str
    reliability_score: Decimal
    product_count: int
    metrics: ReliabilityMetrics
