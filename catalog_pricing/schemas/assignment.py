# catalog_pricing/schemas/assignment.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_pricing.models.enums import AssignmentStatus


class AssignBusinessPartyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    business_party_id: str
    is_primary: bool = False
    override_priority: Optional[int] = None
    specific_valid_from: Optional[datetime] = None
    specific_valid_to: Optional[datetime] = None
    global_discount_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = Field(default=None, max_length=500)


class PriceListAssignmentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    price_list_id: str
    business_party_id: str
    is_primary: bool
    override_priority: Optional[int] = None
    specific_valid_from: Optional[datetime] = None
    specific_valid_to: Optional[datetime] = None
    global_discount_percentage: Optional[Decimal] = None
    status: AssignmentStatus
    notes: Optional[str] = None
