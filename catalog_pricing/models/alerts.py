# catalog_pricing/models/alerts.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pricing.core.clock import utcnow
from catalog_pricing.db import Base
from catalog_pricing.models._base import enum_type, new_id
from catalog_pricing.models.enums import AlertStatus


class SupplierPriceAlert(Base):
    __tablename__ = "supplier_price_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)

    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True, nullable=False)
    current_supplier_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("business_parties.id"), nullable=True
    )
    recommended_supplier_id: Mapped[str] = mapped_column(
        ForeignKey("business_parties.id"), nullable=False
    )

    current_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    recommended_score: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    potential_savings: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)

    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[AlertStatus] = mapped_column(
        enum_type(AlertStatus), default=AlertStatus.NEW, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<SupplierPriceAlert product={self.product_id} "
            f"recommended={self.recommended_supplier_id} status={self.status}>"
        )
