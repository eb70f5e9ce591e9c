# catalog_pricing/services/price_history.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.models.catalog import SupplierProductPriceHistory


@dataclass(frozen=True)
class PriceTrendPoint:
    date: datetime
    price: Decimal
    currency: Optional[str] = None


class SupplierProductPriceHistoryService:
    def __init__(self, db: Session):
        self.db = db

    def record_price_change(
        self,
        supplier_id: str,
        product_id: str,
        old_unit_cost: Optional[Decimal],
        new_unit_cost: Decimal,
        currency: Optional[str],
        change_source: str,
        changed_by: Optional[str],
        product_supplier_id: Optional[str] = None,
        notes: Optional[str] = None,
        changed_at: Optional[datetime] = None,
    ) -> SupplierProductPriceHistory:
        """Adds the history row to the caller's session; the caller commits."""
        row = SupplierProductPriceHistory(
            tenant_id=require_tenant(),
            supplier_id=supplier_id,
            product_id=product_id,
            product_supplier_id=product_supplier_id,
            old_unit_cost=old_unit_cost,
            new_unit_cost=new_unit_cost,
            currency=currency,
            change_source=change_source,
            changed_by=changed_by,
            changed_at=changed_at or utcnow(),
            notes=notes,
        )
        self.db.add(row)
        return row

    def get_price_trend_data(
        self,
        supplier_id: str,
        product_id: str,
        from_date: datetime,
        to_date: datetime,
    ) -> List[PriceTrendPoint]:
        """Unit cost points in [from_date, to_date], oldest first."""
        tenant_id = require_tenant()
        rows = (
            self.db.query(SupplierProductPriceHistory)
            .filter(
                SupplierProductPriceHistory.tenant_id == tenant_id,
                SupplierProductPriceHistory.supplier_id == supplier_id,
                SupplierProductPriceHistory.product_id == product_id,
                SupplierProductPriceHistory.changed_at >= from_date,
                SupplierProductPriceHistory.changed_at <= to_date,
            )
            .order_by(SupplierProductPriceHistory.changed_at.asc())
            .all()
        )
        return [PriceTrendPoint(date=r.changed_at, price=r.new_unit_cost, currency=r.currency) for r in rows]

    def count_for_supplier(self, supplier_id: str) -> int:
        tenant_id = require_tenant()
        return (
            self.db.query(SupplierProductPriceHistory)
            .filter(
                SupplierProductPriceHistory.tenant_id == tenant_id,
                SupplierProductPriceHistory.supplier_id == supplier_id,
            )
            .count()
        )
