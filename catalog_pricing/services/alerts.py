# catalog_pricing/services/alerts.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.models.alerts import SupplierPriceAlert
from catalog_pricing.schemas.suggestions import SupplierSuggestion

logger = structlog.get_logger(__name__)


class AlertSink(Protocol):
    def better_supplier_found(
        self,
        product_id: str,
        current: Optional[SupplierSuggestion],
        recommended: SupplierSuggestion,
        potential_savings: Optional[Decimal],
    ) -> None: ...


class SupplierPriceAlertService:
    """Persists a SupplierPriceAlert for a materially better supplier."""

    def __init__(self, db: Session):
        self.db = db

    def better_supplier_found(
        self,
        product_id: str,
        current: Optional[SupplierSuggestion],
        recommended: SupplierSuggestion,
        potential_savings: Optional[Decimal],
    ) -> None:
        tenant_id = require_tenant()
        current_score = current.total_score if current else None
        message = (
            f"{recommended.supplier_name} scores {recommended.total_score}"
            + (f" against {current.supplier_name} at {current_score}" if current else "")
            + (f", potential savings {potential_savings} per unit" if potential_savings else "")
        )
        alert = SupplierPriceAlert(
            tenant_id=tenant_id,
            product_id=product_id,
            current_supplier_id=current.supplier_id if current else None,
            recommended_supplier_id=recommended.supplier_id,
            current_score=current_score,
            recommended_score=recommended.total_score,
            potential_savings=potential_savings,
            message=message,
        )
        try:
            self.db.add(alert)
            self.db.commit()
        except Exception:
            # leave nothing pending for the caller's next commit
            self.db.rollback()
            raise
        logger.info(
            "supplier_alert_created",
            product_id=product_id,
            recommended_supplier_id=recommended.supplier_id,
        )
