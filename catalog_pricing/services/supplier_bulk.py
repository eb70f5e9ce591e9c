# catalog_pricing/services/supplier_bulk.py
from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite, snapshot
from catalog_pricing.calculators.bulk_operation import calc_supplier_unit_cost
from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError, InvalidInputError
from catalog_pricing.core.settings import Settings, get_settings
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import SUPPLIER_BULK_UPDATES
from catalog_pricing.models.catalog import BusinessParty, ProductSupplier
from catalog_pricing.schemas.bulk import (
    BulkItemError,
    SupplierBulkUpdateRequest,
    SupplierBulkUpdateResult,
    SupplierProductPreview,
)
from catalog_pricing.services.price_history import SupplierProductPriceHistoryService
from catalog_pricing.services.suggestion_cache import SuggestionCache, get_suggestion_cache
from catalog_pricing.services.validation import validate_currency, validate_price

logger = structlog.get_logger(__name__)

PRODUCT_SUPPLIER_FIELDS = ("unit_cost", "currency", "lead_time_days", "preferred")


class SupplierProductBulkService:
    """
    Bulk edit of one supplier's product offers.

    Policy: all or nothing. Any failing item rolls back the whole batch; the result
    then reports rolled_back=True and success_count=0. This intentionally differs
    from PriceListBulkOperationsService, which skips failing entries.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        cache: Optional[SuggestionCache] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.cache = cache or get_suggestion_cache()
        self.audit = AuditLogger(db)
        self.history = SupplierProductPriceHistoryService(db)

    def preview_bulk_update(self, supplier_id: str, request: SupplierBulkUpdateRequest) -> List[SupplierProductPreview]:
        tenant_id = require_tenant()
        self._get_supplier(tenant_id, supplier_id)
        currency = self._validate_request(request)

        previews: List[SupplierProductPreview] = []
        for product_id in request.product_ids:
            ps = self._get_product_supplier(tenant_id, supplier_id, product_id)
            if ps is None:
                previews.append(
                    SupplierProductPreview(product_id=product_id, error=errors.PRODUCT_SUPPLIER_NOT_FOUND)
                )
                continue

            new_cost = ps.unit_cost
            error = None
            if request.value is not None:
                new_cost = calc_supplier_unit_cost(ps.unit_cost, request.update_mode, request.value)
                if new_cost < 0:
                    error = errors.NEGATIVE_PRICE

            previews.append(
                SupplierProductPreview(
                    product_id=product_id,
                    product_supplier_id=ps.id,
                    product_name=ps.product.name if ps.product else None,
                    current_unit_cost=ps.unit_cost,
                    new_unit_cost=new_cost,
                    current_lead_time_days=ps.lead_time_days,
                    new_lead_time_days=(
                        request.lead_time_days if request.lead_time_days is not None else ps.lead_time_days
                    ),
                    current_currency=ps.currency,
                    new_currency=currency or ps.currency,
                    error=error,
                )
            )
        return previews

    def bulk_update_supplier_products(
        self, supplier_id: str, request: SupplierBulkUpdateRequest, current_user: str
    ) -> SupplierBulkUpdateResult:
        tenant_id = require_tenant()
        self._get_supplier(tenant_id, supplier_id)
        currency = self._validate_request(request)

        failures: List[BulkItemError] = []
        touched: List[str] = []
        try:
            for product_id in request.product_ids:
                error = self._apply_one(tenant_id, supplier_id, product_id, request, currency, current_user)
                if error is not None:
                    failures.append(error)
                else:
                    touched.append(product_id)

            if failures:
                self.db.rollback()
            else:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        total = len(request.product_ids)
        if failures:
            SUPPLIER_BULK_UPDATES.labels(outcome="rolled_back", tenant_id=tenant_id).inc()
            logger.warning(
                "supplier_bulk_update_rolled_back",
                supplier_id=supplier_id,
                total=total,
                failure_count=len(failures),
            )
            return SupplierBulkUpdateResult(
                supplier_id=supplier_id,
                total_requested=total,
                success_count=0,
                failure_count=len(failures),
                errors=failures,
                rolled_back=True,
            )

        for product_id in touched:
            self.cache.invalidate(product_id, tenant_id)

        SUPPLIER_BULK_UPDATES.labels(outcome="committed", tenant_id=tenant_id).inc()
        logger.info("supplier_bulk_update_committed", supplier_id=supplier_id, success_count=len(touched))
        return SupplierBulkUpdateResult(
            supplier_id=supplier_id,
            total_requested=total,
            success_count=len(touched),
            failure_count=0,
        )

    # ---------------------------
    # helpers
    # ---------------------------

    def _apply_one(
        self,
        tenant_id: str,
        supplier_id: str,
        product_id: str,
        request: SupplierBulkUpdateRequest,
        currency: Optional[str],
        current_user: str,
    ) -> Optional[BulkItemError]:
        ps = self._get_product_supplier(tenant_id, supplier_id, product_id)
        if ps is None:
            return BulkItemError(
                item_id=product_id,
                error_code=errors.PRODUCT_SUPPLIER_NOT_FOUND,
                message=f"Supplier {supplier_id} does not offer product {product_id}",
            )

        before = snapshot(ps, PRODUCT_SUPPLIER_FIELDS)

        if request.value is not None:
            new_cost = calc_supplier_unit_cost(ps.unit_cost, request.update_mode, request.value)
            try:
                validate_price(new_cost, self.settings)
            except BusinessRuleError as exc:
                return BulkItemError(item_id=product_id, error_code=exc.code, message=exc.message)

            if new_cost != ps.unit_cost:
                self.history.record_price_change(
                    supplier_id=supplier_id,
                    product_id=product_id,
                    old_unit_cost=ps.unit_cost,
                    new_unit_cost=new_cost,
                    currency=currency or ps.currency,
                    change_source="BulkEdit",
                    changed_by=current_user,
                    product_supplier_id=ps.id,
                    notes=request.reason,
                )
                ps.unit_cost = new_cost

        if currency is not None:
            ps.currency = currency
        if request.lead_time_days is not None:
            ps.lead_time_days = request.lead_time_days

        if request.set_preferred is True:
            self.db.execute(
                update(ProductSupplier)
                .where(
                    ProductSupplier.tenant_id == tenant_id,
                    ProductSupplier.product_id == product_id,
                    ProductSupplier.is_deleted.is_(False),
                    ProductSupplier.id != ps.id,
                )
                .values(preferred=False)
                .execution_options(synchronize_session=False)
            )
            ps.preferred = True
        elif request.set_preferred is False:
            ps.preferred = False

        ps.modified_by = current_user

        self.audit.log(
            AuditWrite(
                action_type="PRODUCT_SUPPLIER_BULK_EDIT",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="ProductSupplier",
                target_id=ps.id,
                old_value=before,
                new_value=snapshot(ps, PRODUCT_SUPPLIER_FIELDS),
                meta={"reason": request.reason, "mode": request.update_mode.value},
            )
        )
        return None

    def _validate_request(self, request: SupplierBulkUpdateRequest) -> Optional[str]:
        if request.lead_time_days is not None and request.lead_time_days < 0:
            raise InvalidInputError(errors.INVALID_BULK_VALUE, "Lead time must not be negative")
        if request.value is not None and request.value < 0:
            raise InvalidInputError(errors.INVALID_BULK_VALUE, "Update value must not be negative")
        if request.currency is not None:
            return validate_currency(request.currency, self.settings)
        return None

    def _get_supplier(self, tenant_id: str, supplier_id: str) -> BusinessParty:
        supplier = (
            self.db.query(BusinessParty)
            .filter(
                BusinessParty.id == supplier_id,
                BusinessParty.tenant_id == tenant_id,
                BusinessParty.is_deleted.is_(False),
            )
            .first()
        )
        if supplier is None:
            raise BusinessRuleError(errors.SUPPLIER_NOT_FOUND, f"Supplier {supplier_id} not found")
        return supplier

    def _get_product_supplier(self, tenant_id: str, supplier_id: str, product_id: str) -> Optional[ProductSupplier]:
        return (
            self.db.query(ProductSupplier)
            .filter(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.supplier_id == supplier_id,
                ProductSupplier.product_id == product_id,
                ProductSupplier.is_deleted.is_(False),
            )
            .first()
        )
