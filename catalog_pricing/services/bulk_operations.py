# catalog_pricing/services/bulk_operations.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite
from catalog_pricing.calculators.bulk_operation import BulkUpdateOperation, calc_new_price
from catalog_pricing.calculators.rounding import apply_rounding
from catalog_pricing.core import errors
from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.errors import BusinessRuleError, InvalidInputError
from catalog_pricing.core.settings import Settings, get_settings
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import BULK_PRICE_UPDATE_ITEMS
from catalog_pricing.models.catalog import Product
from catalog_pricing.models.enums import PriceListEntryStatus
from catalog_pricing.models.price_list import PriceList, PriceListEntry
from catalog_pricing.schemas.bulk import (
    BulkImportResult,
    BulkItemError,
    BulkPriceUpdateRequest,
    BulkUpdateFilters,
    BulkUpdatePreview,
    BulkUpdateResult,
    PriceChangePreview,
    PriceListEntryImport,
)
from catalog_pricing.services.validation import (
    validate_currency,
    validate_price,
    validate_quantity_range,
)

logger = structlog.get_logger(__name__)

D = Decimal
CENT = D("0.01")


@dataclass
class _PlannedChange:
    entry: PriceListEntry
    product: Product
    new_price: Optional[D]
    error: Optional[BulkItemError] = None


def _pct_change(current: D, new: D) -> D:
    if current <= 0:
        return D("0.00")
    return ((new - current) / current * D("100")).quantize(CENT, rounding=ROUND_HALF_UP)


class PriceListBulkOperationsService:
    """
    Bulk repricing of price list entries.

    Policy: skip and report. An entry whose new price would be negative (or above
    MAX_PRICE) is left untouched and reported in `errors`; every other entry is
    updated and the batch commits once.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.audit = AuditLogger(db)

    def preview_bulk_update(self, price_list_id: str, request: BulkPriceUpdateRequest) -> BulkUpdatePreview:
        tenant_id = require_tenant()
        self._get_price_list(tenant_id, price_list_id)
        self._validate_request(request)

        plan = self._plan(tenant_id, price_list_id, request)

        changes: List[PriceChangePreview] = []
        total_current = D("0")
        total_new = D("0")
        for item in plan:
            current = item.entry.price
            if item.error is not None:
                changes.append(
                    PriceChangePreview(
                        entry_id=item.entry.id,
                        product_id=item.product.id,
                        product_name=item.product.name,
                        current_price=current,
                        new_price=current,
                        change_amount=D("0"),
                        change_percentage=D("0"),
                        skipped=True,
                        skip_reason=item.error.message,
                    )
                )
                continue

            total_current += current
            total_new += item.new_price
            changes.append(
                PriceChangePreview(
                    entry_id=item.entry.id,
                    product_id=item.product.id,
                    product_name=item.product.name,
                    current_price=current,
                    new_price=item.new_price,
                    change_amount=item.new_price - current,
                    change_percentage=_pct_change(current, item.new_price),
                )
            )

        skipped = sum(1 for c in changes if c.skipped)
        return BulkUpdatePreview(
            price_list_id=price_list_id,
            affected_count=len(changes) - skipped,
            skipped_count=skipped,
            changes=changes,
            total_current_value=total_current,
            total_new_value=total_new,
            average_increase_percentage=_pct_change(total_current, total_new),
        )

    def bulk_update_prices(
        self, price_list_id: str, request: BulkPriceUpdateRequest, current_user: str
    ) -> BulkUpdateResult:
        tenant_id = require_tenant()
        self._get_price_list(tenant_id, price_list_id)
        self._validate_request(request)

        plan = self._plan(tenant_id, price_list_id, request)

        failed: List[BulkItemError] = []
        old_prices = {}
        new_prices = {}
        for item in plan:
            if item.error is not None:
                failed.append(item.error)
                continue
            old_prices[item.entry.id] = item.entry.price
            new_prices[item.entry.id] = item.new_price
            item.entry.price = item.new_price
            item.entry.modified_by = current_user

        updated = len(new_prices)
        if updated > 0:
            self.audit.log(
                AuditWrite(
                    action_type="PRICE_LIST_BULK_UPDATE",
                    actor=current_user,
                    tenant_id=tenant_id,
                    target_type="PriceList",
                    target_id=price_list_id,
                    old_value=old_prices,
                    new_value=new_prices,
                    meta={
                        "operation": request.operation.value,
                        "value": request.value,
                        "rounding": request.rounding_strategy.value,
                        "failed_count": len(failed),
                        "reason": request.reason,
                    },
                )
            )
            self.db.commit()

        BULK_PRICE_UPDATE_ITEMS.labels(outcome="updated", tenant_id=tenant_id).inc(updated)
        BULK_PRICE_UPDATE_ITEMS.labels(outcome="failed", tenant_id=tenant_id).inc(len(failed))
        logger.info(
            "bulk_price_update_completed",
            price_list_id=price_list_id,
            operation=request.operation.value,
            updated_count=updated,
            failed_count=len(failed),
        )
        return BulkUpdateResult(
            price_list_id=price_list_id,
            updated_count=updated,
            failed_count=len(failed),
            errors=failed,
            updated_at=utcnow(),
        )

    def bulk_import_entries(
        self,
        price_list_id: str,
        items: Sequence[PriceListEntryImport],
        current_user: str,
        replace_existing: bool = False,
    ) -> BulkImportResult:
        """Already-parsed rows in; per-row errors out. Rows are independent of each other."""
        tenant_id = require_tenant()
        price_list = self._get_price_list(tenant_id, price_list_id)

        result = BulkImportResult(price_list_id=price_list_id, total=len(items))
        existing = {
            e.product_id: e
            for e in self.db.query(PriceListEntry)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.price_list_id == price_list.id,
                PriceListEntry.is_deleted.is_(False),
            )
            .all()
        }
        seen = set()

        for item in items:
            try:
                product = self._resolve_product(tenant_id, item)
                validate_price(item.price, self.settings)
                validate_quantity_range(item.min_quantity, item.max_quantity)
                currency = validate_currency(item.currency, self.settings)
            except BusinessRuleError as exc:
                result.errors.append(BulkItemError(item_id=item.item_key, error_code=exc.code, message=exc.message))
                continue

            if product.id in seen:
                result.warnings.append(
                    BulkItemError(
                        item_id=item.item_key,
                        error_code=errors.DUPLICATE_ENTRY,
                        message=f"Product {product.code} appears more than once, later rows ignored",
                    )
                )
                continue
            seen.add(product.id)

            entry = existing.get(product.id)
            if entry is not None and not replace_existing:
                result.warnings.append(
                    BulkItemError(
                        item_id=item.item_key,
                        error_code=errors.DUPLICATE_ENTRY,
                        message=f"Product {product.code} already priced in this list",
                    )
                )
                continue

            if entry is None:
                entry = PriceListEntry(
                    tenant_id=tenant_id,
                    price_list_id=price_list.id,
                    product_id=product.id,
                    created_by=current_user,
                    status=PriceListEntryStatus.ACTIVE,
                )
                self.db.add(entry)
                result.created_count += 1
            else:
                entry.modified_by = current_user
                result.updated_count += 1

            entry.price = item.price
            entry.currency = currency
            entry.min_quantity = item.min_quantity
            entry.max_quantity = item.max_quantity
            entry.lead_time_days = item.lead_time_days
            entry.minimum_order_quantity = item.minimum_order_quantity
            entry.notes = item.notes

        result.failed_count = len(result.errors)

        if result.created_count or result.updated_count:
            self.audit.log(
                AuditWrite(
                    action_type="PRICE_LIST_BULK_IMPORT",
                    actor=current_user,
                    tenant_id=tenant_id,
                    target_type="PriceList",
                    target_id=price_list.id,
                    meta={
                        "created": result.created_count,
                        "updated": result.updated_count,
                        "failed": result.failed_count,
                        "replace_existing": replace_existing,
                    },
                )
            )
            self.db.commit()

        logger.info(
            "price_list_import_completed",
            price_list_id=price_list.id,
            created=result.created_count,
            updated=result.updated_count,
            failed=result.failed_count,
            warnings=len(result.warnings),
        )
        return result

    # ---------------------------
    # helpers
    # ---------------------------

    def _get_price_list(self, tenant_id: str, price_list_id: str) -> PriceList:
        price_list = (
            self.db.query(PriceList)
            .filter(PriceList.id == price_list_id, PriceList.tenant_id == tenant_id, PriceList.is_deleted.is_(False))
            .first()
        )
        if price_list is None:
            raise BusinessRuleError(errors.PRICE_LIST_NOT_FOUND, f"Price list {price_list_id} not found")
        return price_list

    def _validate_request(self, request: BulkPriceUpdateRequest) -> None:
        if request.operation == BulkUpdateOperation.SET:
            validate_price(request.value, self.settings)
        elif request.value < 0:
            raise InvalidInputError(
                errors.INVALID_BULK_VALUE,
                f"{request.operation.value} needs a non-negative value (got {request.value})",
            )

        f = request.filters
        if f.min_price is not None and f.max_price is not None and f.min_price > f.max_price:
            raise InvalidInputError(errors.INVALID_BULK_VALUE, "min_price must not exceed max_price")

    def _plan(self, tenant_id: str, price_list_id: str, request: BulkPriceUpdateRequest) -> List[_PlannedChange]:
        plan: List[_PlannedChange] = []
        for entry, product in self._filtered_entries(tenant_id, price_list_id, request.filters):
            raw = calc_new_price(entry.price, request.operation, request.value)
            if raw < 0:
                plan.append(
                    _PlannedChange(
                        entry=entry,
                        product=product,
                        new_price=None,
                        error=BulkItemError(
                            item_id=product.id,
                            error_code=errors.NEGATIVE_PRICE,
                            message=f"New price for {product.code} would be negative ({raw})",
                        ),
                    )
                )
                continue

            new_price = apply_rounding(raw, request.rounding_strategy)
            if new_price > self.settings.MAX_PRICE:
                plan.append(
                    _PlannedChange(
                        entry=entry,
                        product=product,
                        new_price=None,
                        error=BulkItemError(
                            item_id=product.id,
                            error_code=errors.PRICE_EXCEEDS_MAXIMUM,
                            message=f"New price for {product.code} exceeds {self.settings.MAX_PRICE}",
                        ),
                    )
                )
                continue

            plan.append(_PlannedChange(entry=entry, product=product, new_price=new_price))
        return plan

    def _filtered_entries(self, tenant_id: str, price_list_id: str, filters: BulkUpdateFilters):
        q = (
            self.db.query(PriceListEntry, Product)
            .join(Product, PriceListEntry.product_id == Product.id)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.price_list_id == price_list_id,
                PriceListEntry.is_deleted.is_(False),
                Product.is_deleted.is_(False),
            )
        )
        if filters.product_ids is not None:
            q = q.filter(PriceListEntry.product_id.in_(filters.product_ids))
        if filters.category_ids is not None:
            q = q.filter(Product.category_id.in_(filters.category_ids))
        if filters.brand_ids is not None:
            q = q.filter(Product.brand_id.in_(filters.brand_ids))
        if filters.min_price is not None:
            q = q.filter(PriceListEntry.price >= filters.min_price)
        if filters.max_price is not None:
            q = q.filter(PriceListEntry.price <= filters.max_price)
        return q.order_by(Product.code, PriceListEntry.id).all()

    def _resolve_product(self, tenant_id: str, item: PriceListEntryImport) -> Product:
        if not item.product_id and not item.product_code:
            raise BusinessRuleError(errors.IMPORT_ERROR, "Row has neither product_id nor product_code")

        q = self.db.query(Product).filter(Product.tenant_id == tenant_id, Product.is_deleted.is_(False))
        if item.product_id:
            q = q.filter(Product.id == item.product_id)
        else:
            q = q.filter(Product.code == item.product_code)
        product = q.first()
        if product is None:
            raise BusinessRuleError(errors.PRODUCT_NOT_FOUND, f"Product {item.item_key} not found")
        return product
