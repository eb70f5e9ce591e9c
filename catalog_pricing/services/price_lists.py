# catalog_pricing/services/price_lists.py
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite, snapshot
from catalog_pricing.core import errors
from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.models.catalog import Product
from catalog_pricing.models.enums import PriceListEntryStatus, PriceListStatus, PriceListType
from catalog_pricing.models.price_list import PriceList, PriceListEntry
from catalog_pricing.schemas.price_lists import (
    ApplyOutcome,
    ApplyPriceListResult,
    ApplyPriceListToProductsRequest,
    ExportablePriceListEntry,
    PrecedenceIssue,
    PrecedenceValidationResult,
    PrecedenceWarning,
    ProductDefaultPriceChange,
    Severity,
)

logger = structlog.get_logger(__name__)


EXPIRY_WARNING_DAYS = 7
MANY_ACTIVE_LISTS = 10


class PriceListService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.audit = AuditLogger(db)

    def get_price_list(self, price_list_id: str) -> PriceList:
        tenant_id = require_tenant()
        price_list = (
            self.db.query(PriceList)
            .filter(PriceList.id == price_list_id, PriceList.tenant_id == tenant_id, PriceList.is_deleted.is_(False))
            .first()
        )
        if price_list is None:
            raise BusinessRuleError(errors.PRICE_LIST_NOT_FOUND, f"Price list {price_list_id} not found")
        return price_list

    def set_default_price_list(self, price_list_id: str, current_user: str) -> PriceList:
        """
        Make one list the default for its tenant and type.
        Reset and set happen in one UPDATE so concurrent callers cannot both win.
        """
        price_list = self.get_price_list(price_list_id)
        tenant_id = price_list.tenant_id
        previous = [
            row[0]
            for row in self.db.query(PriceList.id)
            .filter(
                PriceList.tenant_id == tenant_id,
                PriceList.type == price_list.type,
                PriceList.is_default.is_(True),
                PriceList.is_deleted.is_(False),
            )
            .all()
        ]

        self.db.execute(
            update(PriceList)
            .where(
                PriceList.tenant_id == tenant_id,
                PriceList.type == price_list.type,
                PriceList.is_deleted.is_(False),
                or_(PriceList.is_default.is_(True), PriceList.id == price_list.id),
            )
            .values(is_default=(PriceList.id == price_list.id), modified_by=current_user)
            .execution_options(synchronize_session=False)
        )

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_DEFAULT_SET",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=price_list.id,
                old_value={"default_price_list_ids": previous},
                new_value={"default_price_list_ids": [price_list.id]},
            )
        )
        self.db.commit()
        self.db.refresh(price_list)

        logger.info("default_price_list_set", price_list_id=price_list.id, type=price_list.type.value)
        return price_list

    def remove_entry(self, entry_id: str, current_user: str) -> bool:
        tenant_id = require_tenant()
        entry = (
            self.db.query(PriceListEntry)
            .filter(
                PriceListEntry.id == entry_id,
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.is_deleted.is_(False),
            )
            .first()
        )
        if entry is None:
            return False

        before = snapshot(entry, ("price_list_id", "product_id", "price", "status", "is_deleted"))
        entry.soft_delete(current_user)
        entry.status = PriceListEntryStatus.DELETED

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_ENTRY_REMOVED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceListEntry",
                target_id=entry.id,
                old_value=before,
                new_value=snapshot(entry, ("price_list_id", "product_id", "price", "status", "is_deleted")),
            )
        )
        self.db.commit()
        return True

    def apply_price_list_to_products(
        self, price_list_id: str, request: ApplyPriceListToProductsRequest, current_user: str
    ) -> ApplyPriceListResult:
        """
        Push the list's active entry prices into Product.default_price.

        Entries whose product is gone count as not found. The category filter and
        the higher/lower guards count as skipped. With create_backup each changed
        product gets an audit event carrying its previous default price.
        """
        price_list = self.get_price_list(price_list_id)
        tenant_id = price_list.tenant_id

        q = self.db.query(PriceListEntry).filter(
            PriceListEntry.tenant_id == tenant_id,
            PriceListEntry.price_list_id == price_list.id,
            PriceListEntry.is_deleted.is_(False),
            PriceListEntry.status == PriceListEntryStatus.ACTIVE,
        )
        if request.filter_by_product_ids:
            q = q.filter(PriceListEntry.product_id.in_(request.filter_by_product_ids))
        entries = q.order_by(PriceListEntry.product_id).all()
        categories = set(request.filter_by_category_ids) if request.filter_by_category_ids else None

        result = ApplyPriceListResult(
            price_list_id=price_list.id,
            price_list_name=price_list.name,
            applied_at=self.clock(),
            applied_by=current_user,
        )
        for entry in entries:
            product = self.db.get(Product, entry.product_id)
            if product is None or product.is_deleted or product.tenant_id != tenant_id:
                result.products_not_found += 1
                result.details.append(
                    ProductDefaultPriceChange(
                        product_id=entry.product_id, new_price=entry.price, outcome=ApplyOutcome.PRODUCT_NOT_FOUND
                    )
                )
                continue

            outcome = _apply_outcome(product, entry.price, request, categories)
            result.details.append(
                ProductDefaultPriceChange(
                    product_id=product.id,
                    product_code=product.code,
                    product_name=product.name,
                    old_price=product.default_price,
                    new_price=entry.price,
                    outcome=outcome,
                )
            )
            if outcome != ApplyOutcome.UPDATED:
                result.products_skipped += 1
                continue

            before = snapshot(product, ("default_price",))
            product.default_price = entry.price
            product.modified_by = current_user
            result.products_updated += 1
            if request.create_backup:
                self.audit.log(
                    AuditWrite(
                        action_type="PRODUCT_DEFAULT_PRICE_APPLIED",
                        actor=current_user,
                        tenant_id=tenant_id,
                        target_type="Product",
                        target_id=product.id,
                        old_value=before,
                        new_value=snapshot(product, ("default_price",)),
                        meta={"price_list_id": price_list.id},
                    )
                )

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_APPLIED_TO_PRODUCTS",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=price_list.id,
                meta={
                    "updated": result.products_updated,
                    "skipped": result.products_skipped,
                    "not_found": result.products_not_found,
                },
            )
        )
        self.db.commit()

        logger.info(
            "price_list_applied_to_products",
            price_list_id=price_list.id,
            updated=result.products_updated,
            skipped=result.products_skipped,
            not_found=result.products_not_found,
        )
        return result

    def export_entries(self, price_list_id: str, include_inactive: bool = False) -> List[ExportablePriceListEntry]:
        price_list = self.get_price_list(price_list_id)

        q = (
            self.db.query(PriceListEntry, Product)
            .outerjoin(Product, PriceListEntry.product_id == Product.id)
            .filter(
                PriceListEntry.tenant_id == price_list.tenant_id,
                PriceListEntry.price_list_id == price_list.id,
                PriceListEntry.is_deleted.is_(False),
            )
        )
        if not include_inactive:
            q = q.filter(PriceListEntry.status == PriceListEntryStatus.ACTIVE)

        exported = [
            ExportablePriceListEntry(
                id=entry.id,
                price_list_id=entry.price_list_id,
                product_id=entry.product_id,
                product_code=product.code if product else None,
                product_name=product.name if product else "Unknown",
                product_category_id=product.category_id if product else None,
                product_default_price=product.default_price if product else None,
                price=entry.price,
                currency=entry.currency,
                min_quantity=entry.min_quantity,
                max_quantity=entry.max_quantity,
                status=entry.status,
                is_active=entry.status == PriceListEntryStatus.ACTIVE,
                notes=entry.notes,
                created_at=entry.created_at,
                created_by=entry.created_by,
                modified_at=entry.modified_at,
                modified_by=entry.modified_by,
            )
            for entry, product in q.order_by(Product.code, PriceListEntry.min_quantity).all()
        ]
        logger.info("price_list_entries_exported", price_list_id=price_list.id, count=len(exported))
        return exported

    def validate_precedence(self, list_type: Optional[PriceListType] = None) -> PrecedenceValidationResult:
        """
        Checks the tenant's price lists for setups that leave resolution ambiguous
        or with nothing valid to resolve against. Issues make the result invalid,
        warnings do not.
        """
        tenant_id = require_tenant()
        now = self.clock()

        q = self.db.query(PriceList).filter(PriceList.tenant_id == tenant_id, PriceList.is_deleted.is_(False))
        if list_type is not None:
            q = q.filter(PriceList.type == list_type)
        price_lists = q.order_by(PriceList.priority.desc(), PriceList.id.asc()).all()

        result = PrecedenceValidationResult(type=list_type, price_lists_validated=len(price_lists), validated_at=now)
        if not price_lists:
            result.is_valid = False
            result.issues.append(
                PrecedenceIssue(
                    issue_type="NoPriceListsFound",
                    severity=Severity.CRITICAL,
                    description="No price lists found",
                    suggested_resolution="Create at least one active price list",
                )
            )
            return result

        active = [pl for pl in price_lists if pl.status == PriceListStatus.ACTIVE]
        defaults = [pl for pl in price_lists if pl.is_default]
        result.active_count = len(active)
        result.default_count = len(defaults)
        result.expired_count = sum(1 for pl in price_lists if pl.valid_to is not None and pl.valid_to < now)

        for type_, lists in _group(defaults, lambda pl: pl.type).items():
            if len(lists) > 1:
                result.issues.append(
                    PrecedenceIssue(
                        issue_type="MultipleDefaultPriceLists",
                        severity=Severity.HIGH,
                        description=f"{len(lists)} default price lists of type {type_.value}",
                        price_list_ids=[pl.id for pl in lists],
                        suggested_resolution="Keep a single default per type",
                    )
                )
        if not defaults and active:
            result.warnings.append(
                PrecedenceWarning(
                    warning_type="NoDefaultPriceList",
                    description="No default price list found",
                    price_list_ids=[pl.id for pl in active],
                    recommendation="Set one price list as default for fallback pricing",
                )
            )

        # lists competing in the same direction at the same priority
        same_priority = {
            key: lists
            for key, lists in _group(active, lambda pl: (pl.direction, pl.priority)).items()
            if len(lists) > 1
        }
        for (direction, priority), lists in same_priority.items():
            result.warnings.append(
                PrecedenceWarning(
                    warning_type="DuplicatePriorities",
                    description=f"{len(lists)} active {direction.value} price lists have priority {priority}",
                    price_list_ids=[pl.id for pl in lists],
                    recommendation="Give each list a distinct priority",
                )
            )

        if active and all(pl.valid_to is not None and pl.valid_to < now for pl in active):
            result.issues.append(
                PrecedenceIssue(
                    issue_type="ExpiredPriceListsOnly",
                    severity=Severity.CRITICAL,
                    description="All active price lists have expired",
                    price_list_ids=[pl.id for pl in active],
                    suggested_resolution="Extend validity dates or create new price lists",
                )
            )

        horizon = now + timedelta(days=EXPIRY_WARNING_DAYS)
        expiring = [pl for pl in active if pl.valid_to is not None and now <= pl.valid_to <= horizon]
        if expiring:
            result.warnings.append(
                PrecedenceWarning(
                    warning_type="SoonToExpire",
                    description=f"{len(expiring)} price list(s) expiring within {EXPIRY_WARNING_DAYS} days",
                    price_list_ids=[pl.id for pl in expiring],
                    recommendation="Extend validity dates or prepare replacement lists",
                )
            )

        if len(active) > MANY_ACTIVE_LISTS:
            result.warnings.append(
                PrecedenceWarning(
                    warning_type="ManyActivePriceLists",
                    description=f"{len(active)} active price lists",
                    recommendation="Archive unused price lists",
                )
            )

        for lists in same_priority.values():
            by_start = sorted(lists, key=lambda pl: pl.valid_from or datetime.min)
            for current, following in zip(by_start, by_start[1:]):
                if (current.valid_to or datetime.max) >= (following.valid_from or datetime.min):
                    result.issues.append(
                        PrecedenceIssue(
                            issue_type="OverlappingValidityPeriods",
                            severity=Severity.MEDIUM,
                            description=(
                                f"Price lists '{current.name}' and '{following.name}' overlap "
                                f"with the same priority"
                            ),
                            price_list_ids=[current.id, following.id],
                            suggested_resolution="Adjust validity dates or priorities",
                        )
                    )

        result.is_valid = not result.issues
        if len(defaults) == 1:
            result.recommended_default_price_list_id = defaults[0].id
        elif active:
            result.recommended_default_price_list_id = active[0].id

        logger.info(
            "price_list_precedence_validated",
            is_valid=result.is_valid,
            issues=len(result.issues),
            warnings=len(result.warnings),
        )
        return result


def _apply_outcome(
    product: Product,
    new_price: Decimal,
    request: ApplyPriceListToProductsRequest,
    categories: Optional[set],
) -> ApplyOutcome:
    if categories is not None and product.category_id not in categories:
        return ApplyOutcome.SKIPPED_CATEGORY
    old_price = product.default_price if product.default_price is not None else Decimal("0")
    if request.only_update_if_higher and new_price <= old_price:
        return ApplyOutcome.SKIPPED_NOT_HIGHER
    if request.only_update_if_lower and new_price >= old_price:
        return ApplyOutcome.SKIPPED_NOT_LOWER
    return ApplyOutcome.UPDATED


def _group(items, key) -> Dict[object, List[PriceList]]:
    grouped: Dict[object, List[PriceList]] = defaultdict(list)
    for item in items:
        grouped[key(item)].append(item)
    return grouped
