# catalog_pricing/services/generation.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite
from catalog_pricing.calculators.aggregation import PurchaseOccurrence, aggregate_price
from catalog_pricing.calculators.rounding import reprice
from catalog_pricing.core import errors
from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.settings import Settings, get_settings
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import PRICE_LISTS_CREATED
from catalog_pricing.models.catalog import BusinessParty, Product
from catalog_pricing.models.document import DocumentHeader, DocumentRow, DocumentType
from catalog_pricing.models.enums import (
    AssignmentStatus,
    PriceListDirection,
    PriceListEntryStatus,
    PriceListStatus,
    PriceListType,
    ProductStatus,
)
from catalog_pricing.models.price_list import PriceList, PriceListBusinessParty, PriceListEntry
from catalog_pricing.schemas.generation import (
    GeneratedPricePreview,
    GenerateFromProductPricesRequest,
    GenerateFromPurchasesRequest,
    GenerationMetadata,
    GenerationPreview,
    UpdateFromPurchasesRequest,
    UpdateFromPurchasesResult,
    PostProcessingOptions,
)
from catalog_pricing.services.codes import resolve_code
from catalog_pricing.services.validation import validate_currency, validate_date_range

logger = structlog.get_logger(__name__)

D = Decimal

# prices closer than this are considered unchanged on refresh
PRICE_TOLERANCE = D("0.001")


@dataclass
class _ProductPurchases:
    product: Product
    occurrences: List[PurchaseOccurrence] = field(default_factory=list)

    @property
    def total_quantity(self) -> D:
        return sum((o.quantity for o in self.occurrences), D("0"))

    @property
    def last_purchase_date(self) -> datetime:
        return max(o.date for o in self.occurrences)


@dataclass
class _CalculatedPrice:
    purchases: _ProductPurchases
    aggregated: D
    price: D


class PriceListGenerationService:
    """
    Builds purchase price lists out of the supplier's stock-increase documents
    (goods receipts, purchase invoices) and keeps them in sync.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.audit = AuditLogger(db)

    # ---------------------------
    # from purchases
    # ---------------------------

    def preview_generate_from_purchases(self, request: GenerateFromPurchasesRequest) -> GenerationPreview:
        tenant_id = require_tenant()
        validate_date_range(request.from_date, request.to_date)
        supplier = self._get_supplier(tenant_id, request.supplier_id)

        purchases, documents = self._collect_purchases(
            tenant_id, supplier.id, request.from_date, request.to_date
        )
        calculated = self._calculate(purchases, request)

        previews = [_preview(c) for c in calculated.values()]
        previews.sort(key=lambda p: (p.product_code or "", p.product_id))
        return GenerationPreview(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            from_date=request.from_date,
            to_date=request.to_date,
            documents_analyzed=documents,
            products_found=len(previews),
            prices=previews,
            total_value=sum((p.calculated_price for p in previews), D("0")),
        )

    def generate_from_purchases(self, request: GenerateFromPurchasesRequest, current_user: str) -> str:
        tenant_id = require_tenant()
        validate_date_range(request.from_date, request.to_date)
        currency = validate_currency(request.currency, self.settings)
        supplier = self._get_supplier(tenant_id, request.supplier_id)

        purchases, documents = self._collect_purchases(
            tenant_id, supplier.id, request.from_date, request.to_date
        )
        calculated = self._calculate(purchases, request)
        if not calculated:
            raise BusinessRuleError(
                errors.NO_PURCHASE_DATA,
                f"No qualifying purchases from {supplier.name} between "
                f"{request.from_date:%Y-%m-%d} and {request.to_date:%Y-%m-%d}",
                {"supplier_id": supplier.id, "documents_analyzed": documents},
            )

        now = self.clock()
        metadata = GenerationMetadata(
            strategy=request.calculation_strategy,
            rounding=request.rounding_strategy,
            markup_percentage=request.markup_percentage,
            analysis_from=request.from_date,
            analysis_to=request.to_date,
            documents_analyzed=documents,
            products_generated=len(calculated),
            generated_at=now,
            generated_by=current_user,
        )

        price_list = PriceList(
            tenant_id=tenant_id,
            name=request.name,
            code=resolve_code(self.db, tenant_id, request.name, request.code),
            description=request.description
            or f"Generated from {documents} purchase documents of {supplier.name}",
            type=PriceListType.PURCHASE,
            direction=PriceListDirection.INPUT,
            status=PriceListStatus.ACTIVE,
            priority=request.priority,
            is_default=False,
            is_generated_from_documents=True,
            generation_metadata=metadata.model_dump_json(),
            last_synced_at=now,
            last_synced_by=current_user,
            created_by=current_user,
        )
        self.db.add(price_list)
        self.db.flush()

        for product_id, calc in calculated.items():
            self.db.add(self._new_entry(tenant_id, price_list.id, product_id, calc.price, currency, current_user))

        self.db.add(
            PriceListBusinessParty(
                tenant_id=tenant_id,
                price_list_id=price_list.id,
                business_party_id=supplier.id,
                is_primary=True,
                status=AssignmentStatus.ACTIVE,
                created_by=current_user,
            )
        )

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_GENERATED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=price_list.id,
                new_value={"name": price_list.name, "code": price_list.code, "entries": len(calculated)},
                meta=metadata.model_dump(mode="json"),
            )
        )
        self.db.commit()

        PRICE_LISTS_CREATED.labels(origin="purchases", tenant_id=tenant_id).inc()
        logger.info(
            "price_list_generated_from_purchases",
            price_list_id=price_list.id,
            supplier_id=supplier.id,
            strategy=request.calculation_strategy.value,
            documents=documents,
            products=len(calculated),
        )
        return price_list.id

    def preview_update_from_purchases(self, request: UpdateFromPurchasesRequest) -> GenerationPreview:
        """What update_from_purchases would write, with each product's current list price."""
        tenant_id = require_tenant()
        price_list, supplier, from_date, to_date, _ = self._sync_target(tenant_id, request)

        purchases, documents = self._collect_purchases(tenant_id, supplier.id, from_date, to_date)
        calculated = self._calculate(purchases, request)
        existing = self._live_entries(tenant_id, price_list.id)

        previews = []
        for product_id, calc in calculated.items():
            preview = _preview(calc)
            if product_id in existing:
                preview.existing_price = existing[product_id].price
            previews.append(preview)
        previews.sort(key=lambda p: (p.product_code or "", p.product_id))

        return GenerationPreview(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            price_list_id=price_list.id,
            from_date=from_date,
            to_date=to_date,
            documents_analyzed=documents,
            products_found=len(previews),
            prices=previews,
            total_value=sum((p.calculated_price for p in previews), D("0")),
            obsolete_product_ids=sorted(pid for pid in existing if pid not in purchases),
        )

    def update_from_purchases(
        self, request: UpdateFromPurchasesRequest, current_user: str
    ) -> UpdateFromPurchasesResult:
        tenant_id = require_tenant()
        price_list, supplier, from_date, to_date, now = self._sync_target(tenant_id, request)

        purchases, documents = self._collect_purchases(tenant_id, supplier.id, from_date, to_date)
        calculated = self._calculate(purchases, request)
        existing = self._live_entries(tenant_id, price_list.id)
        currency = validate_currency(None, self.settings)

        result = UpdateFromPurchasesResult(price_list_id=price_list.id, synced_at=now)
        for product_id, calc in calculated.items():
            entry = existing.get(product_id)
            if entry is not None:
                if abs(entry.price - calc.price) > PRICE_TOLERANCE:
                    entry.price = calc.price
                    entry.modified_by = current_user
                    result.prices_updated += 1
                else:
                    result.prices_unchanged += 1
            elif request.add_new_products:
                self.db.add(self._new_entry(tenant_id, price_list.id, product_id, calc.price, currency, current_user))
                result.prices_added += 1
            else:
                result.warnings.append(
                    f"Product {calc.purchases.product.code} was purchased in the period "
                    f"but is not in the price list (add_new_products is off)"
                )

        if request.remove_obsolete_products:
            # obsolete: no purchase at all in the window; filtered-out products keep their entry
            for product_id, entry in existing.items():
                if product_id in purchases:
                    continue
                entry.soft_delete(current_user)
                entry.status = PriceListEntryStatus.DELETED
                result.prices_removed += 1

        metadata = GenerationMetadata(
            strategy=request.calculation_strategy,
            rounding=request.rounding_strategy,
            markup_percentage=request.markup_percentage,
            analysis_from=from_date,
            analysis_to=to_date,
            documents_analyzed=documents,
            products_generated=len(calculated),
            generated_at=now,
            generated_by=current_user,
        )
        price_list.is_generated_from_documents = True
        price_list.generation_metadata = metadata.model_dump_json()
        price_list.last_synced_at = now
        price_list.last_synced_by = current_user

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_SYNCED_FROM_PURCHASES",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=price_list.id,
                meta={
                    **metadata.model_dump(mode="json"),
                    "updated": result.prices_updated,
                    "added": result.prices_added,
                    "removed": result.prices_removed,
                },
            )
        )
        self.db.commit()

        logger.info(
            "price_list_updated_from_purchases",
            price_list_id=price_list.id,
            updated=result.prices_updated,
            added=result.prices_added,
            removed=result.prices_removed,
            unchanged=result.prices_unchanged,
        )
        return result

    def _sync_target(
        self, tenant_id: str, request: UpdateFromPurchasesRequest
    ) -> Tuple[PriceList, BusinessParty, datetime, datetime, datetime]:
        """The list to refresh, its supplier and the analysis window."""
        price_list = (
            self.db.query(PriceList)
            .filter(
                PriceList.id == request.price_list_id,
                PriceList.tenant_id == tenant_id,
                PriceList.is_deleted.is_(False),
            )
            .first()
        )
        if price_list is None:
            raise BusinessRuleError(errors.PRICE_LIST_NOT_FOUND, f"Price list {request.price_list_id} not found")

        assignment = (
            self.db.query(PriceListBusinessParty)
            .filter(
                PriceListBusinessParty.tenant_id == tenant_id,
                PriceListBusinessParty.price_list_id == price_list.id,
                PriceListBusinessParty.is_deleted.is_(False),
                PriceListBusinessParty.status == AssignmentStatus.ACTIVE,
            )
            .order_by(PriceListBusinessParty.is_primary.desc(), PriceListBusinessParty.created_at)
            .first()
        )
        if assignment is None:
            raise BusinessRuleError(
                errors.NO_SUPPLIER_ASSIGNED,
                f"Price list {price_list.name} has no supplier assigned",
                {"price_list_id": price_list.id},
            )

        now = self.clock()
        to_date = request.to_date or now
        from_date = request.from_date or to_date - timedelta(days=self.settings.UPDATE_FROM_PURCHASES_DEFAULT_DAYS)
        validate_date_range(from_date, to_date)
        supplier = self._get_supplier(tenant_id, assignment.business_party_id)

        return price_list, supplier, from_date, to_date, now

    def _live_entries(self, tenant_id: str, price_list_id: str) -> Dict[str, PriceListEntry]:
        return {
            e.product_id: e
            for e in self.db.query(PriceListEntry)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.price_list_id == price_list_id,
                PriceListEntry.is_deleted.is_(False),
            )
            .all()
        }

    # ---------------------------
    # from product default prices
    # ---------------------------

    def generate_from_product_prices(self, request: GenerateFromProductPricesRequest, current_user: str) -> str:
        tenant_id = require_tenant()
        currency = validate_currency(request.currency, self.settings)

        q = self.db.query(Product).filter(
            Product.tenant_id == tenant_id,
            Product.is_deleted.is_(False),
            Product.default_price.is_not(None),
            Product.default_price > 0,
        )
        if request.only_active_products:
            q = q.filter(Product.status == ProductStatus.ACTIVE)
        if request.filter_by_category_ids:
            q = q.filter(Product.category_id.in_(request.filter_by_category_ids))
        products = q.order_by(Product.code).all()

        prices: List[Tuple[Product, D]] = []
        for product in products:
            price = reprice(product.default_price, request.markup_percentage, request.rounding_strategy)
            if D("0") <= price <= self.settings.MAX_PRICE:
                prices.append((product, price))
        if not prices:
            raise BusinessRuleError(errors.NO_PRODUCTS_FOUND, "No products with a default price match the filters")

        now = self.clock()
        metadata = GenerationMetadata(
            rounding=request.rounding_strategy,
            markup_percentage=request.markup_percentage,
            products_generated=len(prices),
            source="ProductPrices",
            generated_at=now,
            generated_by=current_user,
        )
        price_list = PriceList(
            tenant_id=tenant_id,
            name=request.name,
            code=resolve_code(self.db, tenant_id, request.name, request.code),
            description=request.description,
            type=request.type,
            direction=request.direction,
            status=PriceListStatus.ACTIVE,
            priority=request.priority,
            is_default=False,
            is_generated_from_documents=False,
            generation_metadata=metadata.model_dump_json(),
            created_by=current_user,
        )
        self.db.add(price_list)
        self.db.flush()

        for product, price in prices:
            self.db.add(self._new_entry(tenant_id, price_list.id, product.id, price, currency, current_user))

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_GENERATED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=price_list.id,
                new_value={"name": price_list.name, "code": price_list.code, "entries": len(prices)},
                meta=metadata.model_dump(mode="json"),
            )
        )
        self.db.commit()

        PRICE_LISTS_CREATED.labels(origin="product_prices", tenant_id=tenant_id).inc()
        logger.info("price_list_generated_from_product_prices", price_list_id=price_list.id, products=len(prices))
        return price_list.id

    # ---------------------------
    # helpers
    # ---------------------------

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

    def _collect_purchases(
        self,
        tenant_id: str,
        supplier_id: str,
        from_date: datetime,
        to_date: datetime,
    ) -> Tuple[Dict[str, _ProductPurchases], int]:
        """Stock-increase rows of the supplier in [from_date, to_date], grouped by product."""
        q = (
            self.db.query(DocumentRow, DocumentHeader, Product)
            .join(DocumentHeader, DocumentRow.document_header_id == DocumentHeader.id)
            .join(DocumentType, DocumentHeader.document_type_id == DocumentType.id)
            .join(Product, DocumentRow.product_id == Product.id)
            .filter(
                DocumentHeader.tenant_id == tenant_id,
                DocumentHeader.business_party_id == supplier_id,
                DocumentHeader.is_deleted.is_(False),
                DocumentHeader.date >= from_date,
                DocumentHeader.date <= to_date,
                DocumentType.is_stock_increase.is_(True),
                DocumentRow.is_deleted.is_(False),
                DocumentRow.product_id.is_not(None),
                DocumentRow.unit_price > 0,
                Product.is_deleted.is_(False),
            )
        )

        grouped: Dict[str, _ProductPurchases] = {}
        documents = set()
        for row, header, product in q.all():
            documents.add(header.id)
            bucket = grouped.setdefault(product.id, _ProductPurchases(product=product))
            bucket.occurrences.append(
                PurchaseOccurrence(
                    document_id=header.id,
                    document_number=header.number,
                    date=header.date,
                    quantity=row.quantity,
                    unit_price=row.unit_price,
                )
            )

        return grouped, len(documents)

    def _calculate(self, purchases: Dict[str, _ProductPurchases], post: PostProcessingOptions) -> Dict[str, _CalculatedPrice]:
        """Aggregate, reprice (markup then rounding), then drop products failing the filters."""
        categories = set(post.filter_by_category_ids) if post.filter_by_category_ids else None

        calculated: Dict[str, _CalculatedPrice] = {}
        for product_id, bucket in purchases.items():
            aggregated = aggregate_price(bucket.occurrences, post.calculation_strategy)
            price = reprice(aggregated, post.markup_percentage, post.rounding_strategy)

            product = bucket.product
            if categories is not None and product.category_id not in categories:
                continue
            if post.minimum_quantity is not None and bucket.total_quantity < post.minimum_quantity:
                continue
            if post.only_active_products and product.status != ProductStatus.ACTIVE:
                continue
            if price < 0 or price > self.settings.MAX_PRICE:
                logger.warning("generated_price_out_of_range", product_id=product_id, price=str(price))
                continue

            calculated[product_id] = _CalculatedPrice(purchases=bucket, aggregated=aggregated, price=price)
        return calculated

    @staticmethod
    def _new_entry(
        tenant_id: str, price_list_id: str, product_id: str, price: D, currency: str, current_user: str
    ) -> PriceListEntry:
        return PriceListEntry(
            tenant_id=tenant_id,
            price_list_id=price_list_id,
            product_id=product_id,
            price=price,
            currency=currency,
            min_quantity=1,
            max_quantity=0,
            status=PriceListEntryStatus.ACTIVE,
            created_by=current_user,
        )


def _preview(calc: _CalculatedPrice) -> GeneratedPricePreview:
    product = calc.purchases.product
    return GeneratedPricePreview(
        product_id=product.id,
        product_code=product.code,
        product_name=product.name,
        aggregated_price=calc.aggregated,
        calculated_price=calc.price,
        purchase_count=len(calc.purchases.occurrences),
        total_quantity=calc.purchases.total_quantity,
        last_purchase_date=calc.purchases.last_purchase_date,
    )
