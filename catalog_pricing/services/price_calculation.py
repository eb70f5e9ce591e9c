# catalog_pricing/services/price_calculation.py
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Set, Tuple

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.core import errors
from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import PRODUCT_PRICE_LOOKUPS
from catalog_pricing.models.catalog import BusinessParty, Product
from catalog_pricing.models.enums import (
    AssignmentStatus,
    PriceApplicationMode,
    PriceListDirection,
    PriceListEntryStatus,
    PriceListStatus,
)
from catalog_pricing.models.price_list import PriceList, PriceListBusinessParty, PriceListEntry
from catalog_pricing.schemas.pricing import (
    AvailablePriceList,
    ProductPriceRequest,
    ProductPriceResult,
    PurchasePriceComparison,
)
from catalog_pricing.services.validation import validate_price

logger = structlog.get_logger(__name__)

D = Decimal

Candidate = Tuple[PriceListEntry, PriceList]


def apply_discount(price: D, discount_percentage: Optional[D]) -> D:
    if not discount_percentage:
        return price
    return (price * (D("100") - discount_percentage) / D("100")).quantize(D("0.01"), rounding=ROUND_HALF_UP)


class PriceCalculationService:
    """
    Customer/supplier facing price lookup with selectable application modes:

    - Automatic: party-assigned list, else best general list, else product default
    - ForcedPriceList: the forced list must price the product, otherwise the call fails
    - Manual: caller supplied price, price lists are ignored
    - HybridForcedWithOverrides: manual price when given, forced list otherwise

    Unlike PriceResolutionService, a forced list without the product is an error here.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product_price(self, request: ProductPriceRequest) -> ProductPriceResult:
        tenant_id = require_tenant()
        as_of = request.as_of or utcnow()

        product = self._get_product(tenant_id, request.product_id)
        party = self._find_party(tenant_id, request.business_party_id) if request.business_party_id else None

        mode = request.mode
        if mode is None and party is not None:
            mode = party.default_price_application_mode
        mode = mode or PriceApplicationMode.AUTOMATIC

        search_path = [f"mode:{mode.value}"]

        if mode == PriceApplicationMode.MANUAL:
            result = self._manual(product, request, mode, search_path, as_of)
        elif mode == PriceApplicationMode.FORCED_PRICE_LIST:
            result = self._forced(tenant_id, product, party, request, mode, search_path, as_of)
        elif mode == PriceApplicationMode.HYBRID_FORCED_WITH_OVERRIDES:
            if request.manual_price is not None and request.manual_price > 0:
                search_path.append("hybrid:manual_override")
                result = self._manual(product, request, mode, search_path, as_of)
            else:
                search_path.append("hybrid:forced_list")
                result = self._forced(tenant_id, product, party, request, mode, search_path, as_of)
        else:
            result = self._automatic(tenant_id, product, party, request, search_path, as_of)

        PRODUCT_PRICE_LOOKUPS.labels(mode=mode.value, tenant_id=tenant_id).inc()
        logger.info(
            "product_price_calculated",
            product_id=product.id,
            business_party_id=request.business_party_id,
            mode=mode.value,
            final_price=str(result.final_price),
            price_list_id=result.applied_price_list_id,
        )
        return result

    def get_purchase_price_comparison(
        self,
        product_id: str,
        quantity: int = 1,
        as_of: Optional[datetime] = None,
    ) -> List[PurchasePriceComparison]:
        """Every supplier's effective purchase price for the product, cheapest first."""
        tenant_id = require_tenant()
        as_of = as_of or utcnow()
        self._get_product(tenant_id, product_id)

        comparisons: List[PurchasePriceComparison] = []
        for entry, price_list in self._candidates(
            tenant_id, product_id, quantity, as_of, direction=PriceListDirection.INPUT
        ):
            for assignment in self._live_assignments(tenant_id, price_list_id=price_list.id):
                if not assignment.is_valid_at(as_of):
                    continue
                supplier = assignment.business_party
                if supplier is None or supplier.is_deleted:
                    continue
                comparisons.append(
                    PurchasePriceComparison(
                        supplier_id=supplier.id,
                        supplier_name=supplier.name,
                        price_list_id=price_list.id,
                        price_list_name=price_list.name,
                        base_price=entry.price,
                        discount_percentage=assignment.global_discount_percentage,
                        effective_price=apply_discount(entry.price, assignment.global_discount_percentage),
                        currency=entry.currency,
                        lead_time_days=entry.lead_time_days,
                        minimum_order_quantity=entry.minimum_order_quantity,
                    )
                )

        comparisons.sort(key=lambda c: (c.effective_price, c.supplier_name, c.price_list_id))
        return comparisons

    # ---------------------------
    # modes
    # ---------------------------

    def _manual(self, product, request, mode, search_path, as_of) -> ProductPriceResult:
        if request.manual_price is None or request.manual_price <= 0:
            raise BusinessRuleError(
                errors.MANUAL_PRICE_REQUIRED,
                "A manual price greater than zero is required for manual price application",
                {"product_id": product.id},
            )
        validate_price(request.manual_price)
        search_path.append("manual_price")
        return ProductPriceResult(
            product_id=product.id,
            final_price=request.manual_price,
            applied_mode=mode,
            is_manual=True,
            search_path=search_path,
            calculated_at=as_of,
        )

    def _forced(self, tenant_id, product, party, request, mode, search_path, as_of) -> ProductPriceResult:
        price_list_id = request.forced_price_list_id or (party.forced_price_list_id if party else None)
        if not price_list_id:
            raise BusinessRuleError(
                errors.FORCED_PRICE_LIST_REQUIRED,
                "A forced price list is required but none was given or configured on the business party",
                {"product_id": product.id, "business_party_id": party.id if party else None},
            )

        price_list = (
            self.db.query(PriceList)
            .filter(
                PriceList.id == price_list_id,
                PriceList.tenant_id == tenant_id,
                PriceList.is_deleted.is_(False),
            )
            .first()
        )
        if price_list is None:
            raise BusinessRuleError(
                errors.PRICE_LIST_NOT_FOUND,
                f"Price list {price_list_id} not found",
                {"price_list_id": price_list_id},
            )

        matches = self._candidates(
            tenant_id, product.id, request.quantity, as_of, price_list_id=price_list.id
        )
        if not matches:
            raise BusinessRuleError(
                errors.PRICE_LIST_PRODUCT_NOT_FOUND,
                f"Product {product.id} has no applicable price in forced price list {price_list.name}",
                {"product_id": product.id, "price_list_id": price_list.id, "quantity": request.quantity},
            )
        entry, _ = matches[0]

        discount = None
        if party is not None:
            assignment = next(
                (
                    a
                    for a in self._live_assignments(tenant_id, price_list_id=price_list.id)
                    if a.business_party_id == party.id and a.is_valid_at(as_of)
                ),
                None,
            )
            if assignment is not None:
                discount = assignment.global_discount_percentage

        search_path.append(f"forced_list:{price_list.name}")
        return ProductPriceResult(
            product_id=product.id,
            final_price=apply_discount(entry.price, discount),
            currency=entry.currency,
            base_price_from_list=entry.price,
            applied_discount_percentage=discount,
            applied_price_list_id=price_list.id,
            applied_price_list_name=price_list.name,
            applied_mode=mode,
            is_price_list_forced=True,
            search_path=search_path,
            calculated_at=as_of,
        )

    def _automatic(self, tenant_id, product, party, request, search_path, as_of) -> ProductPriceResult:
        candidates = self._candidates(tenant_id, product.id, request.quantity, as_of, direction=request.direction)

        assigned_anywhere = self._assigned_list_ids(tenant_id)
        party_assignments: Dict[str, PriceListBusinessParty] = {}
        if party is not None:
            party_assignments = {
                a.price_list_id: a
                for a in self._live_assignments(tenant_id, business_party_id=party.id)
                if a.is_valid_at(as_of)
            }

        assigned: List[Tuple[PriceListEntry, PriceList, PriceListBusinessParty]] = []
        general: List[Candidate] = []
        for entry, price_list in candidates:
            if price_list.id in party_assignments:
                assigned.append((entry, price_list, party_assignments[price_list.id]))
            elif price_list.id not in assigned_anywhere:
                general.append((entry, price_list))

        available = [
            AvailablePriceList(
                price_list_id=pl.id,
                price_list_name=pl.name,
                price=e.price,
                currency=e.currency,
                priority=_effective_priority(pl, a),
                is_assigned_to_party=True,
                discount_percentage=a.global_discount_percentage,
            )
            for e, pl, a in assigned
        ] + [
            AvailablePriceList(
                price_list_id=pl.id,
                price_list_name=pl.name,
                price=e.price,
                currency=e.currency,
                priority=pl.priority,
            )
            for e, pl in general
        ]
        available.sort(key=lambda a: (-a.priority, a.price_list_id))

        base = dict(
            product_id=product.id,
            applied_mode=PriceApplicationMode.AUTOMATIC,
            available_price_lists=available,
            search_path=search_path,
            calculated_at=as_of,
        )

        if assigned:
            assigned.sort(key=lambda c: (-_effective_priority(c[1], c[2]), not c[2].is_primary, c[1].id))
            entry, price_list, assignment = assigned[0]
            discount = assignment.global_discount_percentage
            search_path.append(f"party_list:{price_list.name}")
            return ProductPriceResult(
                final_price=apply_discount(entry.price, discount),
                currency=entry.currency,
                base_price_from_list=entry.price,
                applied_discount_percentage=discount,
                applied_price_list_id=price_list.id,
                applied_price_list_name=price_list.name,
                **base,
            )

        if party is not None:
            search_path.append("party_list:none")

        if general:
            general.sort(key=lambda c: (-c[1].priority, c[1].id))
            entry, price_list = general[0]
            search_path.append(f"general_list:{price_list.name}")
            return ProductPriceResult(
                final_price=entry.price,
                currency=entry.currency,
                base_price_from_list=entry.price,
                applied_price_list_id=price_list.id,
                applied_price_list_name=price_list.name,
                **base,
            )

        search_path.append("default_price")
        return ProductPriceResult(
            final_price=product.default_price if product.default_price is not None else D("0"),
            **base,
        )

    # ---------------------------
    # queries
    # ---------------------------

    def _get_product(self, tenant_id: str, product_id: str) -> Product:
        product = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.tenant_id == tenant_id, Product.is_deleted.is_(False))
            .first()
        )
        if product is None:
            raise BusinessRuleError(errors.PRODUCT_NOT_FOUND, f"Product {product_id} not found")
        return product

    def _find_party(self, tenant_id: str, business_party_id: str) -> Optional[BusinessParty]:
        """An unknown party prices like an anonymous request."""
        party = (
            self.db.query(BusinessParty)
            .filter(
                BusinessParty.id == business_party_id,
                BusinessParty.tenant_id == tenant_id,
                BusinessParty.is_deleted.is_(False),
            )
            .first()
        )
        if party is None:
            logger.warning("business_party_not_found_pricing_without_party", business_party_id=business_party_id)
        return party

    def _candidates(
        self,
        tenant_id: str,
        product_id: str,
        quantity: int,
        as_of: datetime,
        direction: Optional[PriceListDirection] = None,
        price_list_id: Optional[str] = None,
    ) -> List[Candidate]:
        """Live entries for the product in active lists valid at as_of, matching the quantity."""
        q = (
            self.db.query(PriceListEntry, PriceList)
            .join(PriceList, PriceListEntry.price_list_id == PriceList.id)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.product_id == product_id,
                PriceListEntry.is_deleted.is_(False),
                PriceListEntry.status == PriceListEntryStatus.ACTIVE,
                PriceList.is_deleted.is_(False),
                PriceList.status == PriceListStatus.ACTIVE,
                (PriceList.valid_from.is_(None)) | (PriceList.valid_from <= as_of),
                (PriceList.valid_to.is_(None)) | (PriceList.valid_to >= as_of),
            )
        )
        if direction is not None:
            q = q.filter(PriceList.direction == direction)
        if price_list_id is not None:
            q = q.filter(PriceList.id == price_list_id)

        rows = [(entry, pl) for entry, pl in q.all() if entry.accepts_quantity(quantity)]
        # most specific tier first: a higher min_quantity is a volume price
        rows.sort(key=lambda r: (-r[1].priority, -r[0].min_quantity, r[1].id))
        return rows

    def _live_assignments(
        self,
        tenant_id: str,
        price_list_id: Optional[str] = None,
        business_party_id: Optional[str] = None,
    ) -> List[PriceListBusinessParty]:
        q = self.db.query(PriceListBusinessParty).filter(
            PriceListBusinessParty.tenant_id == tenant_id,
            PriceListBusinessParty.is_deleted.is_(False),
            PriceListBusinessParty.status == AssignmentStatus.ACTIVE,
        )
        if price_list_id is not None:
            q = q.filter(PriceListBusinessParty.price_list_id == price_list_id)
        if business_party_id is not None:
            q = q.filter(PriceListBusinessParty.business_party_id == business_party_id)
        return q.all()

    def _assigned_list_ids(self, tenant_id: str) -> Set[str]:
        rows = (
            self.db.query(PriceListBusinessParty.price_list_id)
            .filter(
                PriceListBusinessParty.tenant_id == tenant_id,
                PriceListBusinessParty.is_deleted.is_(False),
                PriceListBusinessParty.status == AssignmentStatus.ACTIVE,
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}


def _effective_priority(price_list: PriceList, assignment: PriceListBusinessParty) -> int:
    if assignment.override_priority is not None:
        return assignment.override_priority
    return price_list.priority
