# catalog_pricing/services/price_resolution.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import PRICE_RESOLUTIONS
from catalog_pricing.models.catalog import BusinessParty, Product
from catalog_pricing.models.document import DocumentHeader
from catalog_pricing.models.enums import PriceListDirection, PriceListStatus, PriceSource
from catalog_pricing.models.price_list import PriceList, PriceListEntry
from catalog_pricing.schemas.pricing import ResolvedPrice

logger = structlog.get_logger(__name__)


class PriceResolutionService:
    """
    Passive price lookup used while composing documents.

    Sources are tried in a fixed order:
      1. ParameterList  - explicit price list id from the caller
      2. DocumentList   - price list attached to the document header
      3. PartyList      - the party's default sales/purchase list (by direction)
      4. GeneralList    - highest priority active list for the direction, valid at as_of
      5. DefaultPrice   - the product's own default price (0 when unset)

    The first tier that selects an existing list is final: when that list has no
    entry for the product the result is the product default price, lower tiers are
    never consulted.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve_price(
        self,
        product_id: str,
        business_party_id: Optional[str] = None,
        forced_price_list_id: Optional[str] = None,
        document_header_id: Optional[str] = None,
        direction: Optional[PriceListDirection] = None,
        as_of: Optional[datetime] = None,
    ) -> ResolvedPrice:
        tenant_id = require_tenant()
        as_of = as_of or utcnow()
        log = logger.bind(product_id=product_id)

        selected: Optional[PriceList] = None
        source = PriceSource.DEFAULT_PRICE

        if forced_price_list_id:
            selected = self._get_list(tenant_id, forced_price_list_id)
            if selected is not None:
                source = PriceSource.PARAMETER_LIST
            else:
                log.warning("forced_price_list_missing", price_list_id=forced_price_list_id)

        if selected is None and document_header_id:
            header = (
                self.db.query(DocumentHeader)
                .filter(
                    DocumentHeader.id == document_header_id,
                    DocumentHeader.tenant_id == tenant_id,
                    DocumentHeader.is_deleted.is_(False),
                )
                .first()
            )
            if header is not None:
                if direction is None and header.document_type is not None:
                    direction = (
                        PriceListDirection.INPUT
                        if header.document_type.is_stock_increase
                        else PriceListDirection.OUTPUT
                    )
                if header.price_list_id:
                    selected = self._get_list(tenant_id, header.price_list_id)
                    if selected is not None:
                        source = PriceSource.DOCUMENT_LIST

        direction = direction or PriceListDirection.OUTPUT

        if selected is None and business_party_id:
            party = (
                self.db.query(BusinessParty)
                .filter(
                    BusinessParty.id == business_party_id,
                    BusinessParty.tenant_id == tenant_id,
                    BusinessParty.is_deleted.is_(False),
                )
                .first()
            )
            if party is not None:
                party_list_id = (
                    party.default_sales_price_list_id
                    if direction == PriceListDirection.OUTPUT
                    else party.default_purchase_price_list_id
                )
                if party_list_id:
                    selected = self._get_list(tenant_id, party_list_id)
                    if selected is not None:
                        source = PriceSource.PARTY_LIST

        if selected is None:
            selected = self._general_list(tenant_id, direction, as_of)
            if selected is not None:
                source = PriceSource.GENERAL_LIST

        if selected is not None:
            entry = self._entry_for(tenant_id, selected.id, product_id)
            if entry is not None:
                result = ResolvedPrice(
                    price=entry.price,
                    source=source,
                    price_list_id=selected.id,
                    price_list_name=selected.name,
                    original_price=entry.price,
                    is_price_from_list=True,
                )
                self._record(tenant_id, result)
                log.debug("price_resolved", source=source.value, price_list_id=selected.id)
                return result

            # selected list is final even on a miss
            log.info(
                "price_list_entry_missing",
                tier=source.value,
                price_list_id=selected.id,
            )

        result = ResolvedPrice(
            price=self._default_price(tenant_id, product_id),
            source=PriceSource.DEFAULT_PRICE,
            is_price_from_list=False,
        )
        self._record(tenant_id, result)
        return result

    # ---------------------------
    # lookups
    # ---------------------------

    def _get_list(self, tenant_id: str, price_list_id: str) -> Optional[PriceList]:
        return (
            self.db.query(PriceList)
            .filter(
                PriceList.id == price_list_id,
                PriceList.tenant_id == tenant_id,
                PriceList.is_deleted.is_(False),
            )
            .first()
        )

    def _general_list(
        self, tenant_id: str, direction: PriceListDirection, as_of: datetime
    ) -> Optional[PriceList]:
        return (
            self.db.query(PriceList)
            .filter(
                PriceList.tenant_id == tenant_id,
                PriceList.is_deleted.is_(False),
                PriceList.status == PriceListStatus.ACTIVE,
                PriceList.direction == direction,
                (PriceList.valid_from.is_(None)) | (PriceList.valid_from <= as_of),
                (PriceList.valid_to.is_(None)) | (PriceList.valid_to >= as_of),
            )
            # ties broken by id so repeated calls pick the same list
            .order_by(PriceList.priority.desc(), PriceList.id.asc())
            .first()
        )

    def _entry_for(self, tenant_id: str, price_list_id: str, product_id: str) -> Optional[PriceListEntry]:
        return (
            self.db.query(PriceListEntry)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.price_list_id == price_list_id,
                PriceListEntry.product_id == product_id,
                PriceListEntry.is_deleted.is_(False),
            )
            .first()
        )

    def _default_price(self, tenant_id: str, product_id: str) -> Decimal:
        product = (
            self.db.query(Product)
            .filter(
                Product.id == product_id,
                Product.tenant_id == tenant_id,
                Product.is_deleted.is_(False),
            )
            .first()
        )
        if product is None:
            logger.warning("product_missing_for_default_price", product_id=product_id)
            return Decimal("0")
        return product.default_price if product.default_price is not None else Decimal("0")

    @staticmethod
    def _record(tenant_id: str, result: ResolvedPrice) -> None:
        PRICE_RESOLUTIONS.labels(source=result.source.value, tenant_id=tenant_id).inc()
