# catalog_pricing/services/duplication.py
from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite
from catalog_pricing.calculators.rounding import reprice
from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.settings import Settings, get_settings
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import PRICE_LISTS_CREATED
from catalog_pricing.models.catalog import Product
from catalog_pricing.models.enums import AssignmentStatus, PriceListEntryStatus, ProductStatus
from catalog_pricing.models.price_list import PriceList, PriceListBusinessParty, PriceListEntry
from catalog_pricing.schemas.duplication import (
    DuplicatePriceListOptions,
    DuplicatePriceListResult,
    PriceListSummary,
)
from catalog_pricing.services.codes import resolve_code
from catalog_pricing.services.validation import validate_date_range

logger = structlog.get_logger(__name__)


class PriceListDuplicationService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.audit = AuditLogger(db)

    def duplicate(
        self,
        source_price_list_id: str,
        options: DuplicatePriceListOptions,
        current_user: str,
    ) -> DuplicatePriceListResult:
        """
        Copy a price list, optionally repricing (markup, then rounding) and filtering
        its entries. The copy is never the default list.
        """
        tenant_id = require_tenant()

        source = (
            self.db.query(PriceList)
            .filter(
                PriceList.id == source_price_list_id,
                PriceList.tenant_id == tenant_id,
                PriceList.is_deleted.is_(False),
            )
            .first()
        )
        if source is None:
            raise BusinessRuleError(
                errors.PRICE_LIST_NOT_FOUND, f"Source price list {source_price_list_id} not found"
            )

        valid_from = options.new_valid_from if options.new_valid_from is not None else source.valid_from
        valid_to = options.new_valid_to if options.new_valid_to is not None else source.valid_to
        validate_date_range(valid_from, valid_to)

        code = resolve_code(self.db, tenant_id, options.name, options.code)

        copy = PriceList(
            tenant_id=tenant_id,
            name=options.name,
            code=code,
            description=options.description if options.description is not None else source.description,
            type=options.new_type or source.type,
            direction=options.new_direction or source.direction,
            status=options.new_status or source.status,
            priority=options.new_priority if options.new_priority is not None else source.priority,
            valid_from=valid_from,
            valid_to=valid_to,
            is_default=False,
            created_by=current_user,
        )
        self.db.add(copy)
        self.db.flush()

        source_entries = (
            self.db.query(PriceListEntry, Product)
            .join(Product, PriceListEntry.product_id == Product.id)
            .filter(
                PriceListEntry.tenant_id == tenant_id,
                PriceListEntry.price_list_id == source.id,
                PriceListEntry.is_deleted.is_(False),
                PriceListEntry.status == PriceListEntryStatus.ACTIVE,
            )
            .order_by(Product.code)
            .all()
        )

        copied = 0
        if options.copy_prices:
            product_filter = set(options.filter_by_product_ids) if options.filter_by_product_ids else None
            category_filter = set(options.filter_by_category_ids) if options.filter_by_category_ids else None

            for entry, product in source_entries:
                if product_filter is not None and product.id not in product_filter:
                    continue
                if category_filter is not None and product.category_id not in category_filter:
                    continue
                if options.only_active_products and (product.is_deleted or product.status != ProductStatus.ACTIVE):
                    continue

                price = reprice(entry.price, options.apply_markup_percentage, options.rounding_strategy)
                if price < 0 or price > self.settings.MAX_PRICE:
                    logger.warning(
                        "duplicated_price_out_of_range",
                        product_id=product.id,
                        source_price=str(entry.price),
                        new_price=str(price),
                    )
                    continue

                self.db.add(
                    PriceListEntry(
                        tenant_id=tenant_id,
                        price_list_id=copy.id,
                        product_id=product.id,
                        price=price,
                        currency=entry.currency,
                        min_quantity=entry.min_quantity,
                        max_quantity=entry.max_quantity,
                        lead_time_days=entry.lead_time_days,
                        minimum_order_quantity=entry.minimum_order_quantity,
                        status=PriceListEntryStatus.ACTIVE,
                        notes=entry.notes,
                        created_by=current_user,
                    )
                )
                copied += 1

        copied_parties = 0
        if options.copy_business_parties:
            assignments = (
                self.db.query(PriceListBusinessParty)
                .filter(
                    PriceListBusinessParty.tenant_id == tenant_id,
                    PriceListBusinessParty.price_list_id == source.id,
                    PriceListBusinessParty.is_deleted.is_(False),
                )
                .all()
            )
            for a in assignments:
                self.db.add(
                    PriceListBusinessParty(
                        tenant_id=tenant_id,
                        price_list_id=copy.id,
                        business_party_id=a.business_party_id,
                        is_primary=a.is_primary,
                        override_priority=a.override_priority,
                        specific_valid_from=a.specific_valid_from,
                        specific_valid_to=a.specific_valid_to,
                        global_discount_percentage=a.global_discount_percentage,
                        status=AssignmentStatus.ACTIVE,
                        notes=a.notes,
                        created_by=current_user,
                    )
                )
                copied_parties += 1

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_DUPLICATED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceList",
                target_id=copy.id,
                new_value={"name": copy.name, "code": copy.code, "entries": copied},
                meta={
                    "source_price_list_id": source.id,
                    "markup_percentage": options.apply_markup_percentage,
                    "rounding": options.rounding_strategy.value if options.rounding_strategy else None,
                    "business_parties": copied_parties,
                },
            )
        )
        self.db.commit()
        self.db.refresh(copy)

        PRICE_LISTS_CREATED.labels(origin="duplicate", tenant_id=tenant_id).inc()
        logger.info(
            "price_list_duplicated",
            source_price_list_id=source.id,
            price_list_id=copy.id,
            copied=copied,
            skipped=len(source_entries) - copied,
        )

        return DuplicatePriceListResult(
            new_price_list=PriceListSummary.model_validate(copy),
            source_price_count=len(source_entries),
            copied_price_count=copied,
            skipped_price_count=len(source_entries) - copied,
            copied_business_party_count=copied_parties,
            applied_markup_percentage=options.apply_markup_percentage,
            applied_rounding_strategy=options.rounding_strategy,
        )
