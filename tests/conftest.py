from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from catalog_pricing.core.tenant_context import tenant_scope
from catalog_pricing.db import init_db
from catalog_pricing.models import (
    AssignmentStatus,
    BusinessParty,
    BusinessPartyType,
    DocumentHeader,
    DocumentRow,
    DocumentType,
    PriceList,
    PriceListBusinessParty,
    PriceListDirection,
    PriceListEntry,
    PriceListType,
    Product,
    ProductSupplier,
)
from catalog_pricing.services.suggestion_cache import SuggestionCache

TENANT = "tenant-a"


@pytest.fixture
def db():
    # fresh in-memory database per test
    engine = create_engine("sqlite://")
    init_db(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def tenant():
    with tenant_scope(TENANT) as tenant_id:
        yield tenant_id


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 15, 12, 0, 0)


@pytest.fixture
def cache():
    return SuggestionCache()


class CatalogFactory:
    """Creates committed catalog rows for the current test tenant."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def product(self, code="P-001", name=None, default_price=None, **kw):
        return self._save(
            Product(
                tenant_id=TENANT,
                code=code,
                name=name or f"Product {code}",
                default_price=Decimal(default_price) if default_price is not None else None,
                **kw,
            )
        )

    def party(self, name="Acme", party_type=BusinessPartyType.CUSTOMER, **kw):
        return self._save(BusinessParty(tenant_id=TENANT, name=name, party_type=party_type, **kw))

    def price_list(
        self,
        name="Sales",
        direction=PriceListDirection.OUTPUT,
        priority=0,
        **kw,
    ):
        list_type = kw.pop(
            "type",
            PriceListType.SALES if direction == PriceListDirection.OUTPUT else PriceListType.PURCHASE,
        )
        return self._save(
            PriceList(
                tenant_id=TENANT,
                name=name,
                code=kw.pop("code", name.upper()),
                type=list_type,
                direction=direction,
                priority=priority,
                **kw,
            )
        )

    def entry(self, price_list, product, price, **kw):
        return self._save(
            PriceListEntry(
                tenant_id=TENANT,
                price_list_id=price_list.id,
                product_id=product.id,
                price=Decimal(price),
                **kw,
            )
        )

    def assign(self, price_list, party, discount=None, **kw):
        return self._save(
            PriceListBusinessParty(
                tenant_id=TENANT,
                price_list_id=price_list.id,
                business_party_id=party.id,
                global_discount_percentage=Decimal(discount) if discount is not None else None,
                status=AssignmentStatus.ACTIVE,
                **kw,
            )
        )

    def offer(self, product, supplier, unit_cost, lead_time_days=None, preferred=False, **kw):
        return self._save(
            ProductSupplier(
                tenant_id=TENANT,
                product_id=product.id,
                supplier_id=supplier.id,
                unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
                currency="EUR",
                lead_time_days=lead_time_days,
                preferred=preferred,
                **kw,
            )
        )

    def document_type(self, code="GR", is_stock_increase=True):
        return self._save(
            DocumentType(
                tenant_id=TENANT,
                code=code,
                name="Goods receipt" if is_stock_increase else "Sales invoice",
                is_stock_increase=is_stock_increase,
            )
        )

    def purchase(self, supplier, doc_type, date, rows, number=None, price_list=None):
        """rows: iterable of (product, quantity, unit_price)"""
        header = DocumentHeader(
            tenant_id=TENANT,
            document_type_id=doc_type.id,
            business_party_id=supplier.id if supplier is not None else None,
            price_list_id=price_list.id if price_list is not None else None,
            number=number or f"DOC-{date:%Y%m%d%H%M%S}",
            date=date,
        )
        self.db.add(header)
        self.db.flush()
        for product, quantity, unit_price in rows:
            self.db.add(
                DocumentRow(
                    tenant_id=TENANT,
                    document_header_id=header.id,
                    product_id=product.id,
                    quantity=Decimal(quantity),
                    unit_price=Decimal(unit_price),
                )
            )
        self.db.commit()
        return header


@pytest.fixture
def make(db):
    return CatalogFactory(db)
