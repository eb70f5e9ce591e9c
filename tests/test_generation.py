import json
from datetime import datetime
from decimal import Decimal

import pytest

from catalog_pricing.calculators.aggregation import PriceCalculationStrategy
from catalog_pricing.calculators.rounding import RoundingStrategy
from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models import (
    BusinessPartyType,
    PriceList,
    PriceListBusinessParty,
    PriceListDirection,
    PriceListEntry,
    PriceListType,
)
from catalog_pricing.schemas.generation import (
    GenerateFromProductPricesRequest,
    GenerateFromPurchasesRequest,
    UpdateFromPurchasesRequest,
)
from catalog_pricing.services.generation import PriceListGenerationService

D = Decimal

JAN_1 = datetime(2025, 1, 1)
JAN_31 = datetime(2025, 1, 31, 23, 59)


@pytest.fixture
def svc(db, fixed_now):
    return PriceListGenerationService(db, clock=lambda: fixed_now)


@pytest.fixture
def purchases(make):
    supplier = make.party("Supplier", party_type=BusinessPartyType.SUPPLIER)
    receipt = make.document_type("GR", is_stock_increase=True)
    invoice = make.document_type("INV", is_stock_increase=False)
    a = make.product(code="A")
    b = make.product(code="B")
    make.purchase(supplier, receipt, datetime(2025, 1, 5), [(a, "10", "10"), (b, "2", "20")], number="GR-1")
    make.purchase(supplier, receipt, datetime(2025, 1, 10), [(a, "5", "20")], number="GR-2")
    # sales documents never feed purchase prices
    make.purchase(supplier, invoice, datetime(2025, 1, 11), [(a, "1", "99")], number="INV-1")
    return supplier, receipt, a, b


def _request(supplier, **kw):
    return GenerateFromPurchasesRequest(
        supplier_id=supplier.id, name="Supplier purchases", from_date=JAN_1, to_date=JAN_31, **kw
    )


def _entry_prices(db, price_list_id):
    rows = (
        db.query(PriceListEntry)
        .filter(PriceListEntry.price_list_id == price_list_id, PriceListEntry.is_deleted.is_(False))
        .all()
    )
    return {r.product_id: r.price for r in rows}


def test_preview_aggregates_per_product(svc, purchases):
    supplier, _, a, b = purchases

    preview = svc.preview_generate_from_purchases(
        _request(supplier, calculation_strategy=PriceCalculationStrategy.WEIGHTED_AVERAGE_PRICE)
    )

    assert preview.documents_analyzed == 2
    assert preview.products_found == 2
    by_product = {p.product_id: p for p in preview.prices}
    assert by_product[a.id].aggregated_price.quantize(D("0.01")) == D("13.33")
    assert by_product[a.id].purchase_count == 2
    assert by_product[a.id].total_quantity == D("15")
    assert by_product[b.id].calculated_price == D("20")


def test_generate_creates_purchase_list(svc, db, purchases):
    supplier, _, a, b = purchases

    price_list_id = svc.generate_from_purchases(
        _request(supplier, markup_percentage=D("10"), rounding_strategy=RoundingStrategy.TO_NEAREST_EURO),
        "erin",
    )

    price_list = db.get(PriceList, price_list_id)
    assert price_list.type == PriceListType.PURCHASE
    assert price_list.direction == PriceListDirection.INPUT
    assert price_list.is_generated_from_documents is True
    assert price_list.code == "SUPPLIER-PURCHASES"
    metadata = json.loads(price_list.generation_metadata)
    assert metadata["strategy"] == "LastPurchasePrice"
    assert metadata["documents_analyzed"] == 2
    # last purchase 20 -> +10% -> 22
    assert _entry_prices(db, price_list_id) == {a.id: D("22"), b.id: D("22")}

    assignment = db.query(PriceListBusinessParty).filter_by(price_list_id=price_list_id).one()
    assert assignment.business_party_id == supplier.id
    assert assignment.is_primary is True


def test_minimum_quantity_drops_small_buys(svc, db, purchases):
    supplier, _, a, _ = purchases

    price_list_id = svc.generate_from_purchases(_request(supplier, minimum_quantity=D("5")), "erin")

    assert list(_entry_prices(db, price_list_id)) == [a.id]


def test_generate_errors(svc, make, purchases):
    supplier, *_ = purchases

    with pytest.raises(BusinessRuleError) as exc:
        svc.generate_from_purchases(
            GenerateFromPurchasesRequest(supplier_id=supplier.id, name="X", from_date=JAN_31, to_date=JAN_1), "erin"
        )
    assert exc.value.code == errors.INVALID_DATE_RANGE

    with pytest.raises(BusinessRuleError) as exc:
        svc.generate_from_purchases(
            GenerateFromPurchasesRequest(
                supplier_id=supplier.id, name="X", from_date=datetime(2024, 1, 1), to_date=datetime(2024, 2, 1)
            ),
            "erin",
        )
    assert exc.value.code == errors.NO_PURCHASE_DATA

    with pytest.raises(BusinessRuleError) as exc:
        svc.generate_from_purchases(_request(make.party("Nobody", is_deleted=True)), "erin")
    assert exc.value.code == errors.SUPPLIER_NOT_FOUND


def test_update_from_purchases(svc, db, make, purchases):
    supplier, receipt, a, b = purchases
    price_list_id = svc.generate_from_purchases(_request(supplier), "erin")
    c = make.product(code="C")
    make.purchase(supplier, receipt, datetime(2025, 1, 20), [(a, "1", "25"), (c, "3", "7")], number="GR-3")

    first = svc.update_from_purchases(
        UpdateFromPurchasesRequest(price_list_id=price_list_id, from_date=JAN_1, to_date=JAN_31), "erin"
    )
    assert (first.prices_updated, first.prices_unchanged, first.prices_added) == (1, 1, 0)
    assert len(first.warnings) == 1

    second = svc.update_from_purchases(
        UpdateFromPurchasesRequest(
            price_list_id=price_list_id,
            from_date=datetime(2025, 1, 15),
            to_date=JAN_31,
            add_new_products=True,
            remove_obsolete_products=True,
        ),
        "erin",
    )
    assert (second.prices_added, second.prices_removed) == (1, 1)
    assert _entry_prices(db, price_list_id) == {a.id: D("25"), c.id: D("7")}
    assert db.get(PriceList, price_list_id).last_synced_by == "erin"


def test_update_defaults_to_recent_window(svc, db, purchases, fixed_now):
    supplier, _, a, _ = purchases
    price_list_id = svc.generate_from_purchases(_request(supplier), "erin")

    result = svc.update_from_purchases(UpdateFromPurchasesRequest(price_list_id=price_list_id), "erin")

    # fixed_now is 2025-01-15: both receipts fall in the last 90 days
    assert result.prices_unchanged == 2
    metadata = json.loads(db.get(PriceList, price_list_id).generation_metadata)
    assert metadata["analysis_to"].startswith("2025-01-15")


def test_update_requires_assigned_supplier(svc, make):
    unassigned = make.price_list("Manual purchase list", direction=PriceListDirection.INPUT)

    with pytest.raises(BusinessRuleError) as exc:
        svc.update_from_purchases(UpdateFromPurchasesRequest(price_list_id=unassigned.id), "erin")
    assert exc.value.code == errors.NO_SUPPLIER_ASSIGNED


def test_generate_from_product_prices(svc, db, make):
    priced = make.product(code="A", default_price="10")
    make.product(code="B")

    price_list_id = svc.generate_from_product_prices(
        GenerateFromProductPricesRequest(
            name="Retail", markup_percentage=D("20"), rounding_strategy=RoundingStrategy.TO_NEAREST_99_CENTS
        ),
        "erin",
    )

    assert _entry_prices(db, price_list_id) == {priced.id: D("12.99")}


def test_generate_from_product_prices_needs_products(svc):
    with pytest.raises(BusinessRuleError) as exc:
        svc.generate_from_product_prices(GenerateFromProductPricesRequest(name="Retail"), "erin")
    assert exc.value.code == errors.NO_PRODUCTS_FOUND


def test_refresh_keeps_products_dropped_by_filters(svc, db, purchases):
    supplier, _, a, b = purchases
    price_list_id = svc.generate_from_purchases(_request(supplier), "erin")

    # B was bought (2 units) but falls under the minimum quantity
    result = svc.update_from_purchases(
        UpdateFromPurchasesRequest(
            price_list_id=price_list_id,
            from_date=JAN_1,
            to_date=JAN_31,
            minimum_quantity=D("5"),
            remove_obsolete_products=True,
        ),
        "erin",
    )

    assert result.prices_removed == 0
    assert _entry_prices(db, price_list_id) == {a.id: D("20"), b.id: D("20")}


def test_preview_update_from_purchases(svc, db, make, purchases):
    supplier, receipt, a, b = purchases
    price_list_id = svc.generate_from_purchases(_request(supplier), "erin")
    c = make.product(code="C")
    make.purchase(supplier, receipt, datetime(2025, 1, 20), [(a, "1", "25"), (c, "3", "7")], number="GR-3")

    preview = svc.preview_update_from_purchases(
        UpdateFromPurchasesRequest(price_list_id=price_list_id, from_date=datetime(2025, 1, 15), to_date=JAN_31)
    )

    assert preview.price_list_id == price_list_id
    by_product = {p.product_id: p for p in preview.prices}
    assert by_product[a.id].calculated_price == D("25")
    assert by_product[a.id].existing_price == D("20")
    assert by_product[c.id].existing_price is None
    assert preview.obsolete_product_ids == [b.id]
    # nothing written
    assert _entry_prices(db, price_list_id) == {a.id: D("20"), b.id: D("20")}
