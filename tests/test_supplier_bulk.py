from decimal import Decimal

import pytest

from catalog_pricing.calculators.bulk_operation import SupplierPriceUpdateMode
from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models import BusinessPartyType, ProductSupplier, SupplierProductPriceHistory
from catalog_pricing.schemas.bulk import SupplierBulkUpdateRequest
from catalog_pricing.services.supplier_bulk import SupplierProductBulkService

D = Decimal


@pytest.fixture
def svc(db, cache):
    return SupplierProductBulkService(db, cache=cache)


@pytest.fixture
def catalog(make):
    supplier = make.party("Supplier", party_type=BusinessPartyType.SUPPLIER)
    rival = make.party("Rival", party_type=BusinessPartyType.SUPPLIER)
    p1 = make.product(code="P1")
    p2 = make.product(code="P2")
    make.offer(p1, supplier, "10.00", lead_time_days=5)
    make.offer(p2, supplier, "4.00", lead_time_days=5)
    make.offer(p1, rival, "9.00", preferred=True)
    return supplier, rival, p1, p2


def _offer(db, product, supplier):
    return (
        db.query(ProductSupplier)
        .filter(ProductSupplier.product_id == product.id, ProductSupplier.supplier_id == supplier.id)
        .one()
    )


def test_percentage_increase_commits_and_records_history(svc, db, catalog, cache, tenant):
    supplier, _, p1, p2 = catalog
    cache.set(p1.id, tenant, ["stale"], 300)
    request = SupplierBulkUpdateRequest(
        product_ids=[p1.id, p2.id],
        update_mode=SupplierPriceUpdateMode.PERCENTAGE_INCREASE,
        value=D("10"),
        lead_time_days=3,
        reason="supplier price list 2025",
    )

    result = svc.bulk_update_supplier_products(supplier.id, request, "carol")

    assert (result.success_count, result.failure_count, result.rolled_back) == (2, 0, False)
    assert _offer(db, p1, supplier).unit_cost == D("11")
    assert _offer(db, p2, supplier).unit_cost == D("4.4")
    assert _offer(db, p2, supplier).lead_time_days == 3
    history = db.query(SupplierProductPriceHistory).filter_by(change_source="BulkEdit").all()
    assert len(history) == 2
    assert cache.get(p1.id, tenant) is None


def test_any_failure_rolls_back_the_batch(svc, db, make, catalog):
    supplier, _, p1, p2 = catalog
    unoffered = make.product(code="P3")
    request = SupplierBulkUpdateRequest(
        product_ids=[p1.id, unoffered.id, p2.id],
        update_mode=SupplierPriceUpdateMode.DECREASE,
        value=D("5"),
    )

    result = svc.bulk_update_supplier_products(supplier.id, request, "carol")

    assert result.rolled_back is True
    assert result.success_count == 0
    # P3 is not offered, P2 would go negative
    assert sorted(e.error_code for e in result.errors) == sorted(
        [errors.PRODUCT_SUPPLIER_NOT_FOUND, errors.NEGATIVE_PRICE]
    )
    assert _offer(db, p1, supplier).unit_cost == D("10")
    assert db.query(SupplierProductPriceHistory).count() == 0


def test_set_preferred_moves_preference(svc, db, catalog):
    supplier, rival, p1, _ = catalog
    request = SupplierBulkUpdateRequest(product_ids=[p1.id], set_preferred=True)

    svc.bulk_update_supplier_products(supplier.id, request, "carol")

    db.expire_all()
    assert _offer(db, p1, supplier).preferred is True
    assert _offer(db, p1, rival).preferred is False


def test_preview_flags_problems_without_writing(svc, db, make, catalog):
    supplier, _, p1, p2 = catalog
    unoffered = make.product(code="P3")
    request = SupplierBulkUpdateRequest(
        product_ids=[p1.id, p2.id, unoffered.id],
        update_mode=SupplierPriceUpdateMode.DECREASE,
        value=D("5"),
        currency="chf",
    )

    previews = svc.preview_bulk_update(supplier.id, request)

    assert [p.error for p in previews] == [None, errors.NEGATIVE_PRICE, errors.PRODUCT_SUPPLIER_NOT_FOUND]
    assert previews[0].new_unit_cost == D("5")
    assert previews[0].new_currency == "CHF"
    assert _offer(db, p1, supplier).unit_cost == D("10")


def test_unknown_supplier(svc, catalog):
    _, _, p1, _ = catalog
    with pytest.raises(BusinessRuleError) as exc:
        svc.bulk_update_supplier_products("nope", SupplierBulkUpdateRequest(product_ids=[p1.id]), "carol")
    assert exc.value.code == errors.SUPPLIER_NOT_FOUND
