from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models import (
    AuditEvent,
    PriceList,
    PriceListDirection,
    PriceListEntry,
    PriceListEntryStatus,
    PriceListType,
    Product,
)
from catalog_pricing.schemas.price_lists import ApplyOutcome, ApplyPriceListToProductsRequest
from catalog_pricing.services.codes import generate_unique_code, resolve_code, slugify_code
from catalog_pricing.services.price_lists import PriceListService

D = Decimal


@pytest.fixture
def svc(db, fixed_now):
    return PriceListService(db, clock=lambda: fixed_now)


def test_set_default_is_exclusive_per_type(svc, db, make):
    old = make.price_list("Old", is_default=True)
    new = make.price_list("New")
    purchase = make.price_list("Purchase", direction=PriceListDirection.INPUT, is_default=True)

    svc.set_default_price_list(new.id, "hank")

    db.expire_all()
    assert db.get(PriceList, new.id).is_default is True
    assert db.get(PriceList, old.id).is_default is False
    # other list types keep their own default
    assert db.get(PriceList, purchase.id).is_default is True


def test_set_default_only_touches_old_and_new_default(svc, db, make):
    old = make.price_list("Old", is_default=True)
    bystander = make.price_list("Bystander")
    new = make.price_list("New")

    svc.set_default_price_list(new.id, "hank")

    db.expire_all()
    assert db.get(PriceList, old.id).modified_by == "hank"
    assert db.get(PriceList, new.id).modified_by == "hank"
    untouched = db.get(PriceList, bystander.id)
    assert untouched.modified_by is None
    assert untouched.modified_at is None


def test_get_missing_price_list(svc):
    with pytest.raises(BusinessRuleError) as exc:
        svc.get_price_list("nope")
    assert exc.value.code == errors.PRICE_LIST_NOT_FOUND


def test_remove_entry_frees_the_product_slot(svc, db, make):
    price_list = make.price_list("Retail")
    product = make.product()
    entry = make.entry(price_list, product, "10")

    assert svc.remove_entry(entry.id, "hank") is True
    assert svc.remove_entry(entry.id, "hank") is False

    removed = db.get(PriceListEntry, entry.id)
    assert removed.status == PriceListEntryStatus.DELETED
    # a new live entry for the same product is allowed again
    make.entry(price_list, product, "12")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Listino Vendite Città", "LISTINO-VENDITE-CITT"),
        ("  retail 2025 ", "RETAIL-2025"),
        ("€€€", "PRICELIST"),
        ("a/b_c", "AB_C"),
    ],
)
def test_slugify_code(name, expected):
    assert slugify_code(name) == expected


def test_unique_code_appends_counter(db, make, tenant):
    make.price_list("Retail", code="RETAIL")
    make.price_list("Retail copy", code="RETAIL-1")

    assert generate_unique_code(db, tenant, "Retail") == "RETAIL-2"
    assert generate_unique_code(db, "tenant-b", "Retail") == "RETAIL"


def test_explicit_code_is_checked_not_suffixed(db, make, tenant):
    make.price_list("Retail", code="RETAIL")

    assert resolve_code(db, tenant, "Retail") == "RETAIL-1"
    assert resolve_code(db, tenant, "Retail", "RETAIL-2025") == "RETAIL-2025"
    with pytest.raises(BusinessRuleError) as exc:
        resolve_code(db, tenant, "Retail", "RETAIL")
    assert exc.value.code == errors.DUPLICATE_PRICE_LIST_CODE


# ---------------------------
# apply to products
# ---------------------------


@pytest.fixture
def retail_prices(make):
    price_list = make.price_list("Retail")
    cheaper = make.product(code="A", default_price="10", category_id="cat-1")
    dearer = make.product(code="B", default_price="20", category_id="cat-1")
    other_category = make.product(code="C", default_price="1", category_id="cat-2")
    gone = make.product(code="D", is_deleted=True)
    make.entry(price_list, cheaper, "12")
    make.entry(price_list, dearer, "15")
    make.entry(price_list, other_category, "5")
    make.entry(price_list, gone, "9")
    return price_list, cheaper, dearer, other_category, gone


def test_apply_price_list_to_products(svc, db, retail_prices):
    price_list, cheaper, dearer, other_category, gone = retail_prices
    request = ApplyPriceListToProductsRequest(only_update_if_higher=True, filter_by_category_ids=["cat-1"])

    result = svc.apply_price_list_to_products(price_list.id, request, "ivy")

    assert (result.products_updated, result.products_skipped, result.products_not_found) == (1, 2, 1)
    outcomes = {d.product_id: d.outcome for d in result.details}
    assert outcomes == {
        cheaper.id: ApplyOutcome.UPDATED,
        dearer.id: ApplyOutcome.SKIPPED_NOT_HIGHER,
        other_category.id: ApplyOutcome.SKIPPED_CATEGORY,
        gone.id: ApplyOutcome.PRODUCT_NOT_FOUND,
    }

    db.expire_all()
    assert db.get(Product, cheaper.id).default_price == D("12")
    assert db.get(Product, dearer.id).default_price == D("20")
    backup = db.query(AuditEvent).filter_by(action_type="PRODUCT_DEFAULT_PRICE_APPLIED").one()
    assert backup.target_id == cheaper.id
    assert D(backup.old_value["default_price"]) == D("10")


def test_apply_without_backup_or_guards(svc, db, retail_prices):
    price_list, *_ = retail_prices

    result = svc.apply_price_list_to_products(
        price_list.id, ApplyPriceListToProductsRequest(create_backup=False), "ivy"
    )

    assert result.products_updated == 3
    assert db.query(AuditEvent).filter_by(action_type="PRODUCT_DEFAULT_PRICE_APPLIED").count() == 0
    assert db.query(AuditEvent).filter_by(action_type="PRICE_LIST_APPLIED_TO_PRODUCTS").count() == 1


def test_apply_guards_are_exclusive():
    with pytest.raises(ValidationError):
        ApplyPriceListToProductsRequest(only_update_if_higher=True, only_update_if_lower=True)


# ---------------------------
# export
# ---------------------------


def test_export_entries(svc, make):
    price_list = make.price_list("Retail")
    make.entry(price_list, make.product(code="B", name="Bolt"), "2.50")
    make.entry(price_list, make.product(code="A", name="Anchor"), "7", status=PriceListEntryStatus.SUSPENDED)

    active_only = svc.export_entries(price_list.id)
    everything = svc.export_entries(price_list.id, include_inactive=True)

    assert [(e.product_name, e.price, e.is_active) for e in active_only] == [("Bolt", D("2.50"), True)]
    assert [e.product_code for e in everything] == ["A", "B"]
    assert everything[0].status == PriceListEntryStatus.SUSPENDED


# ---------------------------
# precedence validation
# ---------------------------


def _issue_types(result):
    return sorted(i.issue_type for i in result.issues)


def _warning_types(result):
    return sorted(w.warning_type for w in result.warnings)


def test_precedence_without_lists(svc):
    result = svc.validate_precedence()

    assert result.is_valid is False
    assert _issue_types(result) == ["NoPriceListsFound"]


def test_precedence_flags_ambiguous_lists(svc, make):
    make.price_list("Shop", priority=5)
    make.price_list("Outlet", priority=5)
    top = make.price_list("Contract", priority=9)

    result = svc.validate_precedence(PriceListType.SALES)

    assert result.is_valid is False
    assert _issue_types(result) == ["OverlappingValidityPeriods"]
    assert _warning_types(result) == ["DuplicatePriorities", "NoDefaultPriceList"]
    assert result.recommended_default_price_list_id == top.id


def test_precedence_expiry_checks(svc, make, fixed_now):
    default = make.price_list("Retail", is_default=True, valid_to=fixed_now + timedelta(days=3))
    make.price_list("Purchase", direction=PriceListDirection.INPUT, valid_to=fixed_now - timedelta(days=1))

    sales = svc.validate_precedence(PriceListType.SALES)
    purchase = svc.validate_precedence(PriceListType.PURCHASE)

    assert sales.is_valid is True
    assert _warning_types(sales) == ["SoonToExpire"]
    assert sales.recommended_default_price_list_id == default.id
    assert purchase.is_valid is False
    assert _issue_types(purchase) == ["ExpiredPriceListsOnly"]
    assert purchase.expired_count == 1
