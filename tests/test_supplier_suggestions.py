from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event

from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models import BusinessPartyType, ProductSupplier, SupplierPriceAlert
from catalog_pricing.services.alerts import SupplierPriceAlertService
from catalog_pricing.services.price_history import SupplierProductPriceHistoryService
from catalog_pricing.services.supplier_suggestions import SupplierSuggestionService

D = Decimal


class RecordingSink:
    def __init__(self):
        self.calls = []

    def better_supplier_found(self, product_id, current, recommended, potential_savings):
        self.calls.append((product_id, current.supplier_id, recommended.supplier_id, potential_savings))


class BrokenSink:
    def better_supplier_found(self, *args):
        raise RuntimeError("mail server down")


@pytest.fixture
def two_suppliers(make):
    product = make.product(code="BOLT", name="Bolt M8")
    slow_cheap = make.party("Cheap Co", party_type=BusinessPartyType.SUPPLIER)
    fast_pricey = make.party("Fast Co", party_type=BusinessPartyType.SUPPLIER)
    make.offer(product, fast_pricey, "50", lead_time_days=7, preferred=True)
    make.offer(product, slow_cheap, "45", lead_time_days=10)
    return product, slow_cheap, fast_pricey


def _svc(db, cache, fixed_now, **kw):
    return SupplierSuggestionService(db, cache=cache, clock=lambda: fixed_now, **kw)


def test_scores_and_ranking(db, cache, fixed_now, two_suppliers):
    product, cheap, fast = two_suppliers

    suggestions = _svc(db, cache, fixed_now).calculate_suggestions(product.id)

    assert [s.supplier_id for s in suggestions] == [cheap.id, fast.id]
    top, other = suggestions
    assert top.score_breakdown.price_score == D("100")
    assert top.score_breakdown.lead_time_score == D("0")
    assert other.score_breakdown.price_score == D("0")
    assert other.score_breakdown.lead_time_score == D("100")
    # no price history: neutral trend
    assert top.score_breakdown.trend_score == D("50")
    assert top.total_score - other.total_score == D("15.00")
    assert "best price" in top.recommendation_reasons
    assert set(top.explanations) == {"Price", "LeadTime", "Reliability", "Trend"}


def test_single_supplier_gives_no_suggestions(db, cache, fixed_now, make):
    product = make.product()
    make.offer(product, make.party("Only Co", party_type=BusinessPartyType.SUPPLIER), "10")

    service = _svc(db, cache, fixed_now)

    assert service.calculate_suggestions(product.id) == []
    response = service.get_supplier_suggestions(product.id)
    assert response.recommended_supplier is None
    assert response.recommendation_explanation == "No suppliers available for comparison."


def test_response_savings_and_alert(db, cache, fixed_now, two_suppliers):
    product, cheap, fast = two_suppliers
    sink = RecordingSink()

    response = _svc(db, cache, fixed_now, alert_sink=sink).get_supplier_suggestions(product.id)

    assert response.current_preferred_supplier.supplier_id == fast.id
    assert response.recommended_supplier.supplier_id == cheap.id
    assert response.potential_savings == D("5")
    assert response.recommendation_explanation.startswith("We recommend Cheap Co for Bolt M8 because")
    assert sink.calls == [(product.id, fast.id, cheap.id, D("5"))]


def test_failing_alert_sink_does_not_fail_the_call(db, cache, fixed_now, two_suppliers):
    product, cheap, _ = two_suppliers

    response = _svc(db, cache, fixed_now, alert_sink=BrokenSink()).get_supplier_suggestions(product.id)

    assert response.recommended_supplier.supplier_id == cheap.id


def test_persisting_alert_sink(db, cache, fixed_now, two_suppliers):
    product, cheap, _ = two_suppliers

    _svc(db, cache, fixed_now, alert_sink=SupplierPriceAlertService(db)).get_supplier_suggestions(product.id)

    alert = db.query(SupplierPriceAlert).one()
    assert alert.recommended_supplier_id == cheap.id
    assert alert.potential_savings == D("5")


def test_failed_alert_write_is_not_left_pending(db, cache, fixed_now, two_suppliers):
    product, cheap, _ = two_suppliers

    def reject_alerts(session, flush_context, instances):
        if any(isinstance(obj, SupplierPriceAlert) for obj in session.new):
            raise RuntimeError("alerts table locked")

    event.listen(db, "before_flush", reject_alerts)
    try:
        response = _svc(db, cache, fixed_now, alert_sink=SupplierPriceAlertService(db)).get_supplier_suggestions(
            product.id
        )
    finally:
        event.remove(db, "before_flush", reject_alerts)

    assert response.recommended_supplier.supplier_id == cheap.id
    assert not any(isinstance(obj, SupplierPriceAlert) for obj in db.new)
    db.commit()
    assert db.query(SupplierPriceAlert).count() == 0


def test_results_are_cached_until_applied(db, cache, fixed_now, two_suppliers, tenant):
    product, cheap, fast = two_suppliers
    service = _svc(db, cache, fixed_now)

    first = service.calculate_suggestions(product.id)
    assert cache.get(product.id, tenant) is not None

    # a cheaper offer is not visible while the cached ranking is live
    db.query(ProductSupplier).filter_by(supplier_id=fast.id).update({"unit_cost": D("1")})
    db.commit()
    assert [s.supplier_id for s in service.calculate_suggestions(product.id)] == [s.supplier_id for s in first]

    assert service.apply_suggested_supplier(product.id, cheap.id, reason="cheaper", current_user="frank") is True
    assert cache.get(product.id, tenant) is None


def test_apply_moves_preferred_flag(db, cache, fixed_now, two_suppliers):
    product, cheap, fast = two_suppliers

    applied = _svc(db, cache, fixed_now).apply_suggested_supplier(product.id, cheap.id, reason="better score")

    assert applied is True
    db.expire_all()
    offers = {o.supplier_id: o for o in db.query(ProductSupplier).filter_by(product_id=product.id)}
    assert offers[cheap.id].preferred is True
    assert offers[fast.id].preferred is False
    assert offers[cheap.id].notes.startswith("Applied suggestion: better score")


def test_apply_unknown_supplier_returns_false(db, cache, fixed_now, two_suppliers, make):
    product, _, _ = two_suppliers
    stranger = make.party("Stranger", party_type=BusinessPartyType.SUPPLIER)

    assert _svc(db, cache, fixed_now).apply_suggested_supplier(product.id, stranger.id) is False


def test_price_history_feeds_trend(db, cache, fixed_now, two_suppliers):
    product, cheap, _ = two_suppliers
    history = SupplierProductPriceHistoryService(db)
    for days_ago, cost in ((60, "50"), (30, "48"), (5, "45")):
        history.record_price_change(
            cheap.id, product.id, None, D(cost), "EUR", "Manual", "frank", changed_at=fixed_now - timedelta(days=days_ago)
        )
    db.commit()

    points = history.get_price_trend_data(cheap.id, product.id, fixed_now - timedelta(days=90), fixed_now)
    suggestions = _svc(db, cache, fixed_now).calculate_suggestions(product.id)

    assert [p.price for p in points] == [D("50"), D("48"), D("45")]
    top = next(s for s in suggestions if s.supplier_id == cheap.id)
    assert top.score_breakdown.trend_score == D("100")


def test_supplier_reliability(db, cache, fixed_now, two_suppliers):
    _, cheap, _ = two_suppliers
    service = _svc(db, cache, fixed_now)

    reliability = service.get_supplier_reliability(cheap.id)

    assert reliability.product_count == 1
    assert D("0") <= reliability.reliability_score <= D("100")

    with pytest.raises(BusinessRuleError) as exc:
        service.get_supplier_reliability("nope")
    assert exc.value.code == errors.SUPPLIER_NOT_FOUND
