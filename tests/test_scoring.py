from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from catalog_pricing.calculators import scoring
from catalog_pricing.core.settings import SupplierSuggestionSettings
from catalog_pricing.schemas.suggestions import ConfidenceLevel, ScoreBreakdown

D = Decimal


def test_inverse_score_best_and_worst():
    values = [D("50"), D("45")]
    assert scoring.normalized_inverse_score(D("45"), values) == D("100")
    assert scoring.normalized_inverse_score(D("50"), values) == D("0")


def test_inverse_score_neutral_cases():
    assert scoring.normalized_inverse_score(None, [D("1"), D("2")]) == D("50")
    assert scoring.normalized_inverse_score(D("1"), [D("1"), None]) == D("50")
    assert scoring.normalized_inverse_score(D("7"), [D("7"), D("7")]) == D("100")


@pytest.mark.parametrize(
    "prices,expected",
    [
        ([D("100"), D("95"), D("90")], D("100")),  # -10%
        ([D("100"), D("99"), D("98")], D("91")),  # -2%
        ([D("100"), D("100"), D("100")], D("85")),  # flat
        ([D("100"), D("101"), D("102")], D("64")),  # +2%
        ([D("100"), D("105"), D("110")], D("30")),  # +10%
        ([D("100"), D("150"), D("200")], D("0")),  # +100% floors at 0
    ],
)
def test_trend_bands(prices, expected):
    assert scoring.trend_score(prices, 3) == expected


def test_trend_needs_enough_points():
    assert scoring.trend_score([D("100"), D("200")], 3) == D("50")


def test_total_score_uses_weights():
    config = SupplierSuggestionSettings()
    breakdown = ScoreBreakdown(
        price_score=D("100"), lead_time_score=D("0"), reliability_score=D("50"), trend_score=D("50")
    )
    # 40 + 0 + 10 + 7.5
    assert scoring.total_score(breakdown, config) == D("57.50")
    assert scoring.confidence_level(D("57.50"), config) == ConfidenceLevel.LOW
    assert scoring.confidence_level(D("60"), config) == ConfidenceLevel.MEDIUM
    assert scoring.confidence_level(D("80"), config) == ConfidenceLevel.HIGH


def test_reliability_proxies_reward_age_and_catalog_breadth():
    now = datetime(2025, 1, 1)
    young = scoring.estimate_reliability_metrics(now - timedelta(days=10), 1, 0, now)
    old = scoring.estimate_reliability_metrics(now - timedelta(days=800), 20, 4, now)

    assert young.total_orders == 1
    assert old.on_time_delivery_rate == D("95")
    assert old.order_accuracy_rate == D("95")
    assert old.defect_rate == D("0")
    assert old.average_response_time_hours == D("12")
    assert scoring.reliability_score(old) > scoring.reliability_score(young)
