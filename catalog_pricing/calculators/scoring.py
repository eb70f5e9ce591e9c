from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from catalog_pricing.core.settings import SupplierSuggestionSettings
from catalog_pricing.schemas.suggestions import ConfidenceLevel, ReliabilityMetrics, ScoreBreakdown

D = Decimal

ZERO = D("0")
NEUTRAL = D("50")
MAX_SCORE = D("100")


def clamp_score(value: D) -> D:
    return max(ZERO, min(MAX_SCORE, value))


def normalized_inverse_score(current: Optional[D], all_values: Sequence[Optional[D]]) -> D:
    """
    Lower is better: the cheapest (or fastest) competitor scores 100, the worst 0.
    Neutral 50 when fewer than two competitors have a value or `current` has none.
    """
    known = [v for v in all_values if v is not None]
    if current is None or len(known) < 2:
        return NEUTRAL

    lo, hi = min(known), max(known)
    if hi == lo:
        return MAX_SCORE
    return clamp_score((hi - current) / (hi - lo) * MAX_SCORE)


def estimate_reliability_metrics(
    supplier_created_at: datetime,
    product_count: int,
    price_history_count: int,
    now: datetime,
) -> ReliabilityMetrics:
    # TODO: replace the proxies once goods receipts record delivery dates and defects
    age_days = max(0, (now - supplier_created_at).days)

    total_orders = max(1, price_history_count)
    on_time_rate = D("85") + (D("10") if age_days > 365 else ZERO)
    accuracy_rate = D("90") + (D("5") if product_count > 10 else ZERO)
    defect_rate = max(ZERO, D("10") - D(product_count) * D("0.5"))
    response_hours = D("24") - D(min(12, age_days // 30))

    on_time = int((D(total_orders) * on_time_rate / MAX_SCORE).to_integral_value(rounding=ROUND_HALF_UP))

    return ReliabilityMetrics(
        total_orders=total_orders,
        on_time_deliveries=on_time,
        on_time_delivery_rate=on_time_rate,
        order_accuracy_rate=accuracy_rate,
        defect_rate=defect_rate,
        average_response_time_hours=response_hours,
    )


def reliability_score(metrics: ReliabilityMetrics) -> D:
    response_factor = max(ZERO, MAX_SCORE - metrics.average_response_time_hours * D("2"))
    score = (
        metrics.on_time_delivery_rate * D("0.4")
        + metrics.order_accuracy_rate * D("0.3")
        + (MAX_SCORE - metrics.defect_rate) * D("0.2")
        + response_factor * D("0.1")
    )
    return clamp_score(score)


def trend_score(prices: Sequence[D], min_data_points: int) -> D:
    """
    First vs. last price in the window (chronological order expected).
      <= -5%      -> 100
      (-5%, 0%]   -> 85..100
      (0%, 5%]    -> 70..55
      > 5%        -> 50 - 2*change, floored at 0
    """
    if len(prices) < min_data_points:
        return NEUTRAL

    first, last = prices[0], prices[-1]
    if first <= 0:
        return NEUTRAL

    change = (last - first) / first * MAX_SCORE
    if change <= D("-5"):
        return MAX_SCORE
    if change <= ZERO:
        return D("85") - change * D("3")
    if change <= D("5"):
        return D("70") - change * D("3")
    return max(ZERO, NEUTRAL - change * D("2"))


def total_score(breakdown: ScoreBreakdown, config: SupplierSuggestionSettings) -> D:
    total = (
        breakdown.price_score * config.price_weight
        + breakdown.lead_time_score * config.lead_time_weight
        + breakdown.reliability_score * config.reliability_weight
        + breakdown.trend_score * config.trend_weight
    )
    return clamp_score(total).quantize(D("0.01"), rounding=ROUND_HALF_UP)


def confidence_level(score: D, config: SupplierSuggestionSettings) -> ConfidenceLevel:
    if score < config.low_confidence_threshold:
        return ConfidenceLevel.LOW
    if score < config.high_confidence_threshold:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH
