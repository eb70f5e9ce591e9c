from datetime import datetime
from decimal import Decimal

import pytest

from catalog_pricing.calculators.aggregation import (
    PriceCalculationStrategy,
    PurchaseOccurrence,
    aggregate_price,
    median,
)

D = Decimal


def _occ(day, qty, price):
    return PurchaseOccurrence(
        document_id=f"doc-{day}",
        document_number=f"GR-{day}",
        date=datetime(2025, 1, day),
        quantity=D(qty),
        unit_price=D(price),
    )


@pytest.fixture
def purchases():
    # 10 @ 10, 5 @ 20 (latest is the cheapest on purpose)
    return [_occ(1, "5", "20"), _occ(3, "10", "10")]


def test_weighted_average(purchases):
    price = aggregate_price(purchases, PriceCalculationStrategy.WEIGHTED_AVERAGE_PRICE)
    assert price.quantize(D("0.01")) == D("13.33")


def test_simple_average(purchases):
    assert aggregate_price(purchases, PriceCalculationStrategy.SIMPLE_AVERAGE_PRICE) == D("15")


def test_last_purchase_uses_latest_date(purchases):
    assert aggregate_price(purchases, PriceCalculationStrategy.LAST_PURCHASE_PRICE) == D("10")


def test_lowest_and_highest(purchases):
    assert aggregate_price(purchases, PriceCalculationStrategy.LOWEST_PRICE) == D("10")
    assert aggregate_price(purchases, PriceCalculationStrategy.HIGHEST_PRICE) == D("20")


def test_median_odd_and_even():
    assert median([D("30"), D("10"), D("20")]) == D("20")
    assert median([D("10"), D("20"), D("30"), D("40")]) == D("25")


def test_weighted_average_without_quantities_falls_back_to_simple():
    occ = [_occ(1, "0", "10"), _occ(2, "0", "20")]
    assert aggregate_price(occ, PriceCalculationStrategy.WEIGHTED_AVERAGE_PRICE) == D("15")


def test_empty_input_rejected():
    with pytest.raises(ValueError):
        aggregate_price([], PriceCalculationStrategy.MEDIAN_PRICE)
