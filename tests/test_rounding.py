from decimal import Decimal

import pytest

from catalog_pricing.calculators.rounding import RoundingStrategy, apply_markup, apply_rounding, reprice

D = Decimal


@pytest.mark.parametrize(
    "strategy,expected",
    [
        (RoundingStrategy.NONE, D("10.37")),
        (RoundingStrategy.TO_NEAREST_5_CENTS, D("10.35")),
        (RoundingStrategy.TO_NEAREST_10_CENTS, D("10.40")),
        (RoundingStrategy.TO_NEAREST_50_CENTS, D("10.50")),
        (RoundingStrategy.TO_NEAREST_EURO, D("10.00")),
        (RoundingStrategy.TO_NEAREST_99_CENTS, D("10.99")),
    ],
)
def test_rounding_strategies_on_10_37(strategy, expected):
    assert apply_rounding(D("10.37"), strategy) == expected


def test_99_cents_always_lands_on_current_unit():
    assert apply_rounding(D("10.00"), RoundingStrategy.TO_NEAREST_99_CENTS) == D("10.99")
    assert apply_rounding(D("10.995"), RoundingStrategy.TO_NEAREST_99_CENTS) == D("10.99")


def test_grid_rounding_halves_go_up():
    assert apply_rounding(D("10.025"), RoundingStrategy.TO_NEAREST_5_CENTS) == D("10.05")
    assert apply_rounding(D("10.50"), RoundingStrategy.TO_NEAREST_EURO) == D("11.00")


def test_none_strategy_keeps_price_untouched():
    assert apply_rounding(D("10.3712"), None) == D("10.3712")


def test_markup_applies_before_rounding():
    # 9.60 -> 10.56 -> 10.50 (rounding first would give 9.50 -> 10.45)
    assert reprice(D("9.60"), D("10"), RoundingStrategy.TO_NEAREST_50_CENTS) == D("10.50")
    assert reprice(D("10.00"), D("10"), RoundingStrategy.TO_NEAREST_50_CENTS) == D("11.00")


def test_negative_markup_is_a_discount():
    assert apply_markup(D("100"), D("-15")) == D("85")
    assert apply_markup(D("100"), None) == D("100")
