from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

D = Decimal

CENT = D("0.01")
HUNDRED = D("100")


class RoundingStrategy(str, Enum):
    NONE = "None"
    TO_NEAREST_5_CENTS = "ToNearest5Cents"
    TO_NEAREST_10_CENTS = "ToNearest10Cents"
    TO_NEAREST_50_CENTS = "ToNearest50Cents"
    TO_NEAREST_EURO = "ToNearestEuro"
    TO_NEAREST_99_CENTS = "ToNearest99Cents"


# steps per currency unit for the grid strategies
_GRID_STEPS = {
    RoundingStrategy.TO_NEAREST_5_CENTS: D("20"),
    RoundingStrategy.TO_NEAREST_10_CENTS: D("10"),
    RoundingStrategy.TO_NEAREST_50_CENTS: D("2"),
    RoundingStrategy.TO_NEAREST_EURO: D("1"),
}


def apply_markup(price: D, markup_percentage: Optional[D] = None) -> D:
    """price * (1 + markup/100). A negative markup is a discount."""
    if markup_percentage is None or markup_percentage == 0:
        return price
    return price * (D("1") + D(markup_percentage) / HUNDRED)


def apply_rounding(price: D, strategy: Optional[RoundingStrategy]) -> D:
    if strategy is None or strategy == RoundingStrategy.NONE:
        return price

    if strategy == RoundingStrategy.TO_NEAREST_99_CENTS:
        # always the .99 of the current unit: 10.00 -> 10.99, 10.37 -> 10.99
        return (price.to_integral_value(rounding=ROUND_FLOOR) + D("0.99")).quantize(CENT)

    steps = _GRID_STEPS[strategy]
    snapped = (price * steps).quantize(D("1"), rounding=ROUND_HALF_UP) / steps
    return snapped.quantize(CENT)


def reprice(
    price: D,
    markup_percentage: Optional[D] = None,
    strategy: Optional[RoundingStrategy] = None,
) -> D:
    """Markup first, rounding second. Every repricing path goes through here."""
    return apply_rounding(apply_markup(price, markup_percentage), strategy)
