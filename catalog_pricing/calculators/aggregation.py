from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence

D = Decimal


class PriceCalculationStrategy(str, Enum):
    LAST_PURCHASE_PRICE = "LastPurchasePrice"
    WEIGHTED_AVERAGE_PRICE = "WeightedAveragePrice"
    SIMPLE_AVERAGE_PRICE = "SimpleAveragePrice"
    LOWEST_PRICE = "LowestPrice"
    HIGHEST_PRICE = "HighestPrice"
    MEDIAN_PRICE = "MedianPrice"


@dataclass(frozen=True)
class PurchaseOccurrence:
    """One purchase document row for a product."""

    document_id: str
    document_number: str
    date: datetime
    quantity: D
    unit_price: D


def median(values: Sequence[D]) -> D:
    if not values:
        raise ValueError("median of empty sequence")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / D("2")
    return ordered[mid]


def aggregate_price(occurrences: Sequence[PurchaseOccurrence], strategy: PriceCalculationStrategy) -> D:
    if not occurrences:
        raise ValueError("no purchase occurrences to aggregate")

    prices = [o.unit_price for o in occurrences]

    if strategy == PriceCalculationStrategy.LAST_PURCHASE_PRICE:
        return max(occurrences, key=lambda o: o.date).unit_price

    if strategy == PriceCalculationStrategy.WEIGHTED_AVERAGE_PRICE:
        total_qty = sum((o.quantity for o in occurrences), D("0"))
        if total_qty <= 0:
            return sum(prices, D("0")) / D(len(prices))
        return sum((o.unit_price * o.quantity for o in occurrences), D("0")) / total_qty

    if strategy == PriceCalculationStrategy.SIMPLE_AVERAGE_PRICE:
        return sum(prices, D("0")) / D(len(prices))

    if strategy == PriceCalculationStrategy.LOWEST_PRICE:
        return min(prices)

    if strategy == PriceCalculationStrategy.HIGHEST_PRICE:
        return max(prices)

    if strategy == PriceCalculationStrategy.MEDIAN_PRICE:
        return median(prices)

    raise ValueError(f"unsupported calculation strategy: {strategy}")
