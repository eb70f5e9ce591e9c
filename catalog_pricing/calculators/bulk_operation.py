from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

D = Decimal


class BulkUpdateOperation(str, Enum):
    SET = "Set"
    INCREASE_BY_AMOUNT = "IncreaseByAmount"
    DECREASE_BY_AMOUNT = "DecreaseByAmount"
    INCREASE_BY_PERCENTAGE = "IncreaseByPercentage"
    DECREASE_BY_PERCENTAGE = "DecreaseByPercentage"
    MULTIPLY_BY = "MultiplyBy"


def calc_new_price(current: D, operation: BulkUpdateOperation, value: D) -> D:
    """
    Raw result of one bulk operation, before rounding.
    May be negative; the caller decides whether to skip the entry.
    """
    if operation == BulkUpdateOperation.SET:
        return value
    if operation == BulkUpdateOperation.INCREASE_BY_AMOUNT:
        return current + value
    if operation == BulkUpdateOperation.DECREASE_BY_AMOUNT:
        return current - value
    if operation == BulkUpdateOperation.INCREASE_BY_PERCENTAGE:
        return current * (D("1") + value / D("100"))
    if operation == BulkUpdateOperation.DECREASE_BY_PERCENTAGE:
        return current * (D("1") - value / D("100"))
    if operation == BulkUpdateOperation.MULTIPLY_BY:
        return current * value
    raise ValueError(f"unsupported bulk operation: {operation}")


class SupplierPriceUpdateMode(str, Enum):
    SET = "Set"
    INCREASE = "Increase"
    DECREASE = "Decrease"
    PERCENTAGE_INCREASE = "PercentageIncrease"
    PERCENTAGE_DECREASE = "PercentageDecrease"


def calc_supplier_unit_cost(current: Optional[D], mode: SupplierPriceUpdateMode, value: D) -> D:
    # without a current cost only an absolute value makes sense
    if current is None:
        return value
    if mode == SupplierPriceUpdateMode.SET:
        return value
    if mode == SupplierPriceUpdateMode.INCREASE:
        return current + value
    if mode == SupplierPriceUpdateMode.DECREASE:
        return current - value
    if mode == SupplierPriceUpdateMode.PERCENTAGE_INCREASE:
        return current * (D("1") + value / D("100"))
    if mode == SupplierPriceUpdateMode.PERCENTAGE_DECREASE:
        return current * (D("1") - value / D("100"))
    raise ValueError(f"unsupported supplier update mode: {mode}")
