# catalog_pricing/services/validation.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from catalog_pricing.core import errors
from catalog_pricing.core.errors import InvalidInputError
from catalog_pricing.core.settings import Settings, get_settings


def validate_price(price: Optional[Decimal], settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    if price is None:
        raise InvalidInputError(errors.INVALID_PRICE, "Price is required")
    if price < 0:
        raise InvalidInputError(errors.NEGATIVE_PRICE, f"Price must not be negative (got {price})")
    if price > settings.MAX_PRICE:
        raise InvalidInputError(
            errors.PRICE_EXCEEDS_MAXIMUM,
            f"Price {price} exceeds the maximum of {settings.MAX_PRICE}",
            {"max_price": str(settings.MAX_PRICE)},
        )


def validate_quantity_range(min_quantity: int, max_quantity: int) -> None:
    if min_quantity < 0:
        raise InvalidInputError(errors.INVALID_QUANTITY_RANGE, "Minimum quantity must be >= 0")
    if max_quantity < 0:
        raise InvalidInputError(errors.INVALID_QUANTITY_RANGE, "Maximum quantity must be >= 0")
    # max_quantity 0 = unbounded
    if max_quantity > 0 and max_quantity < min_quantity:
        raise InvalidInputError(
            errors.INVALID_QUANTITY_RANGE,
            f"Maximum quantity ({max_quantity}) must be >= minimum quantity ({min_quantity})",
        )


def validate_date_range(from_date: Optional[datetime], to_date: Optional[datetime]) -> None:
    if from_date is not None and to_date is not None and to_date < from_date:
        raise InvalidInputError(
            errors.INVALID_DATE_RANGE,
            f"End date {to_date.isoformat()} is before start date {from_date.isoformat()}",
        )


def validate_currency(currency: Optional[str], settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    code = (currency or settings.DEFAULT_CURRENCY).upper()
    if code not in settings.SUPPORTED_CURRENCIES:
        raise InvalidInputError(errors.UNSUPPORTED_CURRENCY, f"Currency {code} is not supported")
    return code


def validate_discount(percentage: Optional[Decimal]) -> None:
    if percentage is None:
        return
    if percentage < 0 or percentage > 100:
        raise InvalidInputError(errors.INVALID_DISCOUNT, "Discount percentage must be between 0 and 100")
