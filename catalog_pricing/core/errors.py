# catalog_pricing/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional

# context
TENANT_CONTEXT_MISSING = "TENANT_CONTEXT_MISSING"
PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
PRICE_LIST_NOT_FOUND = "PRICE_LIST_NOT_FOUND"
BUSINESS_PARTY_NOT_FOUND = "BUSINESS_PARTY_NOT_FOUND"
SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"
PRODUCT_SUPPLIER_NOT_FOUND = "PRODUCT_SUPPLIER_NOT_FOUND"
NO_SUPPLIER_ASSIGNED = "NO_SUPPLIER_ASSIGNED"
ALREADY_ASSIGNED = "ALREADY_ASSIGNED"

# price application modes
PRICE_LIST_PRODUCT_NOT_FOUND = "PRICE_LIST_PRODUCT_NOT_FOUND"
FORCED_PRICE_LIST_REQUIRED = "FORCED_PRICE_LIST_REQUIRED"
MANUAL_PRICE_REQUIRED = "MANUAL_PRICE_REQUIRED"

# validation
INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
INVALID_PRICE = "INVALID_PRICE"
PRICE_EXCEEDS_MAXIMUM = "PRICE_EXCEEDS_MAXIMUM"
NEGATIVE_PRICE = "NEGATIVE_PRICE"
INVALID_QUANTITY_RANGE = "INVALID_QUANTITY_RANGE"
UNSUPPORTED_CURRENCY = "UNSUPPORTED_CURRENCY"
INVALID_DISCOUNT = "INVALID_DISCOUNT"
INVALID_BULK_VALUE = "INVALID_BULK_VALUE"

# batch items
DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
DUPLICATE_PRICE_LIST_CODE = "DUPLICATE_PRICE_LIST_CODE"
IMPORT_ERROR = "IMPORT_ERROR"

# generation
NO_PURCHASE_DATA = "NO_PURCHASE_DATA"
NO_PRODUCTS_FOUND = "NO_PRODUCTS_FOUND"


class BusinessRuleError(Exception):
    """
    Hard stop for a pricing call. Nothing has been persisted when this is raised.
    """

    def __init__(self, code: str, message: str, meta: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.meta = meta or {}
        super().__init__(f"{code}: {message}")


class InvalidInputError(BusinessRuleError):
    """Input failed validation before any mutation was attempted."""
