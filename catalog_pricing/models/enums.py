# catalog_pricing/models/enums.py
from enum import Enum


class PriceListType(str, Enum):
    SALES = "Sales"
    PURCHASE = "Purchase"


class PriceListDirection(str, Enum):
    OUTPUT = "Output"  # sales, customer-facing
    INPUT = "Input"  # purchase, supplier-facing


class PriceListStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DELETED = "Deleted"


class PriceListEntryStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DELETED = "Deleted"


class AssignmentStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DELETED = "Deleted"


class PriceApplicationMode(str, Enum):
    AUTOMATIC = "Automatic"
    FORCED_PRICE_LIST = "ForcedPriceList"
    MANUAL = "Manual"
    HYBRID_FORCED_WITH_OVERRIDES = "HybridForcedWithOverrides"


class ProductStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DISCONTINUED = "Discontinued"


class BusinessPartyType(str, Enum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"
    BOTH = "Both"


class PriceSource(str, Enum):
    """Precedence tier that produced a resolved price."""

    PARAMETER_LIST = "ParameterList"
    DOCUMENT_LIST = "DocumentList"
    PARTY_LIST = "PartyList"
    GENERAL_LIST = "GeneralList"
    DEFAULT_PRICE = "DefaultPrice"


class AlertStatus(str, Enum):
    NEW = "New"
    ACKNOWLEDGED = "Acknowledged"
    DISMISSED = "Dismissed"
