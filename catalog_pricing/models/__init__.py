# ORM models of the catalog store

from .alerts import SupplierPriceAlert
from .audit import AuditEvent
from .catalog import BusinessParty, Product, ProductSupplier, SupplierProductPriceHistory
from .document import DocumentHeader, DocumentRow, DocumentType
from .enums import (
    AlertStatus,
    AssignmentStatus,
    BusinessPartyType,
    PriceApplicationMode,
    PriceListDirection,
    PriceListEntryStatus,
    PriceListStatus,
    PriceListType,
    PriceSource,
    ProductStatus,
)
from .price_list import PriceList, PriceListBusinessParty, PriceListEntry

__all__ = [
    "AlertStatus",
    "AssignmentStatus",
    "AuditEvent",
    "BusinessParty",
    "BusinessPartyType",
    "DocumentHeader",
    "DocumentRow",
    "DocumentType",
    "PriceApplicationMode",
    "PriceList",
    "PriceListBusinessParty",
    "PriceListDirection",
    "PriceListEntry",
    "PriceListEntryStatus",
    "PriceListStatus",
    "PriceListType",
    "PriceSource",
    "Product",
    "ProductStatus",
    "ProductSupplier",
    "SupplierPriceAlert",
    "SupplierProductPriceHistory",
]
