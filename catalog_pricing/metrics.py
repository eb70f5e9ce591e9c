# catalog_pricing/metrics.py
from prometheus_client import Counter

# ---------------------------
# Price lookups
# ---------------------------
PRICE_RESOLUTIONS = Counter(
    "price_resolutions_total",
    "Prices resolved by the precedence cascade",
    ["source", "tenant_id"],
)

PRODUCT_PRICE_LOOKUPS = Counter(
    "product_price_lookups_total",
    "Product price lookups by application mode",
    ["mode", "tenant_id"],
)

# ---------------------------
# Price list mutations
# ---------------------------
BULK_PRICE_UPDATE_ITEMS = Counter(
    "bulk_price_update_items_total",
    "Price list entries processed by bulk updates",
    ["outcome", "tenant_id"],
)

SUPPLIER_BULK_UPDATES = Counter(
    "supplier_bulk_updates_total",
    "Transactional supplier product bulk updates",
    ["outcome", "tenant_id"],
)

PRICE_LISTS_CREATED = Counter(
    "price_lists_created_total",
    "Price lists created by duplication or generation",
    ["origin", "tenant_id"],
)

# ---------------------------
# Supplier suggestions
# ---------------------------
SUGGESTION_CACHE = Counter(
    "supplier_suggestion_cache_total",
    "Supplier suggestion cache lookups",
    ["result"],
)

SUPPLIER_ALERTS = Counter(
    "supplier_alerts_total",
    "Better-supplier alerts raised",
    ["outcome", "tenant_id"],
)
