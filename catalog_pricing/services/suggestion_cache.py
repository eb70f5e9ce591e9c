# catalog_pricing/services/suggestion_cache.py
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from catalog_pricing.metrics import SUGGESTION_CACHE

logger = logging.getLogger(__name__)


def cache_key(product_id: str, tenant_id: str) -> str:
    return f"SupplierSuggestions_{product_id}_{tenant_id}"


class SuggestionCache:
    """
    In-process TTL cache for supplier suggestions, keyed by (product, tenant).
    Not shared between processes; a multi-process deployment needs a shared store
    behind the same get/set/invalidate methods.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._items: Dict[str, Tuple[float, Any]] = {}

    def get(self, product_id: str, tenant_id: str) -> Optional[Any]:
        key = cache_key(product_id, tenant_id)
        with self._lock:
            item = self._items.get(key)
            if item is None:
                SUGGESTION_CACHE.labels(result="miss").inc()
                return None
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._items[key]
                SUGGESTION_CACHE.labels(result="expired").inc()
                return None
        SUGGESTION_CACHE.labels(result="hit").inc()
        return value

    def set(self, product_id: str, tenant_id: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._items[cache_key(product_id, tenant_id)] = (self._clock() + ttl_seconds, value)

    def invalidate(self, product_id: str, tenant_id: str) -> None:
        with self._lock:
            removed = self._items.pop(cache_key(product_id, tenant_id), None)
        if removed is not None:
            logger.debug("Invalidated supplier suggestion cache for product %s (tenant %s)", product_id, tenant_id)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


_suggestion_cache: Optional[SuggestionCache] = None


def get_suggestion_cache() -> SuggestionCache:
    global _suggestion_cache
    if _suggestion_cache is None:
        _suggestion_cache = SuggestionCache()
    return _suggestion_cache
