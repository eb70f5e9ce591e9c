# catalog_pricing/core/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; all catalog DateTime columns store naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
