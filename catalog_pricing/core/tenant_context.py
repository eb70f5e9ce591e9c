# catalog_pricing/core/tenant_context.py
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

import structlog

from catalog_pricing.core.errors import TENANT_CONTEXT_MISSING, BusinessRuleError

tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def set_tenant(tenant_id: Optional[str]) -> None:
    tenant_id_var.set(tenant_id)
    if tenant_id:
        structlog.contextvars.bind_contextvars(tenant_id=tenant_id)
    else:
        structlog.contextvars.unbind_contextvars("tenant_id")


def clear_tenant() -> None:
    set_tenant(None)


def get_current_tenant() -> Optional[str]:
    return tenant_id_var.get()


def require_tenant() -> str:
    tenant_id = tenant_id_var.get()
    if not tenant_id:
        raise BusinessRuleError(TENANT_CONTEXT_MISSING, "Tenant context is required for pricing operations")
    return tenant_id


@contextmanager
def tenant_scope(tenant_id: str) -> Iterator[str]:
    """Run a block as `tenant_id`; the previous tenant is restored afterwards."""
    previous = tenant_id_var.get()
    set_tenant(tenant_id)
    try:
        yield tenant_id
    finally:
        set_tenant(previous)
