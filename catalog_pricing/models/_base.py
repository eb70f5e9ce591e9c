# catalog_pricing/models/_base.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pricing.core.clock import utcnow


def new_id() -> str:
    return str(uuid4())


class TenantRowMixin:
    """id / tenant / soft-delete / bookkeeping columns shared by catalog rows."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, onupdate=utcnow)
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def soft_delete(self, actor: Optional[str]) -> None:
        self.is_deleted = True
        self.deleted_at = utcnow()
        self.deleted_by = actor


def enum_type(enum_cls):
    """Store the enum's value (e.g. "Active"), not its Python member name."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=40,
        values_callable=lambda members: [m.value for m in members],
    )
