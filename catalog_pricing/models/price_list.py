# catalog_pricing/models/price_list.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_pricing.db import Base
from catalog_pricing.models._base import TenantRowMixin, enum_type
from catalog_pricing.models.enums import (
    AssignmentStatus,
    PriceListDirection,
    PriceListEntryStatus,
    PriceListStatus,
    PriceListType,
)


class PriceList(TenantRowMixin, Base):
    __tablename__ = "price_lists"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), index=True, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    type: Mapped[PriceListType] = mapped_column(
        enum_type(PriceListType), default=PriceListType.SALES, nullable=False
    )
    direction: Mapped[PriceListDirection] = mapped_column(
        enum_type(PriceListDirection), default=PriceListDirection.OUTPUT, nullable=False
    )
    status: Mapped[PriceListStatus] = mapped_column(
        enum_type(PriceListStatus), default=PriceListStatus.ACTIVE, nullable=False
    )

    # higher wins among candidates of the same tier
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    valid_to: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # provenance of lists built from purchase documents
    is_generated_from_documents: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    generation_metadata: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_synced_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    entries: Mapped[List["PriceListEntry"]] = relationship(back_populates="price_list")
    assignments: Mapped[List["PriceListBusinessParty"]] = relationship(back_populates="price_list")

    def is_valid_at(self, as_of: datetime) -> bool:
        if self.valid_from is not None and self.valid_from > as_of:
            return False
        if self.valid_to is not None and self.valid_to < as_of:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<PriceList id={self.id} tenant={self.tenant_id} code={self.code} "
            f"direction={self.direction} priority={self.priority}>"
        )


class PriceListEntry(TenantRowMixin, Base):
    __tablename__ = "price_list_entries"
    __table_args__ = (
        # at most one live entry per (list, product)
        Index(
            "ux_price_list_entries_list_product_live",
            "price_list_id",
            "product_id",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("is_deleted = false"),
        ),
    )

    price_list_id: Mapped[str] = mapped_column(ForeignKey("price_lists.id"), index=True, nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True, nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)

    # 0 on max_quantity means unbounded
    min_quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    max_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    lead_time_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    minimum_order_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[PriceListEntryStatus] = mapped_column(
        enum_type(PriceListEntryStatus), default=PriceListEntryStatus.ACTIVE, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    price_list: Mapped["PriceList"] = relationship(back_populates="entries")
    product: Mapped["Product"] = relationship()

    def accepts_quantity(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity == 0 or quantity <= self.max_quantity

    def __repr__(self) -> str:
        return (
            f"<PriceListEntry id={self.id} list={self.price_list_id} "
            f"product={self.product_id} price={self.price}>"
        )


class PriceListBusinessParty(TenantRowMixin, Base):
    """Assignment of a price list to a customer or supplier."""

    __tablename__ = "price_list_business_parties"
    __table_args__ = (
        Index(
            "ux_price_list_business_parties_live",
            "price_list_id",
            "business_party_id",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("is_deleted = false"),
        ),
    )

    price_list_id: Mapped[str] = mapped_column(ForeignKey("price_lists.id"), index=True, nullable=False)
    business_party_id: Mapped[str] = mapped_column(
        ForeignKey("business_parties.id"), index=True, nullable=False
    )

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    override_priority: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    specific_valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    specific_valid_to: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # 0-100
    global_discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        enum_type(AssignmentStatus), default=AssignmentStatus.ACTIVE, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    price_list: Mapped["PriceList"] = relationship(back_populates="assignments")
    business_party: Mapped["BusinessParty"] = relationship()

    def is_valid_at(self, as_of: datetime) -> bool:
        if self.specific_valid_from is not None and self.specific_valid_from > as_of:
            return False
        if self.specific_valid_to is not None and self.specific_valid_to < as_of:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<PriceListBusinessParty list={self.price_list_id} "
            f"party={self.business_party_id} status={self.status}>"
        )
