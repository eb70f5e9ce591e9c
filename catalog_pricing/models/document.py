# catalog_pricing/models/document.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_pricing.db import Base
from catalog_pricing.models._base import TenantRowMixin


class DocumentType(TenantRowMixin, Base):
    __tablename__ = "document_types"

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # goods receipt, purchase invoice...: drives direction inference and purchase history
    is_stock_increase: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<DocumentType code={self.code} stock_increase={self.is_stock_increase}>"


class DocumentHeader(TenantRowMixin, Base):
    __tablename__ = "document_headers"

    document_type_id: Mapped[str] = mapped_column(ForeignKey("document_types.id"), nullable=False)
    business_party_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("business_parties.id"), index=True, nullable=True
    )
    price_list_id: Mapped[Optional[str]] = mapped_column(ForeignKey("price_lists.id"), nullable=True)

    number: Mapped[str] = mapped_column(String(30), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)

    document_type: Mapped["DocumentType"] = relationship()
    rows: Mapped[List["DocumentRow"]] = relationship(back_populates="header")

    def __repr__(self) -> str:
        return f"<DocumentHeader id={self.id} number={self.number} date={self.date}>"


class DocumentRow(TenantRowMixin, Base):
    __tablename__ = "document_rows"

    document_header_id: Mapped[str] = mapped_column(
        ForeignKey("document_headers.id"), index=True, nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(ForeignKey("products.id"), index=True, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=Decimal("1"), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=Decimal("0"), nullable=False)

    header: Mapped["DocumentHeader"] = relationship(back_populates="rows")

    def __repr__(self) -> str:
        return (
            f"<DocumentRow header={self.document_header_id} product={self.product_id} "
            f"qty={self.quantity} unit_price={self.unit_price}>"
        )
