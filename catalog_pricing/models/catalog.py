# catalog_pricing/models/catalog.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_pricing.core.clock import utcnow
from catalog_pricing.db import Base
from catalog_pricing.models._base import TenantRowMixin, enum_type, new_id
from catalog_pricing.models.enums import (
    BusinessPartyType,
    PriceApplicationMode,
    ProductStatus,
)


class Product(TenantRowMixin, Base):
    __tablename__ = "products"

    code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[ProductStatus] = mapped_column(
        enum_type(ProductStatus), default=ProductStatus.ACTIVE, nullable=False
    )

    # terminal fallback of the price cascade
    default_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)

    # category/brand are owned by the catalog CRUD layer, only their ids live here
    category_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    brand_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)

    suppliers: Mapped[List["ProductSupplier"]] = relationship(back_populates="product")

    def __repr__(self) -> str:
        return f"<Product id={self.id} tenant={self.tenant_id} code={self.code}>"


class BusinessParty(TenantRowMixin, Base):
    __tablename__ = "business_parties"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    party_type: Mapped[BusinessPartyType] = mapped_column(
        enum_type(BusinessPartyType), default=BusinessPartyType.CUSTOMER, nullable=False
    )

    default_sales_price_list_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("price_lists.id"), nullable=True
    )
    default_purchase_price_list_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("price_lists.id"), nullable=True
    )
    default_price_application_mode: Mapped[Optional[PriceApplicationMode]] = mapped_column(
        enum_type(PriceApplicationMode), nullable=True
    )
    forced_price_list_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("price_lists.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<BusinessParty id={self.id} tenant={self.tenant_id} name={self.name!r}>"


class ProductSupplier(TenantRowMixin, Base):
    __tablename__ = "product_suppliers"

    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True, nullable=False)
    supplier_id: Mapped[str] = mapped_column(
        ForeignKey("business_parties.id"), index=True, nullable=False
    )
    supplier_product_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    lead_time_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_order_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    preferred: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    last_purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    last_purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    product: Mapped["Product"] = relationship(back_populates="suppliers")
    supplier: Mapped["BusinessParty"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<ProductSupplier id={self.id} product={self.product_id} "
            f"supplier={self.supplier_id} preferred={self.preferred}>"
        )


class SupplierProductPriceHistory(Base):
    """Append-only record of supplier unit cost changes (feeds the trend score)."""

    __tablename__ = "supplier_product_price_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)

    supplier_id: Mapped[str] = mapped_column(
        ForeignKey("business_parties.id"), index=True, nullable=False
    )
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True, nullable=False)
    product_supplier_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("product_suppliers.id"), nullable=True
    )

    old_unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    new_unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)

    change_source: Mapped[str] = mapped_column(String(50), default="Manual", nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True, nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SupplierProductPriceHistory supplier={self.supplier_id} "
            f"product={self.product_id} {self.old_unit_cost}->{self.new_unit_cost}>"
        )
