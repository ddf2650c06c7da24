"""Supplier product model: the canonical catalog record written by the sync."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SupplierProduct(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product sourced from a supplier catalog.

    Each product is uniquely identified by the (source, external_id) pair,
    which is the conflict key of the sync upsert.

    Columns fall into two groups. Supplier-owned columns (prices, stock,
    images, ...) are overwritten on every sync. Admin-owned columns
    (``is_visible``, ``is_featured``, ``markup_override``) are only set
    when a row is first inserted and are never touched by later syncs.
    """

    __tablename__ = "supplier_products"

    # Identity
    source: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="Supplier tag: 'syscom' or 'tecnosinergia'"
    )
    external_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Product ID in the supplier catalog"
    )
    sku: Mapped[str] = mapped_column(Text, nullable=False, index=True, comment="Supplier model / SKU")

    # Product info
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    warranty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing
    list_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    special_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Price the markup is applied to"
    )
    markup_percentage: Mapped[Decimal] = mapped_column(
        Numeric(6, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Markup applied on the last sync"
    )
    final_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="base_price * (1 + markup_percentage / 100)"
    )

    # Inventory and media
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    attributes: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Supplier-specific extras (SAT key, dimensions, resources...)"
    )

    # Admin-owned
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    markup_override: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 2),
        nullable=True,
        comment="Per-product markup used in 'personalized' markup mode"
    )

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time the sync wrote this row"
    )

    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_supplier_product_source_external"),
        Index("idx_supplier_products_visible_stock", "is_visible", "stock"),
    )

    def __repr__(self) -> str:
        return f"<SupplierProduct(source='{self.source}', external_id='{self.external_id}', sku='{self.sku}')>"
