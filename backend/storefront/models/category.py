"""Supplier category mirror and the SYSCOM category selection."""

from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SupplierCategory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Category as published by a supplier, refreshed on every sync."""

    __tablename__ = "supplier_categories"

    source: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(100), nullable=False, comment="Category ID in the supplier API")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_supplier_category_source_id"),
    )

    def __repr__(self) -> str:
        return f"<SupplierCategory(source='{self.source}', source_id='{self.source_id}', name='{self.name}')>"


class SelectedCategory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """SYSCOM category an operator picked for the 'selected' sync mode."""

    __tablename__ = "syscom_selected_categories"

    category_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return f"<SelectedCategory(category_id='{self.category_id}', is_active={self.is_active})>"
