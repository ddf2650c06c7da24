"""Sync run tracking and monitoring."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDPrimaryKeyMixin


class SyncLog(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of one supplier sync run.

    Each per-supplier run creates a SyncLog row with status 'running' and
    finishes it with the aggregated counters and error list.
    """

    __tablename__ = "api_sync_logs"

    source: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    sync_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="products",
        comment="What was synced, currently always 'products'"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'success', 'error'"
    )

    # Timing
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    # Metrics
    products_collected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_with_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Error tracking
    errors: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="List of {context, message} entries"
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Run-aborting error, if any"
    )

    # Request that started the run (categories, filters)
    metadata_: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<SyncLog(id={self.id}, source='{self.source}', status='{self.status}', created_at={self.created_at})>"
