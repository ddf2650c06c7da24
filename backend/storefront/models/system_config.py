"""Key/value runtime configuration edited from the admin panel."""

from typing import Any, Optional

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SystemConfig(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One configuration entry, e.g. ``markup_mode`` or ``global_markup_percentage``.

    Values are stored as JSON so admins can save numbers, strings or lists;
    readers must tolerate numbers saved as (possibly quoted) strings.
    """

    __tablename__ = "system_config"

    key: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SystemConfig(key='{self.key}')>"
