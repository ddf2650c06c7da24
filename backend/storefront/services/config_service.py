"""Runtime configuration stored in the database.

Operators edit these values from the admin panel, so they are read on
every sync instead of being cached in process settings.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.category import SelectedCategory
from storefront.models.system_config import SystemConfig
from storefront.suppliers.credentials import clean_stored_string
from storefront.suppliers.utils.normalizer import (
    MARKUP_MODE_GLOBAL,
    MARKUP_MODE_PERSONALIZED,
    parse_decimal,
)

logger = structlog.get_logger(__name__)

# system_config keys
MARKUP_MODE_KEY = "markup_mode"
GLOBAL_MARKUP_KEY = "global_markup_percentage"
CATEGORIES_MODE_KEY = "syscom_categories_mode"
MAX_CATEGORIES_KEY = "syscom_max_categories_per_sync"
MAX_PAGES_KEY = "syscom_max_pages_per_category"

CATEGORIES_MODE_ALL = "all"
CATEGORIES_MODE_SELECTED = "selected"

DEFAULT_GLOBAL_MARKUP = Decimal("20")


@dataclass
class MarkupSettings:
    mode: str
    global_percentage: Decimal


@dataclass
class CategorySettings:
    """Configured SYSCOM category selection."""

    mode: str
    selected_ids: List[str]


@dataclass
class SyncLimits:
    """Per-run ceilings; 0 means unlimited."""

    max_categories: int = 0
    max_pages_per_category: int = 0


class ConfigService:
    """Reads and writes the ``system_config`` and selected-category tables."""

    def __init__(self, db: AsyncSession):
        """Initialize config service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="config_service")

    async def get_value(self, key: str, default: Any = None) -> Any:
        result = await self.db.execute(select(SystemConfig.value).where(SystemConfig.key == key))
        value = result.scalar_one_or_none()
        return default if value is None else value

    async def get_all(self) -> Dict[str, Any]:
        result = await self.db.execute(select(SystemConfig.key, SystemConfig.value))
        return {key: value for key, value in result.all()}

    async def set_value(self, key: str, value: Any, description: Optional[str] = None) -> SystemConfig:
        """Create or update one configuration entry."""
        result = await self.db.execute(select(SystemConfig).where(SystemConfig.key == key))
        entry = result.scalar_one_or_none()

        if entry:
            entry.value = value
            if description is not None:
                entry.description = description
        else:
            entry = SystemConfig(key=key, value=value, description=description)
            self.db.add(entry)

        await self.db.commit()
        self.logger.info("config_updated", key=key)
        return entry

    async def get_string(self, key: str, default: str = "") -> str:
        return clean_stored_string(await self.get_value(key)) or default

    async def get_int(self, key: str, default: int = 0) -> int:
        """Integer setting; values saved as (quoted) strings are accepted."""
        number = parse_decimal(clean_stored_string(await self.get_value(key)))
        if number is None:
            return default
        return int(number)

    async def get_decimal(self, key: str, default: Decimal = Decimal("0")) -> Decimal:
        number = parse_decimal(clean_stored_string(await self.get_value(key)))
        return default if number is None else number

    async def get_markup_settings(self) -> MarkupSettings:
        mode = await self.get_string(MARKUP_MODE_KEY, MARKUP_MODE_GLOBAL)
        if mode not in (MARKUP_MODE_GLOBAL, MARKUP_MODE_PERSONALIZED):
            self.logger.warning("unknown_markup_mode", mode=mode, fallback=MARKUP_MODE_GLOBAL)
            mode = MARKUP_MODE_GLOBAL

        percentage = await self.get_decimal(GLOBAL_MARKUP_KEY, DEFAULT_GLOBAL_MARKUP)
        return MarkupSettings(mode=mode, global_percentage=percentage)

    async def get_category_settings(self) -> CategorySettings:
        """Configured category mode and the ids of the active selected categories."""
        mode = await self.get_string(CATEGORIES_MODE_KEY, CATEGORIES_MODE_SELECTED)
        if mode not in (CATEGORIES_MODE_ALL, CATEGORIES_MODE_SELECTED):
            self.logger.warning("unknown_categories_mode", mode=mode, fallback=CATEGORIES_MODE_SELECTED)
            mode = CATEGORIES_MODE_SELECTED

        result = await self.db.execute(
            select(SelectedCategory.category_id)
            .where(SelectedCategory.is_active.is_(True))
            .order_by(SelectedCategory.created_at)
        )
        return CategorySettings(mode=mode, selected_ids=[str(c) for c in result.scalars().all()])

    async def get_sync_limits(self) -> SyncLimits:
        return SyncLimits(
            max_categories=max(0, await self.get_int(MAX_CATEGORIES_KEY, 0)),
            max_pages_per_category=max(0, await self.get_int(MAX_PAGES_KEY, 0)),
        )
