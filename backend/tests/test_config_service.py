"""Tests for the runtime configuration store."""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import SelectedCategory
from storefront.services.config_service import (
    CATEGORIES_MODE_ALL,
    CATEGORIES_MODE_SELECTED,
    ConfigService,
)
from storefront.suppliers.utils.normalizer import MARKUP_MODE_GLOBAL, MARKUP_MODE_PERSONALIZED


class TestConfigService:

    async def test_set_and_get_value(self, test_db: AsyncSession):
        service = ConfigService(test_db)

        await service.set_value("markup_mode", "personalized", "Modo de markup")
        await service.set_value("markup_mode", "global")

        assert await service.get_value("markup_mode") == "global"
        assert await service.get_value("missing", "fallback") == "fallback"
        assert await service.get_all() == {"markup_mode": "global"}

    async def test_markup_defaults(self, test_db: AsyncSession):
        settings = await ConfigService(test_db).get_markup_settings()

        assert settings.mode == MARKUP_MODE_GLOBAL
        assert settings.global_percentage == Decimal("20")

    async def test_markup_values_saved_as_quoted_strings(self, test_db: AsyncSession):
        service = ConfigService(test_db)
        await service.set_value("markup_mode", '"personalized"')
        await service.set_value("global_markup_percentage", '"25.5"')

        settings = await service.get_markup_settings()

        assert settings.mode == MARKUP_MODE_PERSONALIZED
        assert settings.global_percentage == Decimal("25.5")

    async def test_unknown_markup_mode_falls_back_to_global(self, test_db: AsyncSession):
        service = ConfigService(test_db)
        await service.set_value("markup_mode", "fancy")

        assert (await service.get_markup_settings()).mode == MARKUP_MODE_GLOBAL

    async def test_category_settings_only_active_rows(self, test_db: AsyncSession):
        test_db.add_all([
            SelectedCategory(category_id="22", category_name="Videovigilancia", is_active=True),
            SelectedCategory(category_id="37", category_name="Redes", is_active=False),
        ])
        await test_db.commit()

        settings = await ConfigService(test_db).get_category_settings()

        assert settings.mode == CATEGORIES_MODE_SELECTED
        assert settings.selected_ids == ["22"]

    async def test_category_mode_all(self, test_db: AsyncSession):
        service = ConfigService(test_db)
        await service.set_value("syscom_categories_mode", "all")

        assert (await service.get_category_settings()).mode == CATEGORIES_MODE_ALL

    async def test_sync_limits(self, test_db: AsyncSession):
        service = ConfigService(test_db)
        await service.set_value("syscom_max_categories_per_sync", "5")
        await service.set_value("syscom_max_pages_per_category", 3)

        limits = await service.get_sync_limits()

        assert limits.max_categories == 5
        assert limits.max_pages_per_category == 3

    async def test_sync_limits_default_to_unlimited(self, test_db: AsyncSession):
        limits = await ConfigService(test_db).get_sync_limits()

        assert limits.max_categories == 0
        assert limits.max_pages_per_category == 0
