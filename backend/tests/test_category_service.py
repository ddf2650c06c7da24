"""Tests for the supplier category mirror."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import SupplierCategory
from storefront.services.category_service import CategoryService, category_slug, slugify
from storefront.suppliers.base import SupplierCategoryRef


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Videovigilancia", "videovigilancia"),
        ("Energía / UPS", "energia-ups"),
        ("  Cableado estructurado  ", "cableado-estructurado"),
        ("¡!", ""),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_category_slug_includes_source_and_id():
    assert category_slug("syscom", SupplierCategoryRef(id="22", name="Videovigilancia")) == "syscom-videovigilancia-22"
    assert category_slug("syscom", SupplierCategoryRef(id="9", name="¡!")) == "syscom-category-9"


class TestCategoryService:

    async def test_inserts_then_updates(self, test_db: AsyncSession):
        service = CategoryService(test_db)

        changed = await service.upsert_categories("syscom", [
            SupplierCategoryRef(id="22", name="Videovigilancia", level=1),
            SupplierCategoryRef(id="37", name="Redes", level=1),
        ])
        assert changed == 2

        row = (await test_db.execute(
            select(SupplierCategory).where(SupplierCategory.source_id == "37")
        )).scalar_one()
        row.is_visible = False
        await test_db.commit()

        changed = await service.upsert_categories("syscom", [
            SupplierCategoryRef(id="22", name="Videovigilancia", level=1),
            SupplierCategoryRef(id="37", name="Redes e IT", level=1),
        ])
        assert changed == 1

        rows = {c.source_id: c for c in (await test_db.execute(select(SupplierCategory))).scalars().all()}
        assert rows["37"].name == "Redes e IT"
        assert rows["37"].is_visible is False
        assert rows["37"].slug == "syscom-redes-37"

    async def test_empty_list_is_noop(self, test_db: AsyncSession):
        assert await CategoryService(test_db).upsert_categories("syscom", []) == 0
