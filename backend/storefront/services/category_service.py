"""Mirror of supplier category lists in ``supplier_categories``."""

import re
import unicodedata
from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.category import SupplierCategory
from storefront.suppliers.base import SupplierCategoryRef

logger = structlog.get_logger(__name__)


def slugify(text: str) -> str:
    """Lowercase ASCII slug: accents stripped, runs of other characters become '-'."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")


def category_slug(source: str, category: SupplierCategoryRef) -> str:
    # The supplier id keeps slugs unique when two categories share a name
    return f"{source}-{slugify(category.name) or 'category'}-{slugify(category.id)}"


class CategoryService:
    """Keeps the local category mirror in step with each supplier."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="category_service")

    async def upsert_categories(self, source: str, categories: List[SupplierCategoryRef]) -> int:
        """Insert new supplier categories and refresh the names of known ones.

        Admin-owned ``is_visible`` and ``sort_order`` are left alone.

        Returns:
            Number of categories inserted or updated
        """
        if not categories:
            return 0

        result = await self.db.execute(select(SupplierCategory).where(SupplierCategory.source == source))
        existing = {c.source_id: c for c in result.scalars().all()}

        changed = 0
        for category in categories:
            row = existing.get(category.id)
            if row is None:
                row = SupplierCategory(
                    source=source,
                    source_id=category.id,
                    name=category.name,
                    slug=category_slug(source, category),
                    description=category.description,
                    level=category.level,
                )
                self.db.add(row)
                existing[category.id] = row
                changed += 1
            elif (row.name, row.description, row.level) != (category.name, category.description, category.level):
                row.name = category.name
                row.description = category.description
                row.level = category.level
                changed += 1

        await self.db.commit()
        self.logger.info("categories_mirrored", source=source, total=len(categories), changed=changed)
        return changed
