"""TECNOSINERGIA item API adapter.

The v3 API authenticates with a static ``api-token`` header and publishes
its catalog as a flat item list, so the whole catalog is exposed as a
single pseudo-category.
"""

from typing import Any, Dict, List

from storefront.config import settings
from storefront.suppliers.base import (
    ProductPage,
    RawRecord,
    SupplierAdapter,
    SupplierCategoryRef,
    SupplierSource,
)

FULL_CATALOG = SupplierCategoryRef(id="all", name="Catálogo completo")


class TecnosinergiaAdapter(SupplierAdapter):
    """Reads the TECNOSINERGIA item list page by page."""

    source = SupplierSource.TECNOSINERGIA
    supplier_name = "TECNOSINERGIA"
    supports_category_selection = False

    @classmethod
    def default_base_url(cls) -> str:
        return settings.TECNOSINERGIA_API_BASE

    async def auth_headers(self) -> Dict[str, str]:
        token = await self.credentials.get_token()
        return {"api-token": token}

    async def fetch_categories(self) -> List[SupplierCategoryRef]:
        # No category endpoint: the item list is the whole catalog
        return [FULL_CATALOG]

    async def fetch_products_page(
        self,
        category_id: str,
        page: int,
        only_with_stock: bool = True,
    ) -> ProductPage:
        data = await self._get_json("/item/list", params={"page": page})
        items = self._extract_items(data)

        products = [RawRecord(source=self.source, payload=item) for item in items if isinstance(item, dict)]
        return ProductPage(products=products, has_next_page=self._has_next_page(data, page), page=page)

    @staticmethod
    def _extract_items(data: Any) -> List[Any]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("products", "items", "data"):
                if isinstance(data.get(key), list):
                    return data[key]
            return []
        raise ValueError(f"unexpected /item/list payload type {type(data).__name__}")

    @staticmethod
    def _has_next_page(data: Any, page: int) -> bool:
        """A bare list is the full catalog; paginated bodies carry their bounds."""
        if not isinstance(data, dict):
            return False
        if data.get("next_page_url"):
            return True
        for key in ("last_page", "total_pages"):
            if key in data:
                try:
                    return int(data[key]) > page
                except (TypeError, ValueError):
                    return False
        return False
