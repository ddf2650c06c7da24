"""SYSCOM catalog API adapter.

Documentation: https://developers.syscom.mx/docs
The API allows 50 requests per minute per token and answers 429 past that.
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


class SyscomAdapter(SupplierAdapter):
    """Pages through the SYSCOM catalog one category at a time.

    Uses an OAuth2 bearer token supplied by the injected credential provider.
    """

    source = SupplierSource.SYSCOM
    supplier_name = "SYSCOM"
    supports_category_selection = True

    @classmethod
    def default_base_url(cls) -> str:
        return settings.SYSCOM_API_BASE

    async def auth_headers(self) -> Dict[str, str]:
        token = await self.credentials.get_token()
        return {"Authorization": f"Bearer {token}"}

    async def fetch_categories(self) -> List[SupplierCategoryRef]:
        data = await self._get_json("/categorias")
        items = data.get("categorias", []) if isinstance(data, dict) else data

        categories = []
        for item in items or []:
            if not isinstance(item, dict) or item.get("id") in (None, ""):
                continue
            categories.append(
                SupplierCategoryRef(
                    id=str(item["id"]),
                    name=item.get("nombre") or item.get("name") or "",
                    level=_to_int(item.get("nivel") or item.get("level")),
                    description=item.get("descripcion") or item.get("description"),
                )
            )

        self.logger.info("categories_fetched", count=len(categories))
        return categories

    async def fetch_products_page(
        self,
        category_id: str,
        page: int,
        only_with_stock: bool = True,
    ) -> ProductPage:
        params: Dict[str, Any] = {"categoria": category_id, "pagina": page}
        if only_with_stock:
            params["stock"] = 1

        data = await self._get_json("/productos", params=params)
        if not isinstance(data, dict):
            raise ValueError(f"unexpected /productos payload type {type(data).__name__}")

        products = [
            RawRecord(source=self.source, payload=item)
            for item in data.get("productos") or []
            if isinstance(item, dict)
        ]
        return ProductPage(products=products, has_next_page=self._has_next_page(data, page), page=page)

    @staticmethod
    def _has_next_page(data: Dict[str, Any], page: int) -> bool:
        """SYSCOM reports either ``pagina_siguiente`` or the total ``paginas``."""
        if "pagina_siguiente" in data:
            return bool(data.get("pagina_siguiente"))
        return _to_int(data.get("paginas")) > page


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
