"""Normalization of supplier records into canonical products.

Everything here is pure: plain data in, plain data out, no I/O. Each
supplier has an extractor that maps its raw payload onto the same set of
fields; ``normalize()`` dispatches on the record's source tag and applies
the shared validation and pricing rules.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from storefront.suppliers.base import CanonicalProduct, RawRecord, SupplierSource

MARKUP_MODE_GLOBAL = "global"
MARKUP_MODE_PERSONALIZED = "personalized"

TWO_PLACES = Decimal("0.01")


@dataclass
class _ExtractedFields:
    """Supplier fields mapped onto canonical names, before validation."""

    external_id: str
    sku: str
    title: str = ""
    description: str = ""
    brand: str = ""
    list_price: Optional[Decimal] = None
    special_price: Optional[Decimal] = None
    stock: int = 0
    cover_image: Optional[str] = None
    images: List[Any] = field(default_factory=list)
    categories: List[Any] = field(default_factory=list)
    link: Optional[str] = None
    warranty: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a supplier price or measure.

    Handles numbers, numeric strings, thousand separators and a leading
    currency sign. Returns None for empty values, "-" and garbage.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "").replace("$", "").strip()
        if not text or text == "-":
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    return result


def parse_int(value: Any) -> int:
    """Parse a stock count; anything unparseable counts as 0."""
    number = parse_decimal(value)
    if number is None:
        return 0
    return int(number)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def compute_final_price(base_price: Decimal, markup_percentage: Decimal) -> Decimal:
    """Sale price: base * (1 + markup / 100), rounded to cents."""
    return (base_price * (Decimal("1") + markup_percentage / Decimal("100"))).quantize(
        TWO_PLACES, rounding=ROUND_HALF_UP
    )


def resolve_base_price(list_price: Optional[Decimal], special_price: Optional[Decimal]) -> Optional[Decimal]:
    """Special price wins over list price when present and positive."""
    if special_price is not None and special_price > 0:
        return special_price
    return list_price


def resolve_markup(
    markup_mode: str,
    global_markup_percent: Any,
    existing_markup_override: Any = None,
) -> Decimal:
    """Per-product override in personalized mode, global rate otherwise."""
    if markup_mode == MARKUP_MODE_PERSONALIZED and existing_markup_override is not None:
        override = parse_decimal(existing_markup_override)
        if override is not None:
            return override
    return parse_decimal(global_markup_percent) or Decimal("0")


def build_image_list(cover: Optional[str], images: List[Any]) -> List[str]:
    """Cover first, then the supplier's images in order, no duplicates or blanks.

    Entries may be plain URLs or objects with an ``imagen`` or ``url`` key.
    """
    result: List[str] = []
    seen = set()

    candidates: List[Any] = [cover] if cover else []
    candidates.extend(images or [])

    for entry in candidates:
        if isinstance(entry, dict):
            url = _text(entry.get("imagen") or entry.get("url"))
        else:
            url = _text(entry)
        if not url or url in seen:
            continue
        seen.add(url)
        result.append(url)
    return result


def normalize_category(raw: Any) -> Optional[Dict[str, Any]]:
    """Map a supplier category object to {id, name, level}."""
    if not isinstance(raw, dict):
        return None
    category_id = raw.get("id", raw.get("categoria_id"))
    return {
        "id": _text(category_id),
        "name": _text(raw.get("nombre") or raw.get("name")),
        "level": parse_int(raw.get("nivel", raw.get("level"))),
    }


# ---------------------------------------------------------------------------
# Supplier extractors
# ---------------------------------------------------------------------------


def _extract_syscom(payload: Dict[str, Any]) -> _ExtractedFields:
    prices = payload.get("precios") or {}
    if not isinstance(prices, dict):
        prices = {}

    def price(key: str) -> Optional[Decimal]:
        return parse_decimal(prices.get(key) or payload.get(key))

    attributes: Dict[str, Any] = {
        "sat_key": payload.get("sat_key") or payload.get("clave_sat"),
        "discount_price": price("precio_descuento"),
        "volume_prices": prices.get("volumen") or {},
        "brand_logo": payload.get("marca_logo") or payload.get("img_marca") or "",
        "weight": parse_decimal(payload.get("peso")),
        "height": parse_decimal(payload.get("alto")),
        "length": parse_decimal(payload.get("largo")),
        "width": parse_decimal(payload.get("ancho")),
        "stock_by_branch": payload.get("existencia") or {},
        "images_360": payload.get("imagen_360") if isinstance(payload.get("imagen_360"), list) else [],
        "resources": [
            {
                "type": _text(r.get("tipo") or r.get("type")),
                "url": _text(r.get("url") or r.get("link")),
                "title": _text(r.get("titulo") or r.get("title")),
            }
            for r in payload.get("recursos") or []
            if isinstance(r, dict)
        ],
        "features": payload.get("especificaciones") or payload.get("caracteristicas") or [],
    }
    if attributes["discount_price"] is not None:
        attributes["discount_price"] = str(attributes["discount_price"])
    for key in ("weight", "height", "length", "width"):
        if attributes[key] is not None:
            attributes[key] = str(attributes[key])

    images = payload.get("imagenes")
    return _ExtractedFields(
        external_id=_text(payload.get("producto_id")),
        sku=_text(payload.get("modelo")),
        title=_text(payload.get("titulo")),
        description=_text(payload.get("descripcion")),
        brand=_text(payload.get("marca")),
        list_price=price("precio_lista"),
        special_price=price("precio_especial"),
        stock=parse_int(payload.get("total_existencia")),
        cover_image=_text(payload.get("img_portada")) or None,
        images=images if isinstance(images, list) else [],
        categories=payload.get("categorias") if isinstance(payload.get("categorias"), list) else [],
        link=_text(payload.get("link")) or None,
        warranty=_text(payload.get("garantia")) or None,
        attributes=attributes,
    )


def _extract_tecnosinergia(payload: Dict[str, Any]) -> _ExtractedFields:
    sku = _text(payload.get("sku"))
    external_id = _text(payload.get("item_id") or payload.get("id")) or sku

    categories: List[Any] = []
    if isinstance(payload.get("categories"), list):
        categories = payload["categories"]
    elif payload.get("category_id") not in (None, ""):
        categories = [{"id": payload.get("category_id"), "name": payload.get("category") or "", "level": 0}]

    images = payload.get("images")
    return _ExtractedFields(
        external_id=external_id,
        sku=sku,
        title=_text(payload.get("name")),
        description=_text(payload.get("description")),
        brand=_text(payload.get("brand")),
        list_price=parse_decimal(payload.get("price")),
        special_price=parse_decimal(payload.get("special_price") or payload.get("promo_price")),
        stock=parse_int(payload.get("stock")),
        cover_image=_text(payload.get("image")) or None,
        images=images if isinstance(images, list) else [],
        categories=categories,
        link=_text(payload.get("url")) or None,
        warranty=_text(payload.get("warranty")) or None,
        attributes={"currency": payload.get("currency")} if payload.get("currency") else {},
    )


_EXTRACTORS: Dict[SupplierSource, Callable[[Dict[str, Any]], _ExtractedFields]] = {
    SupplierSource.SYSCOM: _extract_syscom,
    SupplierSource.TECNOSINERGIA: _extract_tecnosinergia,
}


def _extract(raw: RawRecord) -> _ExtractedFields:
    try:
        extractor = _EXTRACTORS[raw.source]
    except KeyError:
        raise ValueError(f"No extractor registered for source {raw.source!r}")
    return extractor(raw.payload)


def raw_stock(raw: RawRecord) -> int:
    """Stock count of a raw record, as used by the pre-normalization filter."""
    return _extract(raw).stock


def raw_identity(raw: RawRecord) -> str:
    """Supplier product id of a raw record (may be empty)."""
    return _extract(raw).external_id


def normalize(
    raw: RawRecord,
    markup_mode: str,
    global_markup_percent: Any,
    existing_markup_override: Any = None,
) -> Optional[CanonicalProduct]:
    """Convert one raw supplier record into a CanonicalProduct.

    Returns None (a rejection, not an error) when the record has no stock,
    no positive base price, or no external id / SKU.

    Args:
        raw: Source-tagged supplier record
        markup_mode: 'global' or 'personalized'
        global_markup_percent: Markup applied when no override is used
        existing_markup_override: Stored per-product markup, if any

    Raises:
        ValueError: If the record's source has no extractor
    """
    fields = _extract(raw)

    if not fields.external_id or not fields.sku:
        return None
    if fields.stock <= 0:
        return None

    base_price = resolve_base_price(fields.list_price, fields.special_price)
    if base_price is None or base_price <= 0:
        return None

    markup = resolve_markup(markup_mode, global_markup_percent, existing_markup_override)
    categories = [c for c in (normalize_category(c) for c in fields.categories) if c is not None]

    return CanonicalProduct(
        source=raw.source,
        external_id=fields.external_id,
        sku=fields.sku,
        title=fields.title,
        description=fields.description,
        brand=fields.brand,
        list_price=fields.list_price,
        special_price=fields.special_price if fields.special_price and fields.special_price > 0 else None,
        base_price=base_price,
        markup_percentage=markup,
        final_price=compute_final_price(base_price, markup),
        stock=fields.stock,
        images=build_image_list(fields.cover_image, fields.images),
        categories=categories,
        link=fields.link,
        warranty=fields.warranty,
        attributes=fields.attributes,
    )
