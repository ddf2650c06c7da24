"""Tests for the batch upsert writer."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import Text, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.utils import dialect_insert
from storefront.models import SupplierProduct
from storefront.services.product_writer import ProductBatchWriter
from storefront.suppliers.base import CanonicalProduct, SupplierSource


def make_product(external_id: str, base_price: str = "100.00", stock: int = 5, **kwargs) -> CanonicalProduct:
    base = Decimal(base_price)
    markup = kwargs.pop("markup_percentage", Decimal("20"))
    return CanonicalProduct(
        source=kwargs.pop("source", SupplierSource.SYSCOM),
        external_id=external_id,
        sku=f"MOD-{external_id}",
        title=kwargs.pop("title", f"Producto {external_id}"),
        base_price=base,
        markup_percentage=markup,
        final_price=(base * (1 + markup / 100)).quantize(Decimal("0.01")),
        stock=stock,
        images=[f"https://img/{external_id}.jpg"],
        categories=[{"id": "22", "name": "Videovigilancia", "level": 1}],
        **kwargs,
    )


async def get_product(db: AsyncSession, external_id: str, source: str = "syscom") -> SupplierProduct:
    result = await db.execute(
        select(SupplierProduct).where(
            SupplierProduct.source == source,
            SupplierProduct.external_id == external_id,
        )
    )
    return result.scalar_one()


class TestProductBatchWriter:

    async def test_inserts_new_products(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)

        result = await writer.write_batch([make_product("1"), make_product("2")])

        assert result.ok
        assert result.written == 2
        count = (await test_db.execute(select(func.count()).select_from(SupplierProduct))).scalar_one()
        assert count == 2

        product = await get_product(test_db, "1")
        assert product.final_price == Decimal("120.00")
        assert product.is_visible is True
        assert product.is_featured is False
        assert product.last_synced_at is not None

    async def test_upsert_updates_supplier_fields(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)
        await writer.write_batch([make_product("1", base_price="100.00", stock=5)])

        await writer.write_batch([make_product("1", base_price="80.00", stock=2, title="Nuevo título")])
        test_db.expire_all()

        product = await get_product(test_db, "1")
        assert product.base_price == Decimal("80.00")
        assert product.final_price == Decimal("96.00")
        assert product.stock == 2
        assert product.title == "Nuevo título"
        count = (await test_db.execute(select(func.count()).select_from(SupplierProduct))).scalar_one()
        assert count == 1

    async def test_upsert_preserves_admin_fields(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)
        await writer.write_batch([make_product("1")])

        product = await get_product(test_db, "1")
        product.is_featured = True
        product.is_visible = False
        product.markup_override = Decimal("35")
        await test_db.commit()

        await writer.write_batch([make_product("1", base_price="90.00")])
        test_db.expire_all()

        product = await get_product(test_db, "1")
        assert product.base_price == Decimal("90.00")
        assert product.is_featured is True
        assert product.is_visible is False
        assert product.markup_override == Decimal("35")

    async def test_same_external_id_from_two_suppliers(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)

        await writer.write_batch([
            make_product("1", source=SupplierSource.SYSCOM),
            make_product("1", source=SupplierSource.TECNOSINERGIA),
        ])

        count = (await test_db.execute(select(func.count()).select_from(SupplierProduct))).scalar_one()
        assert count == 2

    async def test_empty_batch_is_noop(self, test_db: AsyncSession):
        result = await ProductBatchWriter(test_db).write_batch([])

        assert result.ok
        assert result.written == 0

    async def test_failed_batch_is_reported_not_raised(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)
        failure = OperationalError("INSERT ...", {}, Exception("database is locked"))

        with patch.object(test_db, "execute", AsyncMock(side_effect=failure)):
            result = await writer.write_batch([make_product("1")])

        assert not result.ok
        assert result.written == 0
        assert "database is locked" in result.error

    async def test_get_markup_overrides(self, test_db: AsyncSession):
        writer = ProductBatchWriter(test_db)
        await writer.write_batch([make_product("1"), make_product("2"), make_product("3")])
        product = await get_product(test_db, "2")
        product.markup_override = Decimal("40")
        await test_db.commit()

        overrides = await writer.get_markup_overrides("syscom", ["1", "2", "3", "404"])

        assert overrides == {"2": Decimal("40")}

    async def test_long_supplier_text_is_stored_whole(self, test_db: AsyncSession):
        title = "Cámara bala 4 MP " * 60
        writer = ProductBatchWriter(test_db)

        result = await writer.write_batch([make_product("1", title=title, brand="X" * 300, warranty="5 años " * 50)])

        assert result.ok
        product = await get_product(test_db, "1")
        assert product.title == title
        assert len(product.brand) == 300

    @pytest.mark.parametrize("column", ["sku", "title", "brand", "warranty", "link"])
    def test_free_text_columns_are_unbounded(self, column):
        assert isinstance(SupplierProduct.__table__.c[column].type, Text)


def test_dialect_insert_rejects_unsupported_dialect():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = "mysql"

    with pytest.raises(ValueError, match="mysql"):
        dialect_insert(db, SupplierProduct)
