"""Pytest configuration and shared fixtures."""

import os

# Must be set before storefront.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.models import Base


class FakeClock:
    """Monotonic clock whose sleep only advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds


def syscom_product(
    producto_id: Any,
    stock: int = 5,
    precio_lista: Any = "100.00",
    precio_especial: Optional[Any] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """SYSCOM /productos item with sensible defaults."""
    precios = {"precio_lista": precio_lista}
    if precio_especial is not None:
        precios["precio_especial"] = precio_especial
    item = {
        "producto_id": str(producto_id),
        "modelo": f"MOD-{producto_id}",
        "titulo": f"Producto {producto_id}",
        "marca": "HIKVISION",
        "total_existencia": stock,
        "precios": precios,
        "img_portada": f"https://ftp.syscom.mx/img/{producto_id}.jpg",
        "categorias": [{"id": "22", "nombre": "Videovigilancia", "nivel": 1}],
    }
    item.update(extra)
    return item


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()
