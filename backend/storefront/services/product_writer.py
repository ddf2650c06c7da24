"""Batch upsert of canonical products into ``supplier_products``.

The upsert is a field-level patch keyed on (source, external_id): a new
row gets every column, an existing row only has its supplier-owned
columns overwritten. Admin-curated columns are absent from the UPDATE
clause, so they survive any number of syncs without a read-back.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.utils import dialect_insert
from storefront.models.product import SupplierProduct
from storefront.suppliers.base import CanonicalProduct

logger = structlog.get_logger(__name__)

# Columns a sync may overwrite on conflict
SUPPLIER_OWNED_COLUMNS = (
    "sku",
    "title",
    "description",
    "brand",
    "warranty",
    "link",
    "list_price",
    "special_price",
    "base_price",
    "markup_percentage",
    "final_price",
    "stock",
    "images",
    "categories",
    "attributes",
    "last_synced_at",
    "updated_at",
)

# Keeps IN (...) lists well under driver parameter limits
OVERRIDE_LOOKUP_CHUNK = 500


@dataclass
class BatchWriteResult:
    written: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProductBatchWriter:
    """Writes canonical products one batch per transaction.

    A failed batch is rolled back and reported in the result; it never
    raises, so the caller can carry on with the next batch.
    """

    def __init__(self, db: AsyncSession):
        """Initialize the writer.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="product_writer")

    async def write_batch(self, records: List[CanonicalProduct]) -> BatchWriteResult:
        if not records:
            return BatchWriteResult(written=0)

        synced_at = datetime.now(timezone.utc)
        rows = []
        for record in records:
            row = record.to_row(synced_at)
            row["id"] = uuid.uuid4()
            rows.append(row)

        try:
            stmt = dialect_insert(self.db, SupplierProduct).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=["source", "external_id"],
                set_={column: stmt.excluded[column] for column in SUPPLIER_OWNED_COLUMNS},
            )
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("batch_write_failed", size=len(rows), error=str(e))
            return BatchWriteResult(written=0, error=str(e))

        self.logger.debug("batch_written", size=len(rows))
        return BatchWriteResult(written=len(rows))

    async def get_markup_overrides(self, source: str, external_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Stored per-product markup overrides, keyed by external id."""
        ids = list(dict.fromkeys(external_ids))
        overrides: Dict[str, Decimal] = {}

        for start in range(0, len(ids), OVERRIDE_LOOKUP_CHUNK):
            chunk = ids[start:start + OVERRIDE_LOOKUP_CHUNK]
            result = await self.db.execute(
                select(SupplierProduct.external_id, SupplierProduct.markup_override).where(
                    SupplierProduct.source == source,
                    SupplierProduct.external_id.in_(chunk),
                    SupplierProduct.markup_override.is_not(None),
                )
            )
            for external_id, override in result.all():
                overrides[external_id] = override

        return overrides
