"""Product synchronization orchestrator.

One call to ``SyncOrchestrator.run_sync()`` drives a full run for a
supplier (or both, one after the other):

1. Resolve the category set from the request or the stored selection
2. Page through each category with the supplier adapter
3. Keep records with enough stock, drop duplicates, normalize
4. Write the canonical products in batches
5. Return a SyncRun summary, also recorded in ``api_sync_logs``

Nothing raises past ``run_sync()``: lower-level failures become SyncError
entries, and only a run that cannot make progress ends with status 'error'.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import (
    CategorySelectionError,
    StorefrontException,
    SupplierAuthError,
    SupplierError,
    SyncInProgressError,
)
from storefront.services.category_service import CategoryService
from storefront.services.config_service import CATEGORIES_MODE_ALL, ConfigService, SyncLimits
from storefront.services.product_writer import ProductBatchWriter
from storefront.services.sync_log_service import SyncLogService
from storefront.suppliers.base import (
    CanonicalProduct,
    RawRecord,
    SupplierAdapter,
    SupplierCategoryRef,
    SupplierSource,
    SyncError,
)
from storefront.suppliers.factory import AdapterFactory, get_adapter_factory
from storefront.suppliers.utils.normalizer import MARKUP_MODE_PERSONALIZED, normalize, raw_identity, raw_stock

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "all"


class SyncStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class SyncSource(str, Enum):
    """Source selection of a run."""

    SYSCOM = "syscom"
    TECNOSINERGIA = "tecnosinergia"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Any) -> "SyncSource":
        """Accepts enum members, supplier tags and 'all' as an alias of 'both'."""
        if isinstance(value, Enum):
            value = value.value
        text = str(value).strip().lower()
        if text == ALL_CATEGORIES:
            return cls.BOTH
        return cls(text)

    def suppliers(self) -> List[SupplierSource]:
        if self is SyncSource.BOTH:
            return [SupplierSource.SYSCOM, SupplierSource.TECNOSINERGIA]
        return [SupplierSource(self.value)]


@dataclass
class SyncFilters:
    only_with_stock: bool = True
    min_stock: int = 1
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None

    def accepts_stock(self, stock: int) -> bool:
        if not self.only_with_stock:
            return True
        return stock >= self.min_stock

    def accepts_price(self, price: Decimal) -> bool:
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "only_with_stock": self.only_with_stock,
            "min_stock": self.min_stock,
            "min_price": str(self.min_price) if self.min_price is not None else None,
            "max_price": str(self.max_price) if self.max_price is not None else None,
        }


@dataclass
class CategorySelection:
    """Which categories to sync: every supplier category, or explicit ids."""

    mode: str
    category_ids: List[str] = field(default_factory=list)

    @classmethod
    def all(cls) -> "CategorySelection":
        return cls(mode=ALL_CATEGORIES)

    @classmethod
    def selected(cls, category_ids: Sequence[Any]) -> "CategorySelection":
        return cls(mode="selected", category_ids=[str(c) for c in category_ids])

    @classmethod
    def from_request(cls, categories: Optional[Sequence[Any]]) -> Optional["CategorySelection"]:
        """None (use the stored selection) when the request names no category."""
        if not categories:
            return None
        ids = [str(c).strip() for c in categories if str(c).strip()]
        if not ids:
            return None
        if ALL_CATEGORIES in ids:
            return cls.all()
        return cls.selected(ids)

    @property
    def is_all(self) -> bool:
        return self.mode == ALL_CATEGORIES

    def requested(self) -> List[str]:
        return [ALL_CATEGORIES] if self.is_all else list(self.category_ids)


@dataclass
class SyncRun:
    """Summary of one sync run."""

    source: str
    categories_requested: List[str] = field(default_factory=list)
    filters: SyncFilters = field(default_factory=SyncFilters)
    products_collected: int = 0
    products_with_stock: int = 0
    products_synced: int = 0
    errors: List[SyncError] = field(default_factory=list)
    status: SyncStatus = SyncStatus.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    fatal_error: Optional[str] = None
    per_source: Dict[str, "SyncRun"] = field(default_factory=dict)

    def start(self) -> None:
        self.status = SyncStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def add_error(self, context: Dict[str, Any], message: str) -> None:
        self.errors.append(SyncError(context=context, message=message))

    def fail(self, context: Dict[str, Any], message: str) -> None:
        """Record a condition that stops the run."""
        self.fatal_error = message
        self.add_error(context, message)

    def absorb(self, other: "SyncRun") -> None:
        """Fold a per-supplier run into this aggregate."""
        self.products_collected += other.products_collected
        self.products_with_stock += other.products_with_stock
        self.products_synced += other.products_synced
        self.errors.extend(other.errors)
        self.per_source[other.source] = other

    def finish(self, duration_seconds: float) -> None:
        self.finished_at = datetime.now(timezone.utc)
        self.duration_seconds = round(duration_seconds, 3)

        if self.per_source:
            failed = all(run.status == SyncStatus.ERROR for run in self.per_source.values())
        else:
            failed = self.fatal_error is not None
        if failed or (self.errors and self.products_synced == 0):
            self.status = SyncStatus.ERROR
        else:
            self.status = SyncStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "status": self.status.value,
            "categories_requested": list(self.categories_requested),
            "filters": self.filters.to_dict(),
            "products_collected": self.products_collected,
            "products_with_stock": self.products_with_stock,
            "products_synced": self.products_synced,
            "errors": [e.to_dict() for e in self.errors],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": self.duration_seconds,
            "per_source": {name: run.to_dict() for name, run in self.per_source.items()},
        }


class SyncRunGuard:
    """One lock per supplier; a second run for a busy supplier is rejected."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_running(self, source: str) -> bool:
        lock = self._locks.get(source)
        return lock is not None and lock.locked()

    def running_sources(self) -> List[str]:
        return [source for source, lock in self._locks.items() if lock.locked()]

    @asynccontextmanager
    async def hold(self, source: str) -> AsyncIterator[None]:
        """Hold the supplier lock for the duration of a run.

        Raises:
            SyncInProgressError: If the supplier is already syncing
        """
        lock = self._locks.setdefault(source, asyncio.Lock())
        if lock.locked():
            raise SyncInProgressError(source)
        async with lock:
            yield


_run_guard = SyncRunGuard()


def get_run_guard() -> SyncRunGuard:
    """Process-wide run guard shared by the API, scheduler and CLI."""
    return _run_guard


def _default_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.SUPPLIER_HTTP_TIMEOUT)


class SyncOrchestrator:
    """Runs supplier syncs end to end.

    Every collaborator can be injected; the defaults are bound to ``db``.
    """

    def __init__(
        self,
        db: Optional[AsyncSession],
        adapter_factory: Optional[AdapterFactory] = None,
        writer: Optional[ProductBatchWriter] = None,
        config_service: Optional[ConfigService] = None,
        category_service: Optional[CategoryService] = None,
        sync_log_service: Optional[SyncLogService] = None,
        run_guard: Optional[SyncRunGuard] = None,
        http_client_factory: Callable[[], httpx.AsyncClient] = _default_http_client,
        adapter_overrides: Optional[Dict[str, Any]] = None,
        batch_size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        batch_pause: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.adapter_factory = adapter_factory or get_adapter_factory()
        self.writer = writer or ProductBatchWriter(db)
        self.config_service = config_service or ConfigService(db)
        self.category_service = category_service or CategoryService(db)
        self.sync_log_service = sync_log_service or SyncLogService(db)
        self.run_guard = run_guard or SyncRunGuard()
        self.http_client_factory = http_client_factory
        self.adapter_overrides = dict(adapter_overrides or {})
        self.batch_size = batch_size or settings.SYNC_BATCH_SIZE
        self.timeout_seconds = settings.SYNC_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self.batch_pause = settings.SYNC_BATCH_PAUSE_SECONDS if batch_pause is None else batch_pause
        self._sleep = sleep
        self._clock = clock
        self.logger = logger.bind(service="sync_orchestrator")

        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    async def run_sync(
        self,
        source: Any,
        selection: Optional[CategorySelection] = None,
        filters: Optional[SyncFilters] = None,
    ) -> SyncRun:
        """Run one sync and return its summary. Never raises.

        Args:
            source: 'syscom', 'tecnosinergia', 'both' (or its alias 'all')
            selection: Categories to sync; the stored selection when None
            filters: Stock and price filters
        """
        filters = filters or SyncFilters()
        requested = selection.requested() if selection else []
        started = self._clock()
        deadline = started + self.timeout_seconds

        try:
            sync_source = SyncSource.parse(source)
        except ValueError:
            run = SyncRun(source=str(source), categories_requested=requested, filters=filters)
            run.start()
            run.fail({"source": str(source)}, f"unknown sync source '{source}'")
            run.finish(self._clock() - started)
            return run

        if sync_source is not SyncSource.BOTH:
            return await self._run_supplier(sync_source.suppliers()[0], selection, filters, deadline)

        run = SyncRun(source=sync_source.value, categories_requested=requested, filters=filters)
        run.start()
        for supplier in sync_source.suppliers():
            run.absorb(await self._run_supplier(supplier, selection, filters, deadline))
        run.finish(self._clock() - started)

        self.logger.info(
            "sync_finished",
            source=run.source,
            status=run.status.value,
            products_synced=run.products_synced,
            errors=len(run.errors),
        )
        return run

    async def _run_supplier(
        self,
        supplier: SupplierSource,
        selection: Optional[CategorySelection],
        filters: SyncFilters,
        deadline: float,
    ) -> SyncRun:
        run = SyncRun(
            source=supplier.value,
            categories_requested=selection.requested() if selection else [],
            filters=filters,
        )
        run.start()
        started = self._clock()
        log = self.logger.bind(source=supplier.value)
        log.info("sync_started", categories=run.categories_requested, filters=filters.to_dict())

        try:
            async with self.run_guard.hold(supplier.value):
                log_id = await self._start_log(run)
                try:
                    await self._execute(supplier, run, selection, filters, deadline)
                except SupplierAuthError as e:
                    log.error("sync_auth_failed", error=str(e))
                    run.fail({"source": supplier.value}, str(e))
                except CategorySelectionError as e:
                    log.error("sync_category_selection_failed", error=e.message)
                    run.fail({"source": supplier.value}, e.message)
                except StorefrontException as e:
                    log.error("sync_aborted", error=e.message)
                    run.fail({"source": supplier.value}, e.message)
                except Exception as e:
                    log.error("sync_failed", error=str(e), exc_info=True)
                    run.fail({"source": supplier.value}, f"unexpected error: {e}")

                run.finish(self._clock() - started)
                await self._finish_log(log_id, run)
        except SyncInProgressError as e:
            log.warning("sync_already_running")
            run.fail({"source": supplier.value}, e.message)
            run.finish(self._clock() - started)

        log.info(
            "supplier_sync_finished",
            status=run.status.value,
            products_collected=run.products_collected,
            products_with_stock=run.products_with_stock,
            products_synced=run.products_synced,
            errors=len(run.errors),
            duration_seconds=run.duration_seconds,
        )
        return run

    async def _execute(
        self,
        supplier: SupplierSource,
        run: SyncRun,
        selection: Optional[CategorySelection],
        filters: SyncFilters,
        deadline: float,
    ) -> None:
        async with self.http_client_factory() as http_client:
            credentials = self.adapter_factory.build_credentials(supplier, http_client, self.config_service)
            adapter = self.adapter_factory.create_adapter(
                supplier, http_client, credentials, **self.adapter_overrides
            )
            if adapter is None:
                raise SupplierError(supplier.value, "no adapter registered")

            limits = SyncLimits()
            if adapter.supports_category_selection:
                limits = await self.config_service.get_sync_limits()

            categories = await self._resolve_categories(adapter, run, selection, limits)
            records = await self._collect(adapter, run, categories, filters, limits, deadline)

        products = await self._normalize(supplier, run, records, filters)
        await self._write(supplier, run, products)

    async def _resolve_categories(
        self,
        adapter: SupplierAdapter,
        run: SyncRun,
        selection: Optional[CategorySelection],
        limits: SyncLimits,
    ) -> List[SupplierCategoryRef]:
        """Turn the requested or stored selection into supplier categories.

        Raises:
            CategorySelectionError: If the selection is empty or matches
                no supplier category
        """
        source = adapter.source.value

        if not adapter.supports_category_selection:
            return await adapter.fetch_categories()

        if selection is None:
            stored = await self.config_service.get_category_settings()
            if stored.mode == CATEGORIES_MODE_ALL:
                selection = CategorySelection.all()
            else:
                selection = CategorySelection.selected(stored.selected_ids)
            run.categories_requested = selection.requested()

        # Checked before any request goes out
        if not selection.is_all and not selection.category_ids:
            raise CategorySelectionError(
                "no categories selected for sync; select at least one category "
                "or switch the category mode to 'all'"
            )

        try:
            available = await adapter.fetch_categories()
        except SupplierAuthError:
            raise
        except (SupplierError, httpx.HTTPError, ValueError) as e:
            if selection.is_all:
                raise CategorySelectionError(f"could not fetch the category list: {e}")
            # Selected ids are still usable without the list
            run.add_error({"source": source}, f"could not fetch the category list: {e}")
            available = []
        else:
            await self._mirror_categories(source, available)

        if selection.is_all:
            categories = available
        elif available:
            by_id = {c.id: c for c in available}
            categories = [by_id[cid] for cid in selection.category_ids if cid in by_id]
            missing = [cid for cid in selection.category_ids if cid not in by_id]
            if missing:
                self.logger.warning("selected_categories_missing", source=source, category_ids=missing)
        else:
            categories = [SupplierCategoryRef(id=cid, name=cid) for cid in selection.category_ids]

        if not categories:
            raise CategorySelectionError(
                f"none of the {len(selection.category_ids)} selected categories exist at {adapter.supplier_name}"
                if not selection.is_all
                else f"{adapter.supplier_name} returned no categories"
            )

        if limits.max_categories and len(categories) > limits.max_categories:
            self.logger.info(
                "category_limit_applied",
                source=source,
                available=len(categories),
                max_categories=limits.max_categories,
            )
            categories = categories[:limits.max_categories]

        return categories

    async def _mirror_categories(self, source: str, categories: List[SupplierCategoryRef]) -> None:
        try:
            await self.category_service.upsert_categories(source, categories)
        except SQLAlchemyError as e:
            if self.db is not None:
                await self.db.rollback()
            self.logger.warning("category_mirror_failed", source=source, error=str(e))

    async def _collect(
        self,
        adapter: SupplierAdapter,
        run: SyncRun,
        categories: List[SupplierCategoryRef],
        filters: SyncFilters,
        limits: SyncLimits,
        deadline: float,
    ) -> List[RawRecord]:
        """Page through every category in order and apply the stock filter."""
        source = adapter.source.value
        records: List[RawRecord] = []

        for index, category in enumerate(categories):
            if self._clock() >= deadline:
                self._record_timeout(run, source, skipped=len(categories) - index)
                break
            if index > 0 and adapter.category_delay_seconds > 0:
                await self._sleep(adapter.category_delay_seconds)

            harvest = await adapter.collect_category(
                category,
                max_pages=limits.max_pages_per_category,
                only_with_stock=filters.only_with_stock,
                deadline=deadline,
            )
            records.extend(harvest.records)
            run.errors.extend(harvest.errors)

            if harvest.timed_out:
                self._record_timeout(run, source, skipped=len(categories) - index - 1)
                break

        run.products_collected += len(records)
        in_stock = [r for r in records if filters.accepts_stock(raw_stock(r))]
        run.products_with_stock += len(in_stock)

        self.logger.info(
            "products_collected",
            source=source,
            collected=len(records),
            with_stock=len(in_stock),
        )
        return in_stock

    def _record_timeout(self, run: SyncRun, source: str, skipped: int) -> None:
        self.logger.warning("sync_timeout_reached", source=source, skipped_categories=skipped)
        run.add_error(
            {"source": source},
            f"sync timed out after {self.timeout_seconds:g}s; {skipped} categories skipped, "
            "collected products are still written",
        )

    async def _normalize(
        self,
        supplier: SupplierSource,
        run: SyncRun,
        records: List[RawRecord],
        filters: SyncFilters,
    ) -> List[CanonicalProduct]:
        # The same product is listed under every category it belongs to
        unique: Dict[str, RawRecord] = {}
        for record in records:
            unique.setdefault(raw_identity(record), record)

        markup = await self.config_service.get_markup_settings()
        overrides: Dict[str, Decimal] = {}
        if markup.mode == MARKUP_MODE_PERSONALIZED:
            overrides = await self.writer.get_markup_overrides(supplier.value, [k for k in unique if k])

        products: List[CanonicalProduct] = []
        for external_id, record in unique.items():
            try:
                product = normalize(
                    record,
                    markup_mode=markup.mode,
                    global_markup_percent=markup.global_percentage,
                    existing_markup_override=overrides.get(external_id),
                )
            except (ValueError, ArithmeticError) as e:
                run.add_error(
                    {"source": supplier.value, "sku": external_id or None},
                    f"could not normalize product: {e}",
                )
                continue
            if product is None or not filters.accepts_price(product.base_price):
                continue
            products.append(product)

        return products

    async def _write(self, supplier: SupplierSource, run: SyncRun, products: List[CanonicalProduct]) -> None:
        for batch_number, start in enumerate(range(0, len(products), self.batch_size), start=1):
            if batch_number > 1 and self.batch_pause > 0:
                await self._sleep(self.batch_pause)

            batch = products[start:start + self.batch_size]
            result = await self.writer.write_batch(batch)
            if result.error:
                run.add_error({"source": supplier.value, "batch": batch_number}, result.error)
                continue
            run.products_synced += result.written

    async def _start_log(self, run: SyncRun) -> Optional[Any]:
        try:
            entry = await self.sync_log_service.start(
                run.source,
                metadata={"categories": run.categories_requested, "filters": run.filters.to_dict()},
            )
        except SQLAlchemyError as e:
            if self.db is not None:
                await self.db.rollback()
            self.logger.warning("sync_log_start_failed", source=run.source, error=str(e))
            return None
        return entry.id

    async def _finish_log(self, log_id: Optional[Any], run: SyncRun) -> None:
        if log_id is None:
            return
        try:
            await self.sync_log_service.finish(log_id, run)
        except SQLAlchemyError as e:
            if self.db is not None:
                await self.db.rollback()
            self.logger.warning("sync_log_finish_failed", source=run.source, error=str(e))
