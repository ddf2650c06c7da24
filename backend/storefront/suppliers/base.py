"""Base supplier adapter interface and the records that flow through a sync.

Every supplier-specific client inherits from SupplierAdapter and returns
RawRecord objects tagged with their source. The normalizer dispatches on
that tag to build CanonicalProduct records.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from storefront.config import settings
from storefront.core.exceptions import (
    SupplierAuthError,
    SupplierError,
    SupplierHTTPError,
    SupplierThrottledError,
)
from storefront.suppliers.credentials import CredentialProvider
from storefront.suppliers.utils.rate_limiter import SlidingWindowRateLimiter
from storefront.suppliers.utils.retry import transport_retry


class SupplierSource(str, Enum):
    """Supplier tag carried by every raw and canonical record."""

    SYSCOM = "syscom"
    TECNOSINERGIA = "tecnosinergia"


@dataclass(frozen=True)
class SupplierCategoryRef:
    """Category as listed by a supplier."""

    id: str
    name: str
    level: int = 0
    description: Optional[str] = None


@dataclass
class RawRecord:
    """One product exactly as the supplier returned it."""

    source: SupplierSource
    payload: Dict[str, Any]


@dataclass
class ProductPage:
    """One page of a supplier catalog."""

    products: List[RawRecord]
    has_next_page: bool
    page: int = 1


@dataclass
class SyncError:
    """Recoverable problem recorded during a sync.

    ``context`` names the unit of work that failed, using any of the keys
    ``source``, ``category``, ``page``, ``batch`` and ``sku``.
    """

    context: Dict[str, Any]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"context": dict(self.context), "message": self.message}


@dataclass
class CategoryHarvest:
    """Raw records and page errors collected for one category."""

    category: SupplierCategoryRef
    records: List[RawRecord] = field(default_factory=list)
    errors: List[SyncError] = field(default_factory=list)
    pages_fetched: int = 0
    timed_out: bool = False


@dataclass
class CanonicalProduct:
    """Supplier-agnostic product record written to storage."""

    source: SupplierSource
    external_id: str
    sku: str
    title: str
    base_price: Decimal
    markup_percentage: Decimal
    final_price: Decimal
    stock: int
    description: str = ""
    brand: str = ""
    list_price: Optional[Decimal] = None
    special_price: Optional[Decimal] = None
    images: List[str] = field(default_factory=list)
    categories: List[Dict[str, Any]] = field(default_factory=list)
    link: Optional[str] = None
    warranty: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    is_visible: bool = True
    is_featured: bool = False

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.external_id:
            raise ValueError("external_id is required")
        if not self.sku:
            raise ValueError("sku is required")
        if self.base_price is None or self.base_price <= 0:
            raise ValueError("base_price must be a positive Decimal")
        if self.stock <= 0:
            raise ValueError("stock must be positive")

    def to_row(self, synced_at: datetime) -> Dict[str, Any]:
        """Column values for the supplier_products upsert."""
        return {
            "source": self.source.value,
            "external_id": self.external_id,
            "sku": self.sku,
            "title": self.title,
            "description": self.description,
            "brand": self.brand,
            "warranty": self.warranty,
            "link": self.link,
            "list_price": self.list_price,
            "special_price": self.special_price,
            "base_price": self.base_price,
            "markup_percentage": self.markup_percentage,
            "final_price": self.final_price,
            "stock": self.stock,
            "images": list(self.images),
            "categories": [dict(c) for c in self.categories],
            "attributes": dict(self.attributes),
            "is_visible": self.is_visible,
            "is_featured": self.is_featured,
            "last_synced_at": synced_at,
            "updated_at": synced_at,
        }


class SupplierAdapter(ABC):
    """Abstract base class for supplier catalog clients.

    Subclasses implement fetch_categories() and fetch_products_page() on
    top of _get_json(), which gates every call through the rate limiter
    and turns HTTP statuses into the exceptions the orchestrator expects:

    - 429: sleep ``throttle_cooldown_seconds`` and retry the same request,
      up to ``max_throttle_retries`` times, then SupplierThrottledError
    - 401/403: SupplierAuthError (aborts the run)
    - any other non-2xx: SupplierHTTPError
    """

    source: SupplierSource
    supplier_name: str = ""
    supports_category_selection: bool = True
    category_delay_seconds: float = 2.0

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialProvider,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        base_url: Optional[str] = None,
        throttle_cooldown_seconds: Optional[float] = None,
        max_throttle_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the adapter with its collaborators.

        Args:
            http_client: Shared httpx client for this run
            credentials: Credential provider owned by this adapter
            rate_limiter: Limiter owned by this adapter; a fresh one is
                built from settings when omitted
            base_url: Override of the supplier API base URL
            throttle_cooldown_seconds: Pause after a 429 response
            max_throttle_retries: 429 retries before giving up on a request
            sleep: Async sleep, injectable for tests
            clock: Monotonic clock, injectable for tests
        """
        self.http_client = http_client
        self.credentials = credentials
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            name=self.source.value,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            min_delay_seconds=settings.RATE_LIMIT_MIN_DELAY_SECONDS,
            clock=clock,
            sleep=sleep,
        )
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self.throttle_cooldown_seconds = (
            settings.THROTTLE_COOLDOWN_SECONDS if throttle_cooldown_seconds is None else throttle_cooldown_seconds
        )
        self.max_throttle_retries = (
            settings.MAX_THROTTLE_RETRIES if max_throttle_retries is None else max_throttle_retries
        )
        self._sleep = sleep
        self._clock = clock
        self.logger = structlog.get_logger(__name__).bind(supplier=self.source.value)

    @classmethod
    @abstractmethod
    def default_base_url(cls) -> str:
        """API base URL used when none is injected."""

    @abstractmethod
    async def auth_headers(self) -> Dict[str, str]:
        """Headers carrying the credential for one request."""

    @abstractmethod
    async def fetch_categories(self) -> List[SupplierCategoryRef]:
        """Fetch the supplier category list.

        Raises:
            SupplierAuthError: If the credential is rejected
            SupplierError: If the list cannot be fetched
        """

    @abstractmethod
    async def fetch_products_page(
        self,
        category_id: str,
        page: int,
        only_with_stock: bool = True,
    ) -> ProductPage:
        """Fetch one page of products for a category.

        Raises:
            SupplierAuthError: If the credential is rejected
            SupplierError: If the page cannot be fetched
        """

    async def collect_category(
        self,
        category: SupplierCategoryRef,
        max_pages: int = 0,
        only_with_stock: bool = True,
        deadline: Optional[float] = None,
    ) -> CategoryHarvest:
        """Page through one category and collect its raw records.

        Pages are fetched in increasing order until the supplier reports no
        next page, a page comes back empty, ``max_pages`` is reached
        (0 means unlimited) or ``deadline`` (a value of the adapter clock)
        passes. A failed page is recorded in the harvest and ends the
        category; authentication failures propagate.
        """
        harvest = CategoryHarvest(category=category)
        page = 1

        while max_pages == 0 or page <= max_pages:
            if deadline is not None and self._clock() >= deadline:
                harvest.timed_out = True
                self.logger.warning("category_deadline_reached", category=category.name, page=page)
                break

            try:
                result = await self.fetch_products_page(category.id, page, only_with_stock=only_with_stock)
            except SupplierAuthError:
                raise
            except (SupplierError, httpx.HTTPError, ValueError) as e:
                self.logger.error(
                    "page_fetch_failed",
                    category=category.name,
                    page=page,
                    error=str(e),
                )
                harvest.errors.append(
                    SyncError(
                        context={"source": self.source.value, "category": category.name, "page": page},
                        message=str(e),
                    )
                )
                break

            harvest.pages_fetched += 1
            harvest.records.extend(result.products)
            self.logger.info(
                "page_fetched",
                category=category.name,
                page=page,
                count=len(result.products),
                collected=len(harvest.records),
            )

            if not result.has_next_page or not result.products:
                break
            if max_pages and page >= max_pages:
                self.logger.info("page_limit_reached", category=category.name, max_pages=max_pages)
                break
            page += 1

        return harvest

    @transport_retry
    async def _send(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        # Every attempt, retries included, takes its own slot
        await self.rate_limiter.wait_for_slot()
        headers = await self.auth_headers()
        headers.setdefault("Accept", "application/json")
        return await self.http_client.get(f"{self.base_url}{path}", params=params, headers=headers)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a supplier endpoint through the rate limiter and decode JSON.

        Raises:
            SupplierAuthError: On 401/403
            SupplierThrottledError: When 429 persists after every cooldown
            SupplierHTTPError: On any other non-2xx status
            httpx.TransportError: When the transport keeps failing
            ValueError: When the body is not valid JSON
        """
        throttled = 0
        while True:
            response = await self._send(path, params)

            if response.status_code == 429:
                throttled += 1
                if throttled > self.max_throttle_retries:
                    raise SupplierThrottledError(self.source.value, throttled)
                self.logger.warning(
                    "supplier_rate_limited",
                    path=path,
                    params=params,
                    attempt=throttled,
                    cooldown_seconds=self.throttle_cooldown_seconds,
                )
                await self._sleep(self.throttle_cooldown_seconds)
                continue

            if response.status_code in (401, 403):
                self.credentials.invalidate()
                raise SupplierAuthError(
                    self.source.value,
                    f"credential rejected with HTTP {response.status_code}",
                )

            if not response.is_success:
                raise SupplierHTTPError(self.source.value, response.status_code, response.text)

            return response.json()
