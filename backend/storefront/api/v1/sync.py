"""Product sync endpoints.

Trigger a supplier sync and inspect past runs. A sync runs inside the
request and its summary is the response body; failures are reported in
``status`` and ``errors`` rather than as HTTP errors.
"""

import math
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.dependencies import get_db, get_sync_orchestrator
from storefront.schemas import (
    ApiResponse,
    PaginationMeta,
    SyncLogResponse,
    SyncRequest,
    SyncRunResponse,
    SyncStatsResponse,
    SyncStatusResponse,
)
from storefront.services.sync_log_service import SyncLogService
from storefront.services.sync_service import (
    CategorySelection,
    SyncFilters,
    SyncOrchestrator,
    get_run_guard,
)
from storefront.suppliers.base import SupplierSource

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("", response_model=SyncRunResponse)
async def trigger_sync(
    body: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """Run a product sync and return its summary.

    ``source`` is 'syscom', 'tecnosinergia' or 'both' ('all' is accepted
    as an alias of 'both').
    """
    logger.info("sync_requested", source=body.source, categories=body.categories)

    run = await orchestrator.run_sync(
        body.source,
        selection=CategorySelection.from_request(body.categories),
        filters=SyncFilters(
            only_with_stock=body.filters.only_with_stock,
            min_stock=body.filters.min_stock,
            min_price=body.filters.min_price,
            max_price=body.filters.max_price,
        ),
    )
    return SyncRunResponse.model_validate(run.to_dict())


@router.get("/logs", response_model=ApiResponse[list[SyncLogResponse]])
async def list_sync_logs(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    source: Optional[SupplierSource] = Query(None, description="Filter by supplier"),
    status: Optional[str] = Query(None, pattern="^(running|success|error)$", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
):
    """List sync runs, most recent first."""
    service = SyncLogService(db)
    logs, total = await service.list_logs(
        source=source.value if source else None,
        status=status,
        limit=limit,
        offset=(page - 1) * limit,
    )

    return ApiResponse(
        data=[SyncLogResponse.model_validate(log) for log in logs],
        meta=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/logs/stats", response_model=ApiResponse[SyncStatsResponse])
async def get_sync_stats(
    days: int = Query(7, ge=1, le=365, description="Period in days"),
    source: Optional[SupplierSource] = Query(None, description="Filter by supplier"),
    db: AsyncSession = Depends(get_db),
):
    """Aggregate statistics of recent sync runs."""
    service = SyncLogService(db)
    stats = await service.get_stats(source=source.value if source else None, days=days)
    return ApiResponse(data=SyncStatsResponse(**stats))


@router.get("/status", response_model=ApiResponse[SyncStatusResponse])
async def get_sync_status(db: AsyncSession = Depends(get_db)):
    """Which suppliers are syncing now, and the latest run of each."""
    service = SyncLogService(db)
    latest = {}
    for source in SupplierSource:
        log = await service.get_latest(source.value)
        latest[source.value] = SyncLogResponse.model_validate(log) if log else None

    return ApiResponse(data=SyncStatusResponse(running=get_run_guard().running_sources(), latest=latest))
