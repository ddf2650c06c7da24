"""Pydantic schemas for the storefront sync API.

All request/response models are defined here for easy import.
"""

from storefront.schemas.common import ApiResponse, PaginationMeta
from storefront.schemas.health import HealthCheckResponse
from storefront.schemas.sync import (
    SyncErrorResponse,
    SyncFiltersRequest,
    SyncLogResponse,
    SyncRequest,
    SyncRunResponse,
    SyncStatsResponse,
    SyncStatusResponse,
)

__all__ = [
    # Common
    "ApiResponse",
    "PaginationMeta",
    # Health
    "HealthCheckResponse",
    # Sync
    "SyncErrorResponse",
    "SyncFiltersRequest",
    "SyncLogResponse",
    "SyncRequest",
    "SyncRunResponse",
    "SyncStatsResponse",
    "SyncStatusResponse",
]
