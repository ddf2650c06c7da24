"""Services module for business logic and data operations.

Services wrap database access and drive the supplier sync; the API
routes, the scheduler and the CLI all go through them.
"""

from storefront.services.category_service import CategoryService
from storefront.services.config_service import ConfigService
from storefront.services.product_writer import BatchWriteResult, ProductBatchWriter
from storefront.services.sync_log_service import SyncLogService
from storefront.services.sync_service import (
    CategorySelection,
    SyncFilters,
    SyncOrchestrator,
    SyncRun,
    SyncSource,
    SyncStatus,
)

__all__ = [
    "BatchWriteResult",
    "CategoryService",
    "CategorySelection",
    "ConfigService",
    "ProductBatchWriter",
    "SyncFilters",
    "SyncLogService",
    "SyncOrchestrator",
    "SyncRun",
    "SyncSource",
    "SyncStatus",
]
