"""Supplier catalog clients.

This package provides:
- The SupplierAdapter interface and the records that flow through a sync
- SYSCOM and TECNOSINERGIA adapters
- Credential providers injected into each adapter
- Factory for creating adapter instances
"""

from .base import (
    CanonicalProduct,
    CategoryHarvest,
    ProductPage,
    RawRecord,
    SupplierAdapter,
    SupplierCategoryRef,
    SupplierSource,
    SyncError,
)
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Base classes
    "SupplierAdapter",
    "SupplierSource",
    # Data structures
    "CanonicalProduct",
    "CategoryHarvest",
    "ProductPage",
    "RawRecord",
    "SupplierCategoryRef",
    "SyncError",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
