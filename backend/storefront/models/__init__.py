"""SQLAlchemy models for the storefront back-office.

All models are imported here so metadata.create_all can discover them.
"""

from storefront.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from storefront.models.category import SelectedCategory, SupplierCategory
from storefront.models.product import SupplierProduct
from storefront.models.sync_log import SyncLog
from storefront.models.system_config import SystemConfig

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "SelectedCategory",
    "SupplierCategory",
    "SupplierProduct",
    "SyncLog",
    "SystemConfig",
]
