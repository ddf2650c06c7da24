"""Register the supplier adapters with the factory.

Imported during application startup and by the sync CLI.
"""

import structlog

from storefront.suppliers.adapters import SyscomAdapter, TecnosinergiaAdapter
from storefront.suppliers.factory import get_adapter_factory

logger = structlog.get_logger(__name__)


def register_all_adapters() -> None:
    """Register every available adapter. Safe to call more than once."""
    factory = get_adapter_factory()

    for adapter_class in (SyscomAdapter, TecnosinergiaAdapter):
        if factory.has_adapter(adapter_class.source):
            continue
        factory.register_adapter(adapter_class.source, adapter_class)

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sources()),
        sources=factory.get_registered_sources(),
    )
