"""Factory for creating supplier adapter instances."""

from typing import TYPE_CHECKING, Any, Dict, Optional, Type

import httpx
import structlog

from storefront.config import settings
from storefront.suppliers.base import SupplierAdapter, SupplierSource
from storefront.suppliers.credentials import (
    ConfigStoreCredentialProvider,
    CredentialProvider,
    OAuthClientCredentialsProvider,
    StaticCredentialProvider,
)

if TYPE_CHECKING:
    from storefront.services.config_service import ConfigService

logger = structlog.get_logger(__name__)

# system_config keys holding an operator-pasted SYSCOM bearer token
SYSCOM_TOKEN_KEY = "syscom_api_token"
SYSCOM_TOKEN_EXPIRES_KEY = "syscom_token_expires_at"


class AdapterFactory:
    """Registry of adapter classes that builds fresh adapter instances.

    Every instance gets its own rate limiter and credential provider, so
    two suppliers never share a request budget or a cached token.
    """

    def __init__(self):
        self._adapter_registry: Dict[SupplierSource, Type[SupplierAdapter]] = {}

    def register_adapter(self, source: SupplierSource, adapter_class: Type[SupplierAdapter]) -> None:
        """Register an adapter class for a supplier.

        Args:
            source: Supplier tag
            adapter_class: Adapter class (must inherit from SupplierAdapter)
        """
        if not issubclass(adapter_class, SupplierAdapter):
            raise ValueError(f"Adapter class must inherit from SupplierAdapter: {adapter_class}")

        self._adapter_registry[SupplierSource(source)] = adapter_class
        logger.info("adapter_registered", source=SupplierSource(source).value, adapter_class=adapter_class.__name__)

    def get_adapter_class(self, source: SupplierSource) -> Optional[Type[SupplierAdapter]]:
        return self._adapter_registry.get(SupplierSource(source))

    def create_adapter(
        self,
        source: SupplierSource,
        http_client: httpx.AsyncClient,
        credentials: CredentialProvider,
        **overrides: Any,
    ) -> Optional[SupplierAdapter]:
        """Create an adapter instance.

        Args:
            source: Supplier tag
            http_client: Client shared by the run
            credentials: Provider owned by the new adapter
            **overrides: Constructor overrides (rate_limiter, base_url, sleep, ...)

        Returns:
            Adapter instance, or None if the supplier is not registered
        """
        adapter_class = self.get_adapter_class(source)
        if not adapter_class:
            logger.warning("adapter_not_found", source=str(source))
            return None

        adapter = adapter_class(http_client=http_client, credentials=credentials, **overrides)
        logger.info("adapter_created", source=adapter.source.value, base_url=adapter.base_url)
        return adapter

    def build_credentials(
        self,
        source: SupplierSource,
        http_client: httpx.AsyncClient,
        config_service: "ConfigService",
    ) -> CredentialProvider:
        """Pick the credential provider for a supplier from settings.

        SYSCOM uses the OAuth client-credentials grant when a client id and
        secret are configured, and the token stored in system_config
        otherwise. TECNOSINERGIA uses its static API token.
        """
        source = SupplierSource(source)
        if source == SupplierSource.SYSCOM:
            if settings.SYSCOM_CLIENT_ID and settings.SYSCOM_CLIENT_SECRET:
                return OAuthClientCredentialsProvider(
                    supplier=source.value,
                    http_client=http_client,
                    token_url=settings.SYSCOM_TOKEN_URL,
                    client_id=settings.SYSCOM_CLIENT_ID,
                    client_secret=settings.SYSCOM_CLIENT_SECRET,
                )
            return ConfigStoreCredentialProvider(
                supplier=source.value,
                config_service=config_service,
                token_key=SYSCOM_TOKEN_KEY,
                expires_key=SYSCOM_TOKEN_EXPIRES_KEY,
            )
        return StaticCredentialProvider(supplier=source.value, token=settings.TECNOSINERGIA_API_TOKEN)

    def get_registered_sources(self) -> list[str]:
        return [source.value for source in self._adapter_registry]

    def has_adapter(self, source: SupplierSource) -> bool:
        try:
            return SupplierSource(source) in self._adapter_registry
        except ValueError:
            return False


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
