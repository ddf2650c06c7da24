"""Credential providers injected into supplier adapters.

Each adapter owns one provider. Providers cache their token together with
its expiry and refresh or fail on their own; nothing is kept in module
globals, so two runs never share credential state by accident.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx
import structlog

from storefront.core.exceptions import SupplierAuthError

if TYPE_CHECKING:
    from storefront.services.config_service import ConfigService

logger = structlog.get_logger(__name__)

# Warn operators when a stored token is about to expire
EXPIRY_WARNING_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_stored_string(value: Any) -> str:
    """Strip whitespace and the quoting left by JSON-encoded config values."""
    if value is None:
        return ""
    text = str(value).strip()
    if text.startswith('\\"') and text.endswith('\\"') and len(text) >= 4:
        text = text[2:-2]
    if text.startswith('"') and text.endswith('"') and len(text) >= 2:
        text = text[1:-1]
    return text.strip()


class CredentialProvider(ABC):
    """Source of the secret an adapter sends with each request."""

    def __init__(self, supplier: str):
        self.supplier = supplier

    @abstractmethod
    async def get_token(self) -> str:
        """Return a valid token.

        Raises:
            SupplierAuthError: If no usable credential is available
        """

    def invalidate(self) -> None:
        """Drop any cached token after the supplier rejected it."""


class StaticCredentialProvider(CredentialProvider):
    """Fixed API key, e.g. the TECNOSINERGIA ``api-token``."""

    def __init__(self, supplier: str, token: str):
        super().__init__(supplier)
        self._token = clean_stored_string(token)

    async def get_token(self) -> str:
        if not self._token:
            raise SupplierAuthError(self.supplier, "API token is not configured")
        return self._token


class ConfigStoreCredentialProvider(CredentialProvider):
    """Bearer token saved by an operator in the ``system_config`` table.

    The token and its expiry date are read on first use and cached until
    the expiry passes. An expired or missing token is an authentication
    failure; the operator has to paste a new one in the admin panel.
    """

    def __init__(
        self,
        supplier: str,
        config_service: "ConfigService",
        token_key: str,
        expires_key: str,
        now: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(supplier)
        self.config_service = config_service
        self.token_key = token_key
        self.expires_key = expires_key
        self._now = now
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    async def get_token(self) -> str:
        if self._token and self._expires_at and self._expires_at > self._now():
            return self._token

        token = clean_stored_string(await self.config_service.get_value(self.token_key))
        if not token:
            raise SupplierAuthError(self.supplier, f"no token stored under '{self.token_key}'")

        raw_expiry = clean_stored_string(await self.config_service.get_value(self.expires_key))
        if not raw_expiry:
            raise SupplierAuthError(self.supplier, f"no expiry stored under '{self.expires_key}'")

        try:
            expires_at = datetime.fromisoformat(raw_expiry.replace("Z", "+00:00"))
        except ValueError:
            raise SupplierAuthError(self.supplier, f"invalid token expiry '{raw_expiry}'")
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        now = self._now()
        if expires_at <= now:
            raise SupplierAuthError(self.supplier, "stored token has expired, update it in the admin panel")

        days_remaining = (expires_at - now).days
        if days_remaining <= EXPIRY_WARNING_DAYS:
            logger.warning("supplier_token_expiring", supplier=self.supplier, days_remaining=days_remaining)

        self._token = token
        self._expires_at = expires_at
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = None


class OAuthClientCredentialsProvider(CredentialProvider):
    """OAuth2 client-credentials grant with expiry-aware refresh.

    The token is requested lazily and renewed ``refresh_margin_seconds``
    before the ``expires_in`` the server announced.
    """

    def __init__(
        self,
        supplier: str,
        http_client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_margin_seconds: float = 300.0,
        now: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(supplier)
        self.http_client = http_client
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_margin = timedelta(seconds=refresh_margin_seconds)
        self._now = now
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    async def get_token(self) -> str:
        if self._token and self._expires_at and self._expires_at - self.refresh_margin > self._now():
            return self._token
        return await self._request_token()

    async def _request_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise SupplierAuthError(self.supplier, "OAuth client credentials are not configured")

        logger.info("supplier_token_requested", supplier=self.supplier)
        # Transport errors propagate to the retry around the calling request
        response = await self.http_client.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )

        if not response.is_success:
            raise SupplierAuthError(self.supplier, f"token request rejected with HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise SupplierAuthError(self.supplier, "token response is not JSON")

        token = data.get("access_token")
        if not token:
            raise SupplierAuthError(self.supplier, "token response has no access_token")

        expires_in = float(data.get("expires_in") or 3600)
        self._token = token
        self._expires_at = self._now() + timedelta(seconds=expires_in)
        logger.info(
            "supplier_token_refreshed",
            supplier=self.supplier,
            expires_at=self._expires_at.isoformat(),
        )
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = None
