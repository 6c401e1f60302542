"""
Base classes for Agentworks integrations.

An integration is a provider-specific adapter to an external service
(GitHub, Google Calendar, ...). It knows how to authenticate with
credentials from the CredentialStore, how to verify and handle the
provider's webhooks, and which tools it contributes to agents.

Retry Strategy:
    - Retryable errors: timeouts, network errors, 429, 5xx
    - Non-retryable: 4xx (except 429), auth errors
    - Backoff: exponential with jitter, honouring Retry-After

Credentials:
    Auth headers are built per request from CredentialStore.get(), so an
    expired OAuth token is refreshed before it is sent, and a rotated
    credential takes effect without rebuilding the client.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import httpx

from agentworks.errors import (
    AuthenticationError,
    CredentialRefreshError,
    IntegrationError,
    RateLimitError,
    RequestValidationError,
    ResourceNotFoundError,
)
from agentworks.integrations.credentials import (
    Credential,
    CredentialStore,
    CredentialType,
    OAuthTokens,
)

if TYPE_CHECKING:
    from agentworks.integrations.webhooks import WebhookPayload
    from agentworks.tools.base import Tool

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class IntegrationConfig:
    """Configuration for one integration instance."""

    provider: str

    # Authentication
    credential_type: CredentialType = CredentialType.API_KEY
    credential_ref: str | None = None
    scopes: tuple[str, ...] = ()
    webhook_secret: str | None = None

    # Connection
    base_url: str = ""
    timeout: float = 30.0
    enabled: bool = True

    # Rate limiting
    max_retries: int = 3
    retry_delay: float = 1.0

    # Observability
    log_requests: bool = False
    log_responses: bool = False

    # Provider-specific
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.provider:
            raise ValueError("Integration provider is required")
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    @property
    def credential_key(self) -> str:
        """Key under which the CredentialStore holds this integration's material."""
        return self.credential_ref or self.provider


def hmac_sha256_hex(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


# =============================================================================
# Base Integration
# =============================================================================


class Integration(ABC):
    """
    Abstract base class for integrations.

    Provides common functionality:
    - Credential-backed authentication headers
    - HTTP client management
    - Error handling and mapping
    - Request/response logging
    - Rate limit handling

    Subclasses must implement:
    - provider: Integration identifier (class attribute)
    - handle_webhook(): Process a verified webhook payload

    OAuth integrations override refresh_tokens(); it is registered with
    the CredentialStore as the refresher for this integration's credential.
    """

    provider: str = ""

    def __init__(
        self,
        config: IntegrationConfig,
        credentials: CredentialStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the integration.

        Args:
            config: Integration configuration
            credentials: Shared credential store (referenced, not owned)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if config.provider != self.provider:
            raise ValueError(
                f"Config for '{config.provider}' passed to {type(self).__name__} "
                f"(provider '{self.provider}')"
            )

        self.config = config
        self.credentials = credentials
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if config.credential_type is CredentialType.OAUTH2:
            credentials.set_refresher(config.credential_key, self.refresh_tokens)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def credential(self, agent_id: str | None = None) -> Credential:
        """Current credential material (refreshed first if expired)."""
        return await self.credentials.get(self.config.credential_key, agent_id=agent_id)

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        """Return authentication headers for a credential."""
        return {"Authorization": f"Bearer {credential.access_token}"}

    async def authenticate(self, agent_id: str | None = None) -> httpx.AsyncClient:
        """
        Open a credential-backed session.

        The caller owns the returned client and must close it
        (`async with await integration.authenticate() as session:`).
        """
        credential = await self.credential(agent_id)
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers={"Accept": "application/json", **self.auth_headers(credential)},
            transport=self._transport,
        )

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Exchange a refresh token for a new token pair."""
        raise CredentialRefreshError(self.provider, "provider does not support token refresh")

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def verify_webhook(self, payload: WebhookPayload) -> bool:
        """
        Check that a webhook really came from the provider.

        Providers override this with their signature scheme. The default
        only accepts payloads when no webhook secret is configured.
        """
        if self.config.webhook_secret:
            logger.warning(
                f"[{self.provider}] Webhook secret configured but no verification "
                "implemented; rejecting payload"
            )
            return False
        return True

    def event_type(self, payload: WebhookPayload) -> str:
        """Name of the event carried by a webhook payload."""
        try:
            body = payload.json_body()
        except ValueError:
            return "unknown"
        if isinstance(body, dict):
            return str(body.get("event") or body.get("type") or "unknown")
        return "unknown"

    @abstractmethod
    async def handle_webhook(self, payload: WebhookPayload) -> Any:
        """Process a verified webhook payload and return an outcome."""
        ...

    # =========================================================================
    # Tools
    # =========================================================================

    def tools(self) -> list[Tool]:
        """Tools this integration contributes to agents."""
        return []

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        agent_id: str | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Make an authenticated HTTP request with retry and exponential backoff.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: URL path (appended to base_url)
            agent_id: Agent whose credential to prefer
            params: Query parameters
            json: JSON body
            headers: Additional headers

        Raises:
            IntegrationError: On any non-retryable error or after max retries
            CredentialError: When no usable credential is available
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await self._do_request(
                    method, path, agent_id=agent_id, params=params, json=json, headers=headers
                )
            except IntegrationError as e:
                if not e.retryable:
                    raise

                if attempt >= self.config.max_retries:
                    logger.warning(
                        f"[{self.provider}] Max retries ({self.config.max_retries}) "
                        f"reached for {method} {path}"
                    )
                    raise

                backoff = self._calculate_backoff(attempt, e)
                logger.info(
                    f"[{self.provider}] Retry {attempt + 1}/{self.config.max_retries} "
                    f"for {method} {path} after {backoff:.2f}s"
                )
                await asyncio.sleep(backoff)

        raise IntegrationError("Unknown error", self.provider)

    def _calculate_backoff(self, attempt: int, error: IntegrationError) -> float:
        """Exponential backoff with ±25% jitter, capped at 60s."""
        if isinstance(error, RateLimitError) and error.retry_after:
            return error.retry_after

        base_delay = self.config.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, 60.0)

    async def _do_request(
        self,
        method: str,
        path: str,
        *,
        agent_id: str | None,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        client = await self._get_client()
        credential = await self.credential(agent_id)

        if self.config.log_requests:
            logger.debug(f"[{self.provider}] {method} {path} params={params} body={json}")

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers={**self.auth_headers(credential), **(headers or {})},
            )
        except httpx.TimeoutException as e:
            raise IntegrationError(f"Request timeout: {e}", self.provider, retryable=True) from e
        except httpx.NetworkError as e:
            raise IntegrationError(f"Network error: {e}", self.provider, retryable=True) from e

        if self.config.log_responses:
            logger.debug(
                f"[{self.provider}] Response: status={response.status_code} "
                f"body={response.text[:500] if response.text else 'empty'}"
            )

        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        """
        Raise the mapped IntegrationError for a non-2xx response.

        Raises:
            AuthenticationError: For 401/403
            RateLimitError: For 429
            ResourceNotFoundError: For 404
            RequestValidationError: For 400/422
            IntegrationError: For other errors (retryable when 5xx)
        """
        if response.is_success:
            return

        status = response.status_code
        body = response.text

        if status in (401, 403):
            raise AuthenticationError(
                f"Authentication failed: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Rate limit exceeded",
                self.provider,
                status_code=status,
                response_body=body,
                retry_after=float(retry_after) if retry_after else None,
            )

        if status == 404:
            raise ResourceNotFoundError(
                f"Resource not found: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        if status in (400, 422):
            raise RequestValidationError(
                f"Validation error: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        raise IntegrationError(
            f"Request failed: {body}",
            self.provider,
            status_code=status,
            response_body=body,
            retryable=status >= 500,
        )

    async def health_check(self) -> bool:
        """Whether a usable credential is available for this integration."""
        try:
            await self.credential()
        except Exception as e:
            logger.warning(f"[{self.provider}] Health check failed: {e}")
            return False
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider!r}, enabled={self.config.enabled})"

    async def __aenter__(self) -> Integration:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
