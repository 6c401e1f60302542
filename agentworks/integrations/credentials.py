"""
Credential Store for Agentworks integrations.

Holds per-provider credential material and keeps OAuth tokens fresh.

Credential kinds:
- StaticCredential: API key, personal access token or service account secret
- OAuthTokens: access token + refresh token + expiry

Refresh Rules:
    - An OAuth credential is never returned past its expiry without an
      attempted refresh first.
    - Exactly one refresh runs per credential at a time. Callers arriving
      while a refresh is in flight wait for it and receive the same tokens.
      Providers commonly invalidate a refresh token after first use, so a
      second parallel refresh would lock the integration out.
    - A failed refresh raises CredentialRefreshError and leaves the stored
      credential untouched, so the caller can retry.

Scoping:
    Every operation takes an optional agent_id. Reads try the agent-scoped
    credential first and fall back to the global (agent_id=None) one.

Usage:
    store = CredentialStore()
    await store.set("github", StaticCredential("ghp_xxx", CredentialType.PAT))
    await store.set("google_calendar", OAuthTokens(
        access_token="ya29...",
        refresh_token="1//0g...",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    ))
    store.set_refresher("google_calendar", calendar.refresh_tokens)

    credential = await store.get("google_calendar")  # refreshed if expired
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, Union, runtime_checkable

from agentworks.errors import CredentialNotFoundError, CredentialRefreshError
from agentworks.observability.logging import StructuredLogger, child_logger


class CredentialType(str, Enum):
    """How an integration authenticates."""

    OAUTH2 = "oauth2"
    API_KEY = "api_key"
    PAT = "pat"
    SERVICE_ACCOUNT = "service_account"


@dataclass(frozen=True, slots=True)
class StaticCredential:
    """A secret that does not expire (API key, PAT, service account key)."""

    secret: str
    kind: CredentialType = CredentialType.API_KEY

    @property
    def access_token(self) -> str:
        return self.secret

    def is_expired(self, now: datetime) -> bool:
        return False

    def __repr__(self) -> str:
        return f"StaticCredential(kind={self.kind.value}, secret=***)"


@dataclass(frozen=True, slots=True)
class OAuthTokens:
    """An OAuth access/refresh token pair."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scopes: tuple[str, ...] = ()

    @property
    def kind(self) -> CredentialType:
        return CredentialType.OAUTH2

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self) -> str:
        return f"OAuthTokens(expires_at={self.expires_at}, scopes={self.scopes}, tokens=***)"


Credential = Union[StaticCredential, OAuthTokens]

# Receives the stored refresh token, returns the new token pair.
Refresher = Callable[[str], Awaitable[OAuthTokens]]


@dataclass(frozen=True, slots=True)
class CredentialKey:
    provider: str
    agent_id: str | None = None


# =============================================================================
# Persistence
# =============================================================================


@runtime_checkable
class CredentialBackend(Protocol):
    """
    Persistence for credential material.

    Implementations can store to a database, a secrets manager,
    or memory (testing).
    """

    async def load(self, key: CredentialKey) -> Credential | None: ...

    async def save(self, key: CredentialKey, credential: Credential) -> None: ...

    async def delete(self, key: CredentialKey) -> bool: ...


class InMemoryCredentialBackend:
    """
    In-memory credential backend.

    Not suitable for production use.
    """

    def __init__(self) -> None:
        self.credentials: dict[CredentialKey, Credential] = {}

    async def load(self, key: CredentialKey) -> Credential | None:
        return self.credentials.get(key)

    async def save(self, key: CredentialKey, credential: Credential) -> None:
        self.credentials[key] = credential

    async def delete(self, key: CredentialKey) -> bool:
        return self.credentials.pop(key, None) is not None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Store
# =============================================================================


class CredentialStore:
    """
    Per-provider credential store with coalesced OAuth refresh.

    Args:
        backend: Persistence backend (in-memory by default)
        clock: Returns the current UTC time (injectable for tests)
        logger: Structured logger to bind this component onto
    """

    def __init__(
        self,
        backend: CredentialBackend | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._backend = backend if backend is not None else InMemoryCredentialBackend()
        self._clock = clock or _utc_now
        self._log = child_logger(logger, "agentworks.integrations.credentials", module="credential-store")
        self._refreshers: dict[str, Refresher] = {}
        self._inflight: dict[CredentialKey, asyncio.Future[OAuthTokens]] = {}

    def set_refresher(self, provider: str, refresher: Refresher) -> None:
        """Register how OAuth tokens for `provider` are refreshed."""
        self._refreshers[provider] = refresher

    async def set(
        self,
        provider: str,
        credential: Credential,
        *,
        agent_id: str | None = None,
    ) -> None:
        """Insert or replace the credential for `provider`."""
        await self._backend.save(CredentialKey(provider, agent_id), credential)
        self._log.debug(
            "Credential stored",
            provider=provider,
            agent_id=agent_id,
            credential_type=credential.kind.value,
        )

    async def delete(self, provider: str, *, agent_id: str | None = None) -> bool:
        deleted = await self._backend.delete(CredentialKey(provider, agent_id))
        if deleted:
            self._log.debug("Credential deleted", provider=provider, agent_id=agent_id)
        return deleted

    async def get(self, provider: str, *, agent_id: str | None = None) -> Credential:
        """
        Return current credential material for `provider`.

        Expired OAuth tokens are refreshed before being returned.

        Raises:
            CredentialNotFoundError: Nothing configured for the provider
            CredentialRefreshError: Token expired and refresh failed
        """
        key, credential = await self._resolve(provider, agent_id)

        if isinstance(credential, OAuthTokens) and credential.is_expired(self._clock()):
            return await self._refresh(key, credential)
        return credential

    async def refresh(self, provider: str, *, agent_id: str | None = None) -> OAuthTokens:
        """
        Refresh the OAuth credential for `provider` now.

        Joins an in-flight refresh for the same credential if there is one.

        Raises:
            CredentialNotFoundError: Nothing configured for the provider
            CredentialRefreshError: Not an OAuth credential, or refresh failed
        """
        key, credential = await self._resolve(provider, agent_id)
        if not isinstance(credential, OAuthTokens):
            raise CredentialRefreshError(provider, "credential is not an OAuth token pair")
        return await self._refresh(key, credential)

    async def access_token(self, provider: str, *, agent_id: str | None = None) -> str:
        """Convenience: the bearer secret of the current credential."""
        credential = await self.get(provider, agent_id=agent_id)
        return credential.access_token

    async def is_expired(self, provider: str, *, agent_id: str | None = None) -> bool:
        _, credential = await self._resolve(provider, agent_id)
        return credential.is_expired(self._clock())

    def refresh_in_flight(self, provider: str, *, agent_id: str | None = None) -> bool:
        future = self._inflight.get(CredentialKey(provider, agent_id))
        return future is not None and not future.done()

    async def _resolve(
        self,
        provider: str,
        agent_id: str | None,
    ) -> tuple[CredentialKey, Credential]:
        """Agent-scoped credential first, then the global one."""
        keys = [CredentialKey(provider, agent_id)]
        if agent_id is not None:
            keys.append(CredentialKey(provider, None))

        for key in keys:
            credential = await self._backend.load(key)
            if credential is not None:
                return key, credential

        raise CredentialNotFoundError(provider)

    async def _refresh(self, key: CredentialKey, current: OAuthTokens) -> OAuthTokens:
        future = self._inflight.get(key)
        if future is None or future.done():
            future = asyncio.ensure_future(self._run_refresh(key, current))
            self._inflight[key] = future
            future.add_done_callback(lambda done: self._clear_inflight(key, done))
        else:
            self._log.debug("Joining in-flight refresh", provider=key.provider, agent_id=key.agent_id)

        # Shielded so one waiter being cancelled does not abort the refresh for the rest
        return await asyncio.shield(future)

    def _clear_inflight(self, key: CredentialKey, done: asyncio.Future[OAuthTokens]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]

    async def _run_refresh(self, key: CredentialKey, current: OAuthTokens) -> OAuthTokens:
        refresher = self._refreshers.get(key.provider)
        if refresher is None:
            raise CredentialRefreshError(key.provider, "no refresher registered")
        if not current.refresh_token:
            raise CredentialRefreshError(key.provider, "no refresh token stored")

        self._log.info("Refreshing OAuth credential", provider=key.provider, agent_id=key.agent_id)

        try:
            fresh = await refresher(current.refresh_token)
        except CredentialRefreshError:
            raise
        except Exception as e:
            self._log.warning(
                "OAuth refresh failed",
                provider=key.provider,
                agent_id=key.agent_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CredentialRefreshError(key.provider, str(e)) from e

        # Providers may omit the refresh token when it is unchanged
        if fresh.refresh_token is None:
            fresh = replace(fresh, refresh_token=current.refresh_token)

        await self._backend.save(key, fresh)
        self._log.info(
            "OAuth credential refreshed",
            provider=key.provider,
            agent_id=key.agent_id,
            expires_at=fresh.expires_at,
        )
        return fresh
