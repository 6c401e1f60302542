"""
Inbound webhook routing.

WebhookHandler.handle(payload):
1. Look up the owning integration by payload.provider
   (IntegrationNotConfiguredError if unknown or disabled)
2. Verify authenticity with the integration's own scheme
   (WebhookVerificationError; unverified payloads go no further)
3. Delegate to integration.handle_webhook() and propagate its result or fault
4. Notify listeners subscribed to the provider

There is no retry here: redelivery is the sending provider's job, and
handling is idempotent only where the integration makes it so.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentworks.errors import IntegrationNotConfiguredError, WebhookVerificationError
from agentworks.observability.logging import StructuredLogger, child_logger

if TYPE_CHECKING:
    from .registry import IntegrationRegistry


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WebhookPayload(BaseModel):
    """An inbound webhook exactly as received."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(..., min_length=1)
    body: bytes = b""
    headers: dict[str, str] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=_utc_now)

    @field_validator("headers", mode="before")
    @classmethod
    def _lower_header_names(cls, value: Mapping[str, str]) -> dict[str, str]:
        return {str(k).lower(): str(v) for k, v in dict(value).items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def json_body(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON
        """
        return json.loads(self.body)


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    provider: str
    event_type: str
    result: Any = None


WebhookListener = Callable[[WebhookOutcome], Awaitable[None]]


class WebhookHandler:
    """
    Verifies and routes inbound webhooks to their integration.

    Example:
        handler = WebhookHandler(integrations)
        handler.subscribe("github", on_github_event)

        outcome = await handler.handle(
            WebhookPayload(provider="github", body=raw, headers=request.headers)
        )
    """

    def __init__(
        self,
        integrations: IntegrationRegistry,
        *,
        logger: StructuredLogger | None = None,
    ):
        self._integrations = integrations
        self._log = child_logger(logger, "agentworks.integrations.webhooks", module="webhook-handler")
        self._listeners: dict[str, list[WebhookListener]] = {}

    def subscribe(self, provider: str, listener: WebhookListener) -> None:
        """Call `listener` after each successfully handled webhook for `provider`."""
        self._listeners.setdefault(provider, []).append(listener)

    async def handle(self, payload: WebhookPayload) -> WebhookOutcome:
        """
        Verify and dispatch a webhook payload.

        Raises:
            IntegrationNotConfiguredError: No enabled integration for the provider
            WebhookVerificationError: Payload failed the authenticity check
        """
        provider = payload.provider
        integration = self._integrations.get(provider)
        if not integration.config.enabled:
            raise IntegrationNotConfiguredError(provider)

        log = self._log.with_context(provider=provider)

        if not await integration.verify_webhook(payload):
            log.warning("Webhook verification failed", body_bytes=len(payload.body))
            raise WebhookVerificationError(provider)

        event_type = integration.event_type(payload)
        log.info("Webhook verified", event_type=event_type)

        result = await integration.handle_webhook(payload)
        outcome = WebhookOutcome(provider=provider, event_type=event_type, result=result)

        for listener in self._listeners.get(provider, []):
            await listener(outcome)

        log.debug("Webhook handled", event_type=event_type)
        return outcome
