"""
Google Calendar integration.

OAuth2 integration: the access token expires hourly and is renewed through
Google's token endpoint with the stored refresh token. The CredentialStore
drives renewal, so concurrent requests share a single refresh.

Push notifications (watch channels) carry no body; they are authenticated
by the channel token chosen when the channel was created, echoed back in
X-Goog-Channel-Token. Handling only summarises headers and is idempotent.

Settings (IntegrationConfig.settings):
    client_id:      OAuth client id
    client_secret:  OAuth client secret

API Reference:
    https://developers.google.com/calendar/api/v3/reference
    https://developers.google.com/calendar/api/guides/push
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field

from agentworks.errors import CredentialError, CredentialRefreshError, IntegrationError
from agentworks.integrations.base import Integration, IntegrationConfig
from agentworks.integrations.credentials import CredentialType, OAuthTokens
from agentworks.tools.base import Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.integrations.webhooks import WebhookPayload
    from agentworks.tools.context import ToolExecutionContext

logger = logging.getLogger(__name__)

CALENDAR_API_URL = "https://www.googleapis.com/calendar/v3"
TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"


class CalendarEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    summary: str | None = None
    status: str | None = None
    start: dict[str, Any] = Field(default_factory=dict)
    end: dict[str, Any] = Field(default_factory=dict)
    html_link: str | None = Field(None, alias="htmlLink")
    location: str | None = None


class GoogleCalendarIntegration(Integration):
    """Google Calendar API integration."""

    provider = "google_calendar"

    @classmethod
    def default_config(cls, **overrides: Any) -> IntegrationConfig:
        values: dict[str, Any] = {
            "provider": cls.provider,
            "credential_type": CredentialType.OAUTH2,
            "base_url": CALENDAR_API_URL,
            "scopes": (CALENDAR_READONLY_SCOPE,),
        }
        values.update(overrides)
        return IntegrationConfig(**values)

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Exchange the refresh token at Google's token endpoint."""
        client_id = self.config.settings.get("client_id")
        client_secret = self.config.settings.get("client_secret")
        if not client_id or not client_secret:
            raise CredentialRefreshError(self.provider, "OAuth client id/secret not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                TOKEN_URL,
                data={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            raise CredentialRefreshError(self.provider, f"token endpoint unreachable: {e}") from e

        if not response.is_success:
            raise CredentialRefreshError(
                self.provider,
                f"token endpoint returned {response.status_code}: {response.text[:200]}",
            )

        data = response.json()
        expires_in = data.get("expires_in")
        expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            if expires_in is not None
            else None
        )
        scopes = tuple(data["scope"].split()) if data.get("scope") else self.config.scopes

        logger.info(f"[{self.provider}] Access token refreshed (expires_in={expires_in})")
        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            scopes=scopes,
        )

    async def verify_webhook(self, payload: WebhookPayload) -> bool:
        token = self.config.webhook_secret
        if not token:
            logger.warning(f"[{self.provider}] No channel token configured; rejecting payload")
            return False

        received = payload.header("x-goog-channel-token")
        if received is None:
            return False
        return hmac.compare_digest(token, received)

    def event_type(self, payload: WebhookPayload) -> str:
        return payload.header("x-goog-resource-state") or "unknown"

    async def handle_webhook(self, payload: WebhookPayload) -> dict[str, Any]:
        summary = {
            "channel_id": payload.header("x-goog-channel-id"),
            "resource_id": payload.header("x-goog-resource-id"),
            "resource_state": self.event_type(payload),
            "message_number": payload.header("x-goog-message-number"),
        }
        logger.info(
            f"[{self.provider}] Push notification {summary['resource_state']} "
            f"(channel={summary['channel_id']})"
        )
        return summary

    def tools(self) -> list[Tool]:
        return [CalendarListEventsTool(self)]

    async def list_events(
        self,
        calendar_id: str = "primary",
        *,
        time_min: str | None = None,
        max_results: int = 10,
        agent_id: str | None = None,
    ) -> list[CalendarEvent]:
        response = await self.request(
            "GET",
            f"/calendars/{quote(calendar_id, safe='@')}/events",
            agent_id=agent_id,
            params={
                "timeMin": time_min or datetime.now(timezone.utc).isoformat(),
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return [CalendarEvent.model_validate(item) for item in response.json().get("items", [])]


class CalendarListEventsTool(Tool):
    """List upcoming events from a Google calendar."""

    def __init__(self, calendar: GoogleCalendarIntegration):
        self._calendar = calendar

    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="calendar_list_events",
            description="List upcoming events from a Google calendar, soonest first.",
            input_schema={
                "type": "object",
                "properties": {
                    "calendar_id": {
                        "type": "string",
                        "description": "Calendar id (default: primary)",
                    },
                    "time_min": {
                        "type": "string",
                        "description": "RFC 3339 lower bound for event start (default: now)",
                    },
                    "max_results": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": 250,
                        "description": "Maximum number of events (default: 10)",
                    },
                },
            },
            category="calendar",
            capabilities=frozenset({"external:read"}),
        )

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        try:
            events = await context.cancellation.guard(
                self._calendar.list_events(
                    arguments.get("calendar_id", "primary"),
                    time_min=arguments.get("time_min"),
                    max_results=arguments.get("max_results", 10),
                    agent_id=context.agent_id,
                )
            )
        except (IntegrationError, CredentialError) as e:
            logger.error(f"[calendar_list_events] Failed to list events: {e}")
            return ToolResult.failure(f"Failed to list events: {e}")

        return ToolResult.success(
            [event.model_dump(by_alias=False) for event in events],
            metadata={"result_count": len(events)},
        )
