"""
Tests for integrations.

Tests cover:
- IntegrationConfig immutability
- IntegrationRegistry registration and lookup
- Authenticated requests, retry and error mapping (httpx.MockTransport)
- GitHub tools
- Google Calendar OAuth refresh through the CredentialStore
"""

import dataclasses
import json
from datetime import timedelta

import httpx
import pytest

from agentworks.errors import (
    AuthenticationError,
    DuplicateIntegrationError,
    IntegrationError,
    IntegrationNotConfiguredError,
    RateLimitError,
    ResourceNotFoundError,
)
from agentworks.integrations import (
    CredentialKey,
    CredentialType,
    IntegrationConfig,
    IntegrationRegistry,
    OAuthTokens,
    StaticCredential,
)
from agentworks.integrations.providers import GitHubIntegration, GoogleCalendarIntegration
from agentworks.integrations.providers.google import TOKEN_URL
from agentworks.tools import ToolExecutionContext, ToolExecutor, ToolRegistry
from conftest import FIXED_NOW


class Recorder:
    """MockTransport handler replaying queued responses."""

    def __init__(self, *responses: httpx.Response):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)


def _github(credential_store, recorder, **overrides) -> GitHubIntegration:
    config = GitHubIntegration.default_config(retry_delay=0.0, **overrides)
    return GitHubIntegration(config, credential_store, transport=httpx.MockTransport(recorder))


# =============================================================================
# Config Tests
# =============================================================================


class TestIntegrationConfig:
    """IntegrationConfig is immutable after construction."""

    def test_frozen(self):
        config = GitHubIntegration.default_config()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.base_url = "https://evil.example.com"

    def test_settings_read_only(self):
        source = {"client_id": "abc"}
        config = IntegrationConfig(provider="google_calendar", settings=source)
        source["client_id"] = "changed"

        assert config.settings["client_id"] == "abc"
        with pytest.raises(TypeError):
            config.settings["client_id"] = "xyz"

    def test_provider_required(self):
        with pytest.raises(ValueError):
            IntegrationConfig(provider="")

    def test_credential_key_defaults_to_provider(self):
        assert IntegrationConfig(provider="github").credential_key == "github"
        assert IntegrationConfig(provider="github", credential_ref="gh-work").credential_key == "gh-work"

    def test_provider_mismatch_rejected(self, credential_store):
        with pytest.raises(ValueError):
            GitHubIntegration(IntegrationConfig(provider="jira"), credential_store)


# =============================================================================
# Registry Tests
# =============================================================================


class TestIntegrationRegistry:
    """Tests for IntegrationRegistry."""

    @pytest.mark.asyncio
    async def test_get_registered(self, integration_registry, github):
        assert integration_registry.get("github") is github
        assert "github" in integration_registry

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, integration_registry):
        with pytest.raises(IntegrationNotConfiguredError) as exc_info:
            integration_registry.get("jira")

        assert exc_info.value.integration == "jira"

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, integration_registry, credential_store, github):
        other = GitHubIntegration(GitHubIntegration.default_config(), credential_store)

        with pytest.raises(DuplicateIntegrationError):
            integration_registry.register(other)

        assert integration_registry.get("github") is github

    def test_register_under_explicit_key(self, credential_store):
        registry = IntegrationRegistry()
        work = GitHubIntegration(GitHubIntegration.default_config(), credential_store)
        registry.register(work, "github-work")

        assert registry.list_providers() == ["github-work"]
        assert list(registry.list_integrations()) == [work]

    def test_all_tools_skips_disabled(self, credential_store):
        registry = IntegrationRegistry()
        registry.register(GitHubIntegration(GitHubIntegration.default_config(enabled=False), credential_store))
        assert registry.all_tools() == []

        calendar = GoogleCalendarIntegration(GoogleCalendarIntegration.default_config(), credential_store)
        registry.register(calendar)
        assert [t.name for t in registry.all_tools()] == ["calendar_list_events"]


# =============================================================================
# Request Tests
# =============================================================================


class TestAuthenticatedRequests:
    """Tests for Integration.request()."""

    @pytest.mark.asyncio
    async def test_bearer_header_from_store(self, credential_store):
        await credential_store.set("github", StaticCredential("ghp_test", CredentialType.PAT))
        recorder = Recorder(httpx.Response(200, json=[]))

        async with _github(credential_store, recorder) as github:
            await github.request("GET", "/user/repos")

        request = recorder.requests[0]
        assert request.headers["authorization"] == "Bearer ghp_test"
        assert request.headers["accept"] == "application/vnd.github+json"
        assert request.url == "https://api.github.com/user/repos"

    @pytest.mark.asyncio
    async def test_agent_credential_preferred(self, credential_store):
        await credential_store.set("github", StaticCredential("global-token"))
        await credential_store.set("github", StaticCredential("bot-token"), agent_id="bot-1")
        recorder = Recorder(httpx.Response(200, json=[]), httpx.Response(200, json=[]))

        async with _github(credential_store, recorder) as github:
            await github.request("GET", "/user", agent_id="bot-1")
            await github.request("GET", "/user", agent_id="bot-2")

        assert recorder.requests[0].headers["authorization"] == "Bearer bot-token"
        assert recorder.requests[1].headers["authorization"] == "Bearer global-token"

    @pytest.mark.asyncio
    async def test_server_error_retried(self, credential_store):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(httpx.Response(503, text="busy"), httpx.Response(200, json={"ok": True}))

        async with _github(credential_store, recorder) as github:
            response = await github.request("GET", "/user")

        assert response.json() == {"ok": True}
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, credential_store):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(*(httpx.Response(502, text="bad gateway") for _ in range(3)))

        async with _github(credential_store, recorder, max_retries=2) as github:
            with pytest.raises(IntegrationError) as exc_info:
                await github.request("GET", "/user")

        assert exc_info.value.status_code == 502
        assert exc_info.value.retryable is True
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, credential_store):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={}),
        )

        async with _github(credential_store, recorder) as github:
            await github.request("GET", "/user")

        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_type",
        [(401, AuthenticationError), (403, AuthenticationError), (404, ResourceNotFoundError)],
    )
    async def test_client_errors_not_retried(self, credential_store, status, error_type):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(httpx.Response(status, text="nope"))

        async with _github(credential_store, recorder) as github:
            with pytest.raises(error_type):
                await github.request("GET", "/user")

        assert len(recorder.requests) == 1

    def test_rate_limit_backoff_honours_retry_after(self, credential_store):
        github = GitHubIntegration(GitHubIntegration.default_config(), credential_store)
        error = RateLimitError("slow down", "github", retry_after=7.0)

        assert github._calculate_backoff(0, error) == 7.0

    @pytest.mark.asyncio
    async def test_health_check_without_credential(self, credential_store):
        github = GitHubIntegration(GitHubIntegration.default_config(), credential_store)

        assert await github.health_check() is False

        await credential_store.set("github", StaticCredential("ghp_test"))
        assert await github.health_check() is True


# =============================================================================
# GitHub Tool Tests
# =============================================================================


class TestGitHubTools:
    """GitHub tools run through the executor."""

    @pytest.mark.asyncio
    async def test_list_repos(self, credential_store, context):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(
            httpx.Response(
                200,
                json=[
                    {
                        "full_name": "acme/api",
                        "html_url": "https://github.com/acme/api",
                        "private": True,
                        "id": 1,
                    }
                ],
            )
        )

        async with _github(credential_store, recorder) as github:
            registry = ToolRegistry()
            registry.register_many(github.tools())
            result = await ToolExecutor(registry).execute(
                "github_list_repos", {"visibility": "private", "limit": 5}, context
            )

        assert result.ok
        assert result.payload[0]["full_name"] == "acme/api"
        assert result.metadata == {"result_count": 1}
        assert recorder.requests[0].url.params["per_page"] == "5"
        assert recorder.requests[0].url.params["visibility"] == "private"

    @pytest.mark.asyncio
    async def test_create_issue(self, credential_store, context):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(
            httpx.Response(
                201,
                json={
                    "number": 42,
                    "title": "Flaky test",
                    "html_url": "https://github.com/acme/api/issues/42",
                },
            )
        )

        async with _github(credential_store, recorder) as github:
            registry = ToolRegistry()
            registry.register_many(github.tools())
            result = await ToolExecutor(registry).execute(
                "github_create_issue",
                {"repository": "acme/api", "title": "Flaky test", "labels": ["ci"]},
                context,
            )

        assert result.payload == {
            "number": 42,
            "title": "Flaky test",
            "url": "https://github.com/acme/api/issues/42",
        }
        sent = recorder.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/repos/acme/api/issues"
        assert json.loads(sent.content) == {"title": "Flaky test", "labels": ["ci"]}

    @pytest.mark.asyncio
    async def test_api_error_becomes_failure_result(self, credential_store, context):
        await credential_store.set("github", StaticCredential("ghp_test"))
        recorder = Recorder(httpx.Response(422, text="Validation Failed"))

        async with _github(credential_store, recorder) as github:
            registry = ToolRegistry()
            registry.register_many(github.tools())
            result = await ToolExecutor(registry).execute(
                "github_create_issue", {"repository": "acme/api", "title": "x"}, context
            )

        assert result.is_error
        assert "Validation Failed" in result.error.message

    @pytest.mark.asyncio
    async def test_missing_credential_becomes_failure_result(self, credential_store, context):
        github = GitHubIntegration(GitHubIntegration.default_config(), credential_store)
        registry = ToolRegistry()
        registry.register_many(github.tools())

        result = await ToolExecutor(registry).execute("github_list_repos", {}, context)

        assert result.is_error
        assert "github" in result.error.message


# =============================================================================
# Google Calendar Tests
# =============================================================================


class TestGoogleCalendar:
    """OAuth refresh through the integration."""

    def _calendar(self, credential_store, handler, **settings):
        config = GoogleCalendarIntegration.default_config(
            retry_delay=0.0,
            settings=settings or {"client_id": "cid", "client_secret": "csecret"},
        )
        return GoogleCalendarIntegration(config, credential_store, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_request(self, credential_store):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "new-token", "expires_in": 3600})
            return httpx.Response(200, json={"items": [{"id": "evt-1", "summary": "Standup"}]})

        await credential_store.set(
            "google_calendar",
            OAuthTokens("old-token", "refresh-1", expires_at=FIXED_NOW - timedelta(seconds=1)),
        )

        async with self._calendar(credential_store, handler) as calendar:
            events = await calendar.list_events()

        assert [e.summary for e in events] == ["Standup"]
        token_request, events_request = seen
        assert token_request.method == "POST"
        assert b"grant_type=refresh_token" in token_request.content
        assert b"refresh_token=refresh-1" in token_request.content
        assert events_request.headers["authorization"] == "Bearer new-token"

        stored = await credential_store.get("google_calendar")
        assert stored.access_token == "new-token"
        assert stored.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_token_endpoint_rejection_keeps_old_credential(self, credential_store):
        from agentworks.errors import CredentialRefreshError

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        stale = OAuthTokens("old-token", "refresh-1", expires_at=FIXED_NOW - timedelta(seconds=1))
        await credential_store.set("google_calendar", stale)

        async with self._calendar(credential_store, handler) as calendar:
            with pytest.raises(CredentialRefreshError) as exc_info:
                await calendar.list_events()

        assert "invalid_grant" in str(exc_info.value)
        assert credential_store._backend.credentials[CredentialKey("google_calendar")] is stale

    @pytest.mark.asyncio
    async def test_refresh_requires_client_settings(self, credential_store):
        from agentworks.errors import CredentialRefreshError

        calendar = GoogleCalendarIntegration(
            GoogleCalendarIntegration.default_config(), credential_store
        )

        with pytest.raises(CredentialRefreshError, match="client id/secret"):
            await calendar.refresh_tokens("refresh-1")

    @pytest.mark.asyncio
    async def test_list_events_tool(self, credential_store):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"items": [{"id": "evt-1", "summary": "Review", "htmlLink": "https://cal/evt-1"}]},
            )

        await credential_store.set(
            "google_calendar",
            OAuthTokens("token", "refresh", expires_at=FIXED_NOW + timedelta(hours=1)),
        )

        async with self._calendar(credential_store, handler) as calendar:
            registry = ToolRegistry()
            registry.register_many(calendar.tools())
            result = await ToolExecutor(registry).execute(
                "calendar_list_events",
                {"max_results": 1},
                ToolExecutionContext.create(agent_id="planner"),
            )

        assert result.ok
        assert result.payload[0]["html_link"] == "https://cal/evt-1"

    @pytest.mark.asyncio
    async def test_calendar_id_escaped_in_path(self, credential_store):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": []})

        await credential_store.set(
            "google_calendar",
            OAuthTokens("token", "refresh", expires_at=FIXED_NOW + timedelta(hours=1)),
        )

        async with self._calendar(credential_store, handler) as calendar:
            await calendar.list_events("en.usa#holiday@group.v.calendar.google.com")
            await calendar.list_events("team/ops@example.com")

        holiday, team = (request.url.raw_path.split(b"?")[0] for request in seen)
        assert holiday == b"/calendar/v3/calendars/en.usa%23holiday@group.v.calendar.google.com/events"
        assert team == b"/calendar/v3/calendars/team%2Fops@example.com/events"
        assert seen[0].url.params["maxResults"] == "10"
