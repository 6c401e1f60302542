"""
Pytest configuration and fixtures for Agentworks tests.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio

from agentworks.integrations import CredentialStore, CredentialType, IntegrationRegistry, StaticCredential
from agentworks.integrations.providers import GitHubIntegration
from agentworks.tools import Tool, ToolDefinition, ToolExecutionContext, ToolExecutor, ToolRegistry, ToolResult

GITHUB_WEBHOOK_SECRET = "it's a secret to everybody"
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class EchoTool(Tool):
    """Returns its arguments unchanged and counts invocations."""

    def __init__(self, name: str = "echo", capabilities: frozenset[str] = frozenset()):
        self.calls: list[dict[str, Any]] = []
        self._definition = ToolDefinition(
            name=name,
            description="Return the input unchanged",
            input_schema={
                "type": "object",
                "properties": {"msg": {"type": "string"}},
                "required": ["msg"],
                "additionalProperties": False,
            },
            capabilities=capabilities,
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        self.calls.append(arguments)
        return ToolResult.success(arguments)


class FixedClock:
    """Injectable clock for the credential store."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def sign_github(body: bytes, secret: str = GITHUB_WEBHOOK_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def echo_tool():
    return EchoTool()


@pytest.fixture
def tool_registry(echo_tool):
    registry = ToolRegistry()
    registry.register(echo_tool)
    return registry


@pytest.fixture
def executor(tool_registry):
    return ToolExecutor(tool_registry)


@pytest.fixture
def context():
    return ToolExecutionContext.create(agent_id="test-agent", run_id="run-1", trace_id="trace-1")


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def credential_store(clock):
    return CredentialStore(clock=clock)


@pytest_asyncio.fixture
async def github(credential_store):
    await credential_store.set("github", StaticCredential("ghp_test", CredentialType.PAT))
    integration = GitHubIntegration(
        GitHubIntegration.default_config(webhook_secret=GITHUB_WEBHOOK_SECRET),
        credential_store,
    )
    yield integration
    await integration.close()


@pytest.fixture
def integration_registry(github):
    registry = IntegrationRegistry()
    registry.register(github)
    return registry
