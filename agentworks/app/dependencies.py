"""
Runtime wiring for the Agentworks service.

build_runtime() assembles the process-wide components once at startup:

    settings -> credential store -> integrations -> webhook handler
             -> tool registry (built-ins + integration tools) -> executor
             -> observability

The runtime is stored on app.state and handed to routes through
get_runtime().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from agentworks.config import AppSettings, secret_or_none
from agentworks.integrations import (
    CredentialStore,
    CredentialType,
    IntegrationRegistry,
    StaticCredential,
    WebhookHandler,
)
from agentworks.integrations.providers import GitHubIntegration, GoogleCalendarIntegration
from agentworks.observability import JSONLogger, RunObservation, create_observability
from agentworks.tools import ToolExecutor, ToolRegistry
from agentworks.tools.builtin import (
    AgentMessageTool,
    HttpRequestTool,
    HumanApprovalTool,
    InMemoryApprovalQueue,
    InMemoryMemoryBackend,
    InMemoryMessageBus,
    MemorySearchTool,
    MemoryStoreTool,
    WebSearchTool,
)

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: AppSettings
    credentials: CredentialStore
    integrations: IntegrationRegistry
    webhooks: WebhookHandler
    tools: ToolRegistry
    executor: ToolExecutor
    observability: RunObservation
    message_bus: InMemoryMessageBus
    approvals: InMemoryApprovalQueue


async def build_runtime(settings: AppSettings) -> Runtime:
    """Create and connect every runtime component."""
    structured = JSONLogger(
        name="agentworks",
        extra_context={"service": settings.service_name, "environment": settings.environment},
    )

    credentials = CredentialStore(logger=structured)
    integrations = IntegrationRegistry()
    await _register_integrations(settings, credentials, integrations)

    message_bus = InMemoryMessageBus()
    approvals = InMemoryApprovalQueue()
    memory = InMemoryMemoryBackend()

    tools = ToolRegistry()
    tools.register_many(
        [
            WebSearchTool(),
            HttpRequestTool(),
            MemorySearchTool(memory),
            MemoryStoreTool(memory),
            AgentMessageTool(message_bus),
            HumanApprovalTool(approvals),
        ]
    )
    tools.register_many(integrations.all_tools())

    runtime = Runtime(
        settings=settings,
        credentials=credentials,
        integrations=integrations,
        webhooks=WebhookHandler(integrations, logger=structured),
        tools=tools,
        executor=ToolExecutor(tools, logger=structured),
        observability=create_observability(settings, logger=structured),
        message_bus=message_bus,
        approvals=approvals,
    )
    logger.info(
        f"Runtime ready: {len(tools)} tools, integrations={integrations.list_providers()}, "
        f"observability={type(runtime.observability).__name__}"
    )
    return runtime


async def _register_integrations(
    settings: AppSettings,
    credentials: CredentialStore,
    integrations: IntegrationRegistry,
) -> None:
    github_token = secret_or_none(settings.github_token)
    github_secret = secret_or_none(settings.github_webhook_secret)
    if github_token or github_secret:
        if github_token:
            await credentials.set("github", StaticCredential(github_token, CredentialType.PAT))
        integrations.register(
            GitHubIntegration(
                GitHubIntegration.default_config(webhook_secret=github_secret),
                credentials,
            )
        )

    client_secret = secret_or_none(settings.google_client_secret)
    if settings.google_client_id and client_secret:
        # Tokens arrive through the OAuth consent flow, stored per agent
        integrations.register(
            GoogleCalendarIntegration(
                GoogleCalendarIntegration.default_config(
                    webhook_secret=secret_or_none(settings.google_webhook_token),
                    settings={"client_id": settings.google_client_id, "client_secret": client_secret},
                ),
                credentials,
            )
        )


async def shutdown_runtime(runtime: Runtime) -> None:
    """Flush observability and release integration clients."""
    await runtime.observability.shutdown()
    await runtime.integrations.close_all()


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency returning the runtime built at startup."""
    return request.app.state.runtime
