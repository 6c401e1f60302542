"""
Agentworks - tool execution and integration orchestration for autonomous agents.

Agentworks provides the runtime core an agent loop calls into:

- **Tools**: Schema-described capabilities resolved, validated and run by name
- **Integrations**: Credentialed provider adapters with OAuth refresh and webhook routing
- **Observability**: A start/observe/finish-or-fail lifecycle for every agent run

Quick Start:
    >>> from agentworks import ToolExecutor, ToolRegistry, ToolExecutionContext
    >>> from agentworks.tools.builtin import HttpRequestTool
    >>>
    >>> registry = ToolRegistry()
    >>> registry.register(HttpRequestTool())
    >>> executor = ToolExecutor(registry)
    >>> context = ToolExecutionContext.create(agent_id="ops-bot")
    >>> result = await executor.execute("http_request", {"url": "https://example.com"}, context)
"""

__version__ = "0.1.0"

from agentworks.errors import AgentworksError
from agentworks.integrations import CredentialStore, IntegrationRegistry, WebhookHandler
from agentworks.observability import NoopObservability, create_observability, observed_run
from agentworks.tools import Tool, ToolDefinition, ToolExecutionContext, ToolExecutor, ToolRegistry, ToolResult

__all__ = [
    "__version__",
    "AgentworksError",
    # Tools
    "Tool",
    "ToolDefinition",
    "ToolResult",
    "ToolExecutionContext",
    "ToolRegistry",
    "ToolExecutor",
    # Integrations
    "CredentialStore",
    "IntegrationRegistry",
    "WebhookHandler",
    # Observability
    "NoopObservability",
    "create_observability",
    "observed_run",
]
