"""
Agentworks Tools.

Tools are the "hands" of the agent: named, schema-described capabilities
an agent can invoke (search, HTTP call, memory op, messaging, approval).

Usage:
    # Define a tool
    class EchoTool(Tool):
        def describe(self) -> ToolDefinition:
            return ToolDefinition(
                name="echo",
                description="Return the input unchanged",
                input_schema={"type": "object", "properties": {}},
            )

        async def execute(self, arguments, context) -> ToolResult:
            return ToolResult.success(arguments)

    # Register and run
    registry = ToolRegistry()
    registry.register(EchoTool())

    executor = ToolExecutor(registry)
    context = ToolExecutionContext.create(agent_id="ops-bot")
    result = await executor.execute("echo", {"msg": "hi"}, context)
"""

from .base import FailureKind, Tool, ToolDefinition, ToolFailure, ToolResult
from .context import CancellationToken, OperationCancelled, ToolExecutionContext
from .executor import ToolExecutor
from .registry import DefinitionView, ToolRegistry

__all__ = [
    # Core Tool Protocol
    "Tool",
    "ToolDefinition",
    "ToolResult",
    "ToolFailure",
    "FailureKind",
    # Execution
    "ToolExecutionContext",
    "CancellationToken",
    "OperationCancelled",
    "ToolExecutor",
    # Registry
    "ToolRegistry",
    "DefinitionView",
]
