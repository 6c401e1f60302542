"""
Tool Executor.

Runs a single tool invocation:
1. Resolve the tool by name (ToolNotFoundError propagates unchanged)
2. Validate arguments against the definition's input schema
3. Apply the capability gate
4. Invoke the tool with the invocation's own context
5. Normalize the outcome

Every fault that escapes a tool is wrapped in ToolExecutionError naming the
tool, so callers never see an untyped exception from tool code. A tool that
stops because its invocation was cancelled yields ToolResult.cancelled()
instead, so callers can tell "tool failed" from "caller gave up".

The executor itself performs no I/O. Timeouts are layered on by callers
through the context's CancellationToken (see CancellationToken.cancel_after).
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jsonschema.validators import validator_for

from agentworks.errors import InvalidToolInputError, ToolExecutionError
from agentworks.observability.logging import StructuredLogger, child_logger

from .base import FailureKind, ToolResult
from .context import OperationCancelled

if TYPE_CHECKING:
    from jsonschema.protocols import Validator

    from .base import ToolDefinition
    from .context import ToolExecutionContext
    from .registry import ToolRegistry


class ToolExecutor:
    """
    Resolves, validates and invokes tools from a ToolRegistry.

    Example:
        executor = ToolExecutor(registry)
        context = ToolExecutionContext.create(agent_id="ops-bot")

        result = await executor.execute("echo", {"msg": "hi"}, context)
        assert result.payload == {"msg": "hi"}
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        logger: StructuredLogger | None = None,
    ):
        self._registry = registry
        self._log = child_logger(logger, "agentworks.tools.executor", module="tool-executor")
        self._validators: dict[str, tuple[ToolDefinition, Validator]] = {}

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(
        self,
        name: str,
        arguments: Mapping[str, Any],
        context: ToolExecutionContext,
    ) -> ToolResult:
        """
        Execute the named tool.

        Args:
            name: Registered tool name
            arguments: Arguments matching the tool's input schema
            context: Context created for this invocation only

        Returns:
            The tool's ToolResult, unchanged on success

        Raises:
            ToolNotFoundError: Unknown tool name
            InvalidToolInputError: Arguments do not match the schema
            ToolExecutionError: The tool raised an unexpected fault
        """
        tool = self._registry.get(name)
        definition = self._registry.definition(name)

        self._validate(definition, arguments)

        log = self._log.with_context(
            tool=name,
            agent_id=context.agent_id,
            run_id=context.run_id,
            trace_id=context.trace_id,
        )

        missing = context.missing_capabilities(definition.capabilities)
        if missing:
            log.warning("Tool denied by capability policy", missing_capabilities=missing)
            return ToolResult.failure(
                f"Policy denied tool '{name}'. Missing capabilities: {', '.join(missing)}",
                kind=FailureKind.DENIED,
                metadata={"denied_by_policy": True, "missing_capabilities": missing},
            )

        if context.cancellation.cancelled:
            log.info("Tool skipped, invocation already cancelled")
            return ToolResult.cancelled(context.cancellation.reason or "Cancelled by caller")

        log.debug("Executing tool")
        start = time.perf_counter()

        try:
            result = await tool.execute(dict(arguments), context)
        except OperationCancelled as e:
            log.info(
                "Tool execution cancelled",
                reason=e.reason,
                duration_ms=_elapsed_ms(start),
            )
            return ToolResult.cancelled(e.reason)
        except Exception as e:
            log.error(
                "Tool execution failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(start),
            )
            raise ToolExecutionError(name, e) from e

        if not isinstance(result, ToolResult):
            fault = TypeError(f"expected ToolResult, got {type(result).__name__}")
            log.error("Tool returned an invalid result", error=str(fault))
            raise ToolExecutionError(name, fault)

        log.debug(
            "Tool execution completed",
            ok=result.ok,
            duration_ms=_elapsed_ms(start),
        )
        return result

    def _validate(self, definition: ToolDefinition, arguments: Any) -> None:
        """
        Validate arguments against the definition's input schema.

        Raises:
            InvalidToolInputError: On any mismatch
        """
        if not isinstance(arguments, Mapping):
            raise InvalidToolInputError(
                definition.name,
                f"arguments must be an object, got {type(arguments).__name__}",
            )

        validator = self._validator_for(definition)
        errors = sorted(validator.iter_errors(dict(arguments)), key=lambda e: list(e.path))
        if not errors:
            return

        details = [
            {"path": "/".join(str(p) for p in error.path), "message": error.message}
            for error in errors
        ]
        raise InvalidToolInputError(
            definition.name,
            "; ".join(
                f"{d['path']}: {d['message']}" if d["path"] else d["message"] for d in details
            ),
            validation_errors=details,
        )

    def _validator_for(self, definition: ToolDefinition) -> Validator:
        cached = self._validators.get(definition.name)
        if cached is not None and cached[0] is definition:
            return cached[1]

        schema = definition.schema_dict()
        validator = validator_for(schema)(schema)
        self._validators[definition.name] = (definition, validator)
        return validator


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
