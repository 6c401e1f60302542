"""
Tool Base Classes.

This module defines the core abstractions for agent tools:
- ToolDefinition: Immutable description of a tool (name, schema, tags)
- Tool: Base class for all tools
- ToolResult: Discriminated outcome of a tool execution
- FailureKind: Why a tool execution failed

Design Principle:
    Tools are the "hands" of the agent. They wrap a bounded capability
    (search, HTTP call, memory op, messaging, approval) into a callable
    unit. Tools do NOT know how they were chosen.

Usage:
    class EchoTool(Tool):
        def describe(self) -> ToolDefinition:
            return ToolDefinition(
                name="echo",
                description="Return the input unchanged",
                input_schema={"type": "object", "properties": {}},
            )

        async def execute(self, arguments, context) -> ToolResult:
            return ToolResult.success(dict(arguments))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import ToolExecutionContext


def _freeze(value: Any) -> Any:
    """Read-only copy of a JSON-like value (mappings become proxies, lists tuples)."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    """Plain dict/list copy of a frozen value, as jsonschema and JSON encoders expect."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """
    Immutable description of a tool.

    Attributes:
        name: Unique identifier (snake_case recommended)
        description: What the tool does, written for an LLM
        input_schema: JSON Schema object for the arguments (stored read-only)
        category: Coarse grouping (web, memory, communication, ...)
        capabilities: Capability tags the caller must hold to run the tool
        requires_approval: Advisory flag for hosts that gate tools on a human
        timeout: Advisory timeout in seconds, enforced by callers
    """

    name: str
    description: str
    input_schema: Mapping[str, Any]
    category: str = "general"
    capabilities: frozenset[str] = frozenset()
    requires_approval: bool = False
    timeout: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_schema", _freeze(self.input_schema))

    def schema_dict(self) -> dict[str, Any]:
        """Mutable copy of the input schema."""
        return _thaw(self.input_schema)

    def to_llm_schema(self) -> dict[str, Any]:
        """
        Convert to schema format for LLM tool use.

        This format is compatible with Claude/OpenAI tool calling.
        """
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.schema_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            **self.to_llm_schema(),
            "category": self.category,
            "capabilities": sorted(self.capabilities),
            "requires_approval": self.requires_approval,
            "timeout": self.timeout,
        }


class FailureKind(Enum):
    """Why a tool execution failed."""

    ERROR = "error"
    CANCELLED = "cancelled"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class ToolFailure:
    """Failure half of a ToolResult."""

    kind: FailureKind
    message: str


@dataclass(frozen=True, slots=True)
class ToolResult:
    """
    Result from tool execution.

    Exactly one of `payload` (on success) or `error` is meaningful.

    Error Handling:
        Expected failures are reported IN the result, not as exceptions.
        This lets the agent reason about them and adjust. Exceptions are
        reserved for unexpected faults.

    Example:
        ToolResult.success({"task_id": "123"})
        ToolResult.failure("Project not found: Mobile App")
        ToolResult.cancelled()
    """

    payload: Any = None
    error: ToolFailure | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(
        cls,
        payload: Any = None,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Create a successful result carrying an arbitrary payload."""
        return cls(payload=payload, metadata=metadata or {})

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        kind: FailureKind = FailureKind.ERROR,
        metadata: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Create a failed result."""
        return cls(
            error=ToolFailure(kind=kind, message=message),
            metadata=metadata or {},
        )

    @classmethod
    def cancelled(cls, message: str = "Cancelled by caller") -> ToolResult:
        """Create a result for an execution the caller gave up on."""
        return cls.failure(message, kind=FailureKind.CANCELLED)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def is_cancelled(self) -> bool:
        return self.error is not None and self.error.kind == FailureKind.CANCELLED

    @property
    def text(self) -> str:
        """Human-readable summary (failure message or stringified payload)."""
        if self.error is not None:
            return f"Error: {self.error.message}"
        if isinstance(self.payload, str):
            return self.payload
        return "" if self.payload is None else repr(self.payload)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"ok": self.ok}

        if self.error is not None:
            result["error"] = {
                "kind": self.error.kind.value,
                "message": self.error.message,
            }
        else:
            result["payload"] = self.payload
        if self.metadata:
            result["metadata"] = self.metadata

        return result


class Tool(ABC):
    """
    Base class for all tools.

    Contract:
        - describe: Return the immutable ToolDefinition
        - execute: Async method that performs the action

    Tools receive a ToolExecutionContext scoped to a single invocation.
    Long-running tools should honour `context.cancellation` and return
    ToolResult.cancelled() (or raise OperationCancelled) promptly.
    """

    @abstractmethod
    def describe(self) -> ToolDefinition:
        """Return the tool's definition."""
        ...

    @abstractmethod
    async def execute(
        self,
        arguments: dict[str, Any],
        context: ToolExecutionContext,
    ) -> ToolResult:
        """
        Execute the tool with the given arguments.

        Args:
            arguments: Dict matching the definition's input_schema
            context: Per-invocation execution context

        Returns:
            ToolResult with execution outcome
        """
        ...

    @property
    def name(self) -> str:
        return self.describe().name

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"
