"""
Data passed through the run observation lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agentworks.tools.base import ToolResult

SUMMARY_VALUE_LIMIT = 200


class RunState(Enum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not RunState.RUNNING


@dataclass(frozen=True, slots=True)
class RunHandle:
    """
    Opaque token returned by start().

    Only the run id is carried; the backend looks the run up in its own
    state table, so stale or foreign handles are rejected explicitly.
    """

    run_id: str

    def __str__(self) -> str:
        return self.run_id


@dataclass(frozen=True, slots=True)
class AgentRunStartInput:
    agent_id: str
    prompt: str
    agent_name: str | None = None
    trace_id: str | None = None
    conversation_id: str | None = None
    trigger: str = "manual"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolExecutionObservation:
    """
    One tool call within a run.

    Exactly one of `result` (the executor returned) or `error` (it raised)
    is set.
    """

    tool_name: str
    arguments: dict[str, Any]
    duration_ms: float
    result: ToolResult | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None and self.result.ok

    def input_summary(self, limit: int = SUMMARY_VALUE_LIMIT) -> dict[str, Any]:
        """Arguments with long string values truncated to `limit` characters."""
        summary: dict[str, Any] = {}
        for key, value in self.arguments.items():
            if isinstance(value, str) and len(value) > limit:
                summary[key] = value[:limit] + "..."
            else:
                summary[key] = value
        return summary

    def output(self) -> Any:
        if self.result is not None:
            return self.result.to_dict()
        return {"error": self.error}


@dataclass(frozen=True, slots=True)
class AgentRunResult:
    success: bool
    response: str | None = None
    tools_used: list[str] = field(default_factory=list)
    iterations: int = 0
    duration_ms: float = 0.0
    approvals_pending: list[str] = field(default_factory=list)
    token_usage: dict[str, int] | None = None


__all__ = [
    "RunState",
    "RunHandle",
    "AgentRunStartInput",
    "ToolExecutionObservation",
    "AgentRunResult",
]
