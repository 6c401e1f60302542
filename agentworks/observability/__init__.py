"""
Agentworks Observability.

Structured logging plus the agent run observation lifecycle:

    start -> observe_tool* -> finish | fail        (per run)
    shutdown                                       (per process)

Backends (no-op, Langfuse) share one state contract enforced by
RunObservation, so the rest of the system never special-cases which one
is configured.
"""

from .base import AgentRunObservation, RunObservation
from .factory import create_observability
from .langfuse import LangfuseObservability
from .logging import JSONLogger, LogLevel, StructuredLogger, child_logger
from .noop import NoopObservability
from .run import ObservedRun, observed_run
from .types import (
    AgentRunResult,
    AgentRunStartInput,
    RunHandle,
    RunState,
    ToolExecutionObservation,
)

__all__ = [
    # Logging
    "LogLevel",
    "StructuredLogger",
    "JSONLogger",
    "child_logger",
    # Lifecycle
    "AgentRunObservation",
    "RunObservation",
    "NoopObservability",
    "LangfuseObservability",
    "create_observability",
    # Runs
    "ObservedRun",
    "observed_run",
    # Types
    "AgentRunStartInput",
    "AgentRunResult",
    "RunHandle",
    "RunState",
    "ToolExecutionObservation",
]
