"""
Run observation lifecycle.

Per run:    start -> RUNNING -> finish -> FINISHED
                             -> fail   -> FAILED
Process:    shutdown (idempotent, safe with no runs)

RunObservation enforces the contract once for every backend: handles map
into a run-state table, observe_tool/finish/fail against an unknown or
non-running handle raise ObservationStateError, and nothing but
shutdown() is accepted after shutdown. Backends only implement the
_on_* hooks, which run after the state transition has been recorded.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from uuid import uuid4

from agentworks.errors import ObservationStateError

from .logging import StructuredLogger, child_logger
from .types import (
    AgentRunResult,
    AgentRunStartInput,
    RunHandle,
    RunState,
    ToolExecutionObservation,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETAINED_RUNS = 1000


@runtime_checkable
class AgentRunObservation(Protocol):
    """Capability set every observability backend provides."""

    async def start(self, start_input: AgentRunStartInput) -> RunHandle: ...

    async def observe_tool(self, handle: RunHandle, observation: ToolExecutionObservation) -> None: ...

    async def finish(self, handle: RunHandle, result: AgentRunResult) -> None: ...

    async def fail(self, handle: RunHandle, error: BaseException | str) -> None: ...

    async def shutdown(self) -> None: ...


@dataclass
class _RunRecord:
    start_input: AgentRunStartInput
    state: RunState = RunState.RUNNING
    observations: list[ToolExecutionObservation] = field(default_factory=list)
    result: AgentRunResult | None = None
    error: str | None = None


def describe_error(error: BaseException | str) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return error


class RunObservation:
    """
    Base class holding the run-state table.

    Terminal runs are retained (oldest evicted beyond `max_retained_runs`)
    so that late calls on a finished handle are still rejected as such.
    """

    name = "base"

    def __init__(
        self,
        *,
        logger: StructuredLogger | None = None,
        max_retained_runs: int = DEFAULT_MAX_RETAINED_RUNS,
    ):
        self._log = child_logger(logger, f"agentworks.observability.{self.name}", module=f"{self.name}-observability")
        self._runs: OrderedDict[str, _RunRecord] = OrderedDict()
        self._terminal: deque[str] = deque()
        self._max_retained_runs = max_retained_runs
        self._shut_down = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, start_input: AgentRunStartInput) -> RunHandle:
        self._ensure_open("start")

        handle = RunHandle(run_id=str(uuid4()))
        self._runs[handle.run_id] = _RunRecord(start_input=start_input)
        await self._on_start(handle, start_input)
        return handle

    async def observe_tool(self, handle: RunHandle, observation: ToolExecutionObservation) -> None:
        record = self._running(handle, "observe_tool")
        record.observations.append(observation)
        await self._on_tool(handle, record.start_input, observation)

    async def finish(self, handle: RunHandle, result: AgentRunResult) -> None:
        record = self._running(handle, "finish")
        record.state = RunState.FINISHED
        record.result = result
        self._retire(handle)
        await self._on_finish(handle, record.start_input, result)

    async def fail(self, handle: RunHandle, error: BaseException | str) -> None:
        record = self._running(handle, "fail")
        record.state = RunState.FAILED
        record.error = describe_error(error)
        self._retire(handle)
        await self._on_fail(handle, record.start_input, error)

    async def shutdown(self) -> None:
        """Flush and release backend resources. Idempotent."""
        if self._shut_down:
            return
        self._shut_down = True

        running = sum(1 for r in self._runs.values() if r.state is RunState.RUNNING)
        if running:
            self._log.warning("Shutting down with runs still in progress", running=running)

        await self._on_shutdown()

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def state(self, handle: RunHandle) -> RunState:
        return self._record(handle, "state").state

    def observations(self, handle: RunHandle) -> tuple[ToolExecutionObservation, ...]:
        """Tool observations recorded for a run, in call order."""
        return tuple(self._record(handle, "observations").observations)

    def active_runs(self) -> int:
        return sum(1 for r in self._runs.values() if r.state is RunState.RUNNING)

    # =========================================================================
    # Backend hooks
    # =========================================================================

    async def _on_start(self, handle: RunHandle, start_input: AgentRunStartInput) -> None:
        pass

    async def _on_tool(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        observation: ToolExecutionObservation,
    ) -> None:
        pass

    async def _on_finish(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        result: AgentRunResult,
    ) -> None:
        pass

    async def _on_fail(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        error: BaseException | str,
    ) -> None:
        pass

    async def _on_shutdown(self) -> None:
        pass

    # =========================================================================
    # State table
    # =========================================================================

    def _ensure_open(self, operation: str) -> None:
        if self._shut_down:
            raise ObservationStateError(f"{operation}() called after shutdown()")

    def _record(self, handle: RunHandle, operation: str) -> _RunRecord:
        if not isinstance(handle, RunHandle):
            raise ObservationStateError(f"{operation}() requires a RunHandle, got {type(handle).__name__}")
        record = self._runs.get(handle.run_id)
        if record is None:
            raise ObservationStateError(f"{operation}() called with unknown run handle {handle.run_id}")
        return record

    def _running(self, handle: RunHandle, operation: str) -> _RunRecord:
        self._ensure_open(operation)
        record = self._record(handle, operation)
        if record.state is not RunState.RUNNING:
            raise ObservationStateError(
                f"{operation}() called on run {handle.run_id} in state {record.state.value}"
            )
        return record

    def _retire(self, handle: RunHandle) -> None:
        self._terminal.append(handle.run_id)
        while len(self._terminal) > self._max_retained_runs:
            self._runs.pop(self._terminal.popleft(), None)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(runs={len(self._runs)}, active={self.active_runs()}, "
            f"shut_down={self._shut_down})"
        )
