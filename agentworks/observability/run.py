"""
Observed agent runs.

observed_run() wires a run into the observation lifecycle so callers
cannot get the ordering wrong:

    async with observed_run(observability, start_input) as run:
        result = await run.execute_tool(executor, "http_request", args, context)
        ...
        await run.finish(response="done")

- start() is called on entry
- each execute_tool() reports one observation, for returned results
  and for raised AgentworksErrors alike
- an exception leaving the block calls fail() exactly once, then propagates
- leaving normally without finish() records a successful finish
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from agentworks.errors import AgentworksError, ObservationStateError

from .types import AgentRunResult, AgentRunStartInput, RunHandle, ToolExecutionObservation

if TYPE_CHECKING:
    from agentworks.tools.base import ToolResult
    from agentworks.tools.context import ToolExecutionContext
    from agentworks.tools.executor import ToolExecutor

    from .base import AgentRunObservation


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class ObservedRun:
    """One running agent run bound to its observation handle."""

    def __init__(self, observability: AgentRunObservation, handle: RunHandle):
        self.handle = handle
        self.tools_used: list[str] = []
        self.approvals_pending: list[str] = []
        self.iterations = 0
        self._observability = observability
        self._started = time.perf_counter()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def execute_tool(
        self,
        executor: ToolExecutor,
        name: str,
        arguments: Mapping[str, Any],
        context: ToolExecutionContext,
    ) -> ToolResult:
        """Execute a tool through `executor` and report the observation."""
        started = time.perf_counter()
        try:
            result = await executor.execute(name, arguments, context)
        except AgentworksError as e:
            await self._observability.observe_tool(
                self.handle,
                ToolExecutionObservation(
                    tool_name=name,
                    arguments=dict(arguments),
                    duration_ms=_elapsed_ms(started),
                    error=f"{type(e).__name__}: {e}",
                ),
            )
            raise

        await self._observability.observe_tool(
            self.handle,
            ToolExecutionObservation(
                tool_name=name,
                arguments=dict(arguments),
                duration_ms=_elapsed_ms(started),
                result=result,
            ),
        )
        self.tools_used.append(name)
        if result.metadata.get("approval_pending"):
            self.approvals_pending.append(str(result.metadata.get("approval_request_id")))
        return result

    async def finish(
        self,
        result: AgentRunResult | None = None,
        *,
        response: str | None = None,
    ) -> AgentRunResult:
        """Record the run's final result (built from this run's bookkeeping if omitted)."""
        if self._closed:
            raise ObservationStateError(f"Run {self.handle.run_id} already ended")

        if result is None:
            result = AgentRunResult(
                success=True,
                response=response,
                tools_used=list(self.tools_used),
                iterations=self.iterations,
                duration_ms=_elapsed_ms(self._started),
                approvals_pending=list(self.approvals_pending),
            )

        self._closed = True
        await self._observability.finish(self.handle, result)
        return result

    async def fail(self, error: BaseException | str) -> None:
        if self._closed:
            raise ObservationStateError(f"Run {self.handle.run_id} already ended")
        self._closed = True
        await self._observability.fail(self.handle, error)


@asynccontextmanager
async def observed_run(
    observability: AgentRunObservation,
    start_input: AgentRunStartInput,
) -> AsyncIterator[ObservedRun]:
    handle = await observability.start(start_input)
    run = ObservedRun(observability, handle)
    try:
        yield run
    except (Exception, asyncio.CancelledError) as e:
        if not run.closed:
            await run.fail(e)
        raise
    else:
        if not run.closed:
            await run.finish()
