"""
Langfuse observability backend.

Each run becomes a Langfuse trace with an `agent_loop` span; each tool
call becomes a child span `tool:<name>`. Events are buffered and sent to
the public ingestion API in batches:

    POST {base_url}/api/public/ingestion
    Authorization: Basic <public_key:secret_key>
    {"batch": [{"id", "timestamp", "type", "body"}, ...]}

The buffer is flushed when it reaches `flush_at` events, every
`flush_interval` seconds from a background task, and on shutdown().
Delivery failures are logged and the batch dropped; they never surface
in agent runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import httpx

from .base import RunObservation, describe_error
from .logging import StructuredLogger
from .types import AgentRunResult, AgentRunStartInput, RunHandle, ToolExecutionObservation

DEFAULT_BASE_URL = "https://cloud.langfuse.com"
INGESTION_PATH = "/api/public/ingestion"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class LangfuseObservability(RunObservation):
    """
    Langfuse-backed run observation.

    Args:
        public_key: Langfuse public key
        secret_key: Langfuse secret key
        base_url: Langfuse host
        flush_at: Buffered event count that triggers a flush
        flush_interval: Seconds between background flushes
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    name = "langfuse"

    def __init__(
        self,
        *,
        public_key: str,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        flush_at: int = 15,
        flush_interval: float = 10.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: StructuredLogger | None = None,
        **kwargs: Any,
    ):
        super().__init__(logger=logger, **kwargs)
        self._flush_at = max(1, flush_at)
        self._flush_interval = flush_interval
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=httpx.BasicAuth(public_key, secret_key),
            timeout=timeout,
            transport=transport,
        )
        self._buffer: list[dict[str, Any]] = []
        self._flush_lock = asyncio.Lock()
        self._flush_task: asyncio.Task[None] | None = None
        # run_id -> (trace id, agent_loop span id)
        self._ids: dict[str, tuple[str, str]] = {}

    @property
    def pending_events(self) -> int:
        return len(self._buffer)

    # =========================================================================
    # Hooks
    # =========================================================================

    async def _on_start(self, handle: RunHandle, start_input: AgentRunStartInput) -> None:
        self._ensure_flush_task()

        trace_id = start_input.trace_id or handle.run_id
        span_id = str(uuid4())
        self._ids[handle.run_id] = (trace_id, span_id)
        started = _iso(_now())

        await self._enqueue(
            "trace-create",
            {
                "id": trace_id,
                "timestamp": started,
                "name": f"agent_run:{start_input.agent_id}",
                "input": start_input.prompt,
                "sessionId": start_input.conversation_id,
                "userId": start_input.agent_id,
                "metadata": {
                    "agentName": start_input.agent_name,
                    "trigger": start_input.trigger,
                    **start_input.metadata,
                },
            },
        )
        await self._enqueue(
            "span-create",
            {
                "id": span_id,
                "traceId": trace_id,
                "name": "agent_loop",
                "startTime": started,
                "input": start_input.prompt,
                "metadata": {"agentId": start_input.agent_id, "traceId": trace_id},
            },
        )

    async def _on_tool(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        observation: ToolExecutionObservation,
    ) -> None:
        trace_id, span_id = self._ids[handle.run_id]
        ended = _now()
        started = ended - timedelta(milliseconds=observation.duration_ms)

        body: dict[str, Any] = {
            "id": str(uuid4()),
            "traceId": trace_id,
            "parentObservationId": span_id,
            "name": f"tool:{observation.tool_name}",
            "startTime": _iso(started),
            "endTime": _iso(ended),
            "input": observation.input_summary(),
            "output": observation.output(),
            "metadata": {"durationMs": observation.duration_ms, "success": observation.succeeded},
        }
        if not observation.succeeded:
            body["level"] = "ERROR"
            failure = observation.result.error if observation.result is not None else None
            body["statusMessage"] = observation.error or (failure.message if failure else None)

        await self._enqueue("span-create", body)

    async def _on_finish(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        result: AgentRunResult,
    ) -> None:
        trace_id, span_id = self._ids.pop(handle.run_id)

        await self._enqueue(
            "span-update",
            {
                "id": span_id,
                "traceId": trace_id,
                "endTime": _iso(_now()),
                "output": result.response,
                "metadata": {
                    "success": result.success,
                    "iterations": result.iterations,
                    "durationMs": result.duration_ms,
                    "toolsUsed": result.tools_used,
                    "tokenUsage": result.token_usage,
                },
            },
        )
        # trace-create with an existing id upserts the trace
        await self._enqueue(
            "trace-create",
            {
                "id": trace_id,
                "output": result.response,
                "metadata": {"success": result.success, "approvalsPending": result.approvals_pending},
            },
        )

    async def _on_fail(
        self,
        handle: RunHandle,
        start_input: AgentRunStartInput,
        error: BaseException | str,
    ) -> None:
        trace_id, span_id = self._ids.pop(handle.run_id)
        message = describe_error(error)

        await self._enqueue(
            "span-update",
            {
                "id": span_id,
                "traceId": trace_id,
                "endTime": _iso(_now()),
                "level": "ERROR",
                "statusMessage": message,
                "metadata": {"success": False},
            },
        )
        await self._enqueue(
            "trace-create",
            {"id": trace_id, "output": message, "metadata": {"success": False}},
        )

    async def _on_shutdown(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None

        await self.flush()
        await self._http.aclose()
        self._log.info("Langfuse observability shut down")

    # =========================================================================
    # Delivery
    # =========================================================================

    async def flush(self) -> int:
        """Send buffered events. Returns the number of events delivered."""
        async with self._flush_lock:
            if not self._buffer:
                return 0
            batch, self._buffer = self._buffer, []

            try:
                content = json.dumps({"batch": batch}, default=str)
                response = await self._http.post(
                    INGESTION_PATH,
                    content=content,
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as e:
                self._log.warning(
                    "Langfuse ingestion failed",
                    events=len(batch),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return 0
            except Exception as e:
                self._log.error(
                    "Langfuse batch dropped",
                    events=len(batch),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return 0

            if not response.is_success:
                self._log.warning(
                    "Langfuse ingestion rejected",
                    events=len(batch),
                    status=response.status_code,
                    body=response.text[:500],
                )
                return 0

            self._log.debug("Langfuse batch delivered", events=len(batch))
            return len(batch)

    async def _enqueue(self, event_type: str, body: dict[str, Any]) -> None:
        self._buffer.append(
            {
                "id": str(uuid4()),
                "timestamp": _iso(_now()),
                "type": event_type,
                "body": {k: v for k, v in body.items() if v is not None},
            }
        )
        if len(self._buffer) >= self._flush_at:
            await self.flush()

    def _ensure_flush_task(self) -> None:
        if self._flush_interval <= 0:
            return
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.get_running_loop().create_task(self._periodic_flush())

    async def _periodic_flush(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                await self.flush()
            except Exception as e:
                self._log.error(
                    "Langfuse periodic flush failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
