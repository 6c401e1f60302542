"""
Tool Execution Context.

A ToolExecutionContext is created fresh for every tool invocation and is
owned by that invocation alone. It carries:
- Identity: requesting agent, run and trace identifiers
- Cancellation: an invocation-scoped CancellationToken
- Integrations: access to the IntegrationRegistry for tools that call
  external providers
- Capabilities: the capability tags the caller holds (None = unrestricted)

Usage:
    context = ToolExecutionContext.create(
        agent_id="support-bot",
        run_id="run-123",
        integrations=integration_registry,
        capabilities={"network"},
    )

    # Give up after 10 seconds
    context.cancellation.cancel_after(10.0)

    result = await executor.execute("http_request", {"url": url}, context)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

if TYPE_CHECKING:
    from agentworks.integrations.registry import IntegrationRegistry

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised inside a tool when its invocation has been cancelled."""

    def __init__(self, reason: str = "Cancelled by caller"):
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """
    Cooperative cancellation signal for a single invocation.

    Cancelling is idempotent; the first reason wins.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self._reason or "Cancelled by caller")

    async def wait(self) -> None:
        await self._event.wait()

    def cancel_after(self, delay: float) -> asyncio.TimerHandle:
        """Cancel the token after `delay` seconds. Returns the timer handle."""
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.cancel, f"Timed out after {delay}s")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the token is cancelled first.

        If cancellation wins, the pending work is cancelled and
        OperationCancelled is raised.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            finished = work.done()
            if not finished:
                work.cancel()

        if finished:
            return work.result()

        try:
            await work
        except asyncio.CancelledError:
            pass
        raise OperationCancelled(self._reason or "Cancelled by caller")


@dataclass(frozen=True)
class ToolExecutionContext:
    """
    Per-invocation context handed to Tool.execute().

    Frozen: never mutated after creation. Build a new one per call with
    ToolExecutionContext.create().

    Attributes:
        agent_id: Identifier of the requesting agent
        run_id: Identifier of the agent run this invocation belongs to
        trace_id: Correlation id for logs and traces
        cancellation: Invocation-scoped cancellation signal
        integrations: IntegrationRegistry for provider-backed tools
        capabilities: Capability tags held by the caller (None = all)
        conversation_id: Optional conversation the run belongs to
        metadata: Additional caller context
    """

    agent_id: str
    run_id: str
    trace_id: str
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    integrations: IntegrationRegistry | None = None
    capabilities: frozenset[str] | None = None
    conversation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        *,
        agent_id: str,
        run_id: str | None = None,
        trace_id: str | None = None,
        integrations: IntegrationRegistry | None = None,
        capabilities: Iterable[str] | None = None,
        conversation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ToolExecutionContext:
        """Create a fresh context with its own cancellation token."""
        return cls(
            agent_id=agent_id,
            run_id=run_id or str(uuid4()),
            trace_id=trace_id or str(uuid4()),
            cancellation=CancellationToken(),
            integrations=integrations,
            capabilities=frozenset(capabilities) if capabilities is not None else None,
            conversation_id=conversation_id,
            metadata=dict(metadata or {}),
        )

    def missing_capabilities(self, required: Iterable[str]) -> list[str]:
        """Return required capabilities this context does not hold."""
        if self.capabilities is None or "*" in self.capabilities:
            return []
        return sorted(c for c in required if c not in self.capabilities)
