"""
Collaboration tools.

- agent_message: send a message to another agent
- human_approval: ask a human to approve a sensitive action

Delivery and approval storage are injected (MessageBus, ApprovalGateway);
the in-memory implementations here back tests and single-process hosts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import uuid4

from agentworks.tools.base import Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.tools.context import ToolExecutionContext


# =============================================================================
# Agent messaging
# =============================================================================


@dataclass(frozen=True, slots=True)
class AgentMessage:
    id: str
    from_agent: str
    to_agent: str
    message_type: str
    content: str
    correlation_id: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class MessageBus(Protocol):
    """Delivers messages between agents."""

    def knows(self, agent: str) -> bool: ...

    async def deliver(self, message: AgentMessage) -> None: ...


class InMemoryMessageBus:
    """Message bus keeping a per-agent inbox in memory."""

    def __init__(self, agents: list[str] | None = None):
        self.inboxes: dict[str, list[AgentMessage]] = {name: [] for name in agents or []}

    def add_agent(self, name: str) -> None:
        self.inboxes.setdefault(name, [])

    def knows(self, agent: str) -> bool:
        return agent in self.inboxes

    async def deliver(self, message: AgentMessage) -> None:
        self.inboxes[message.to_agent].append(message)


class AgentMessageTool(Tool):
    """Send a message to another agent."""

    def __init__(self, bus: MessageBus):
        self._bus = bus
        self._definition = ToolDefinition(
            name="agent_message",
            description=(
                "Send a message to another agent. Use this to collaborate, delegate "
                "tasks, or share information with other agents."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "to_agent": {"type": "string", "description": "The name of the agent to message"},
                    "message": {"type": "string", "description": "The message content"},
                    "message_type": {
                        "type": "string",
                        "description": "Type of message",
                        "enum": ["request", "response", "notification"],
                    },
                },
                "required": ["to_agent", "message"],
            },
            category="communication",
            capabilities=frozenset({"delegation"}),
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        to_agent = arguments["to_agent"]
        message_type = arguments.get("message_type", "request")

        if not self._bus.knows(to_agent):
            return ToolResult.failure(
                f'Agent "{to_agent}" not found. Available agents can be discovered '
                "via the agent registry."
            )

        message = AgentMessage(
            id=str(uuid4()),
            from_agent=context.agent_id,
            to_agent=to_agent,
            message_type=message_type,
            content=arguments["message"],
            correlation_id=context.trace_id,
        )
        await context.cancellation.guard(self._bus.deliver(message))

        return ToolResult.success(
            {"message_id": message.id, "to_agent": to_agent, "message_type": message_type},
        )


# =============================================================================
# Human approval
# =============================================================================


@dataclass(frozen=True, slots=True)
class ApprovalRequest:
    id: str
    agent_id: str
    action: str
    reason: str
    details: str | None
    payload: dict[str, Any]
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class ApprovalGateway(Protocol):
    """Queues approval requests for a human decision."""

    async def request_approval(
        self,
        *,
        agent_id: str,
        action: str,
        reason: str,
        details: str | None,
        payload: dict[str, Any],
    ) -> str:
        """Queue a request and return its id."""
        ...


class InMemoryApprovalQueue:
    """Approval gateway that keeps pending requests in memory."""

    def __init__(self) -> None:
        self.pending: dict[str, ApprovalRequest] = {}

    async def request_approval(
        self,
        *,
        agent_id: str,
        action: str,
        reason: str,
        details: str | None,
        payload: dict[str, Any],
    ) -> str:
        request = ApprovalRequest(
            id=str(uuid4()),
            agent_id=agent_id,
            action=action,
            reason=reason,
            details=details,
            payload=payload,
        )
        self.pending[request.id] = request
        return request.id


class HumanApprovalTool(Tool):
    """
    Request human approval before taking a sensitive action.

    The tool only queues the request; the host pauses the run until
    a decision arrives (metadata["approval_pending"] is True).
    """

    def __init__(self, gateway: ApprovalGateway):
        self._gateway = gateway
        self._definition = ToolDefinition(
            name="human_approval",
            description=(
                "Request human approval before taking a sensitive action. The agent "
                "will pause until a human approves or denies."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "action": {
                        "type": "string",
                        "description": "Description of the action that needs approval",
                    },
                    "reason": {"type": "string", "description": "Why this action needs to be taken"},
                    "details": {"type": "string", "description": "Additional context for the approver"},
                },
                "required": ["action", "reason"],
            },
            category="approval",
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        action = arguments["action"]
        reason = arguments["reason"]

        request_id = await context.cancellation.guard(
            self._gateway.request_approval(
                agent_id=context.agent_id,
                action=action,
                reason=reason,
                details=arguments.get("details"),
                payload=dict(arguments),
            )
        )

        return ToolResult.success(
            f"Approval requested for: {action}. Reason: {reason}. Waiting for human decision.",
            metadata={"approval_pending": True, "approval_request_id": request_id},
        )
