"""
Tests for ToolExecutor.

Tests cover:
- Successful execution (result returned unchanged)
- Unknown tools and invalid input (tool never invoked)
- Wrapping of tool-internal faults
- Capability gate
- Cancellation
"""

import asyncio
from typing import Any

import pytest

from agentworks.errors import InvalidToolInputError, ToolExecutionError, ToolNotFoundError
from agentworks.tools import (
    CancellationToken,
    FailureKind,
    OperationCancelled,
    Tool,
    ToolDefinition,
    ToolExecutionContext,
    ToolExecutor,
    ToolRegistry,
    ToolResult,
)
from conftest import EchoTool


class ExplodingTool(Tool):
    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="explode",
            description="Always raises",
            input_schema={"type": "object", "properties": {}},
        )

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        raise RuntimeError("boom")


class SlowTool(Tool):
    """Waits on the cancellation token through guard()."""

    def __init__(self) -> None:
        self.started = asyncio.Event()

    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="slow",
            description="Sleeps for a long time",
            input_schema={"type": "object", "properties": {}},
        )

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        self.started.set()
        await context.cancellation.guard(asyncio.sleep(60))
        return ToolResult.success("finished")


class BadResultTool(Tool):
    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="bad_result",
            description="Returns a plain dict",
            input_schema={"type": "object", "properties": {}},
        )

    async def execute(self, arguments, context):
        return {"not": "a ToolResult"}


# =============================================================================
# Result Tests
# =============================================================================


class TestToolResult:
    """ToolResult factories and accessors."""

    def test_success(self):
        result = ToolResult.success({"a": 1}, metadata={"source": "test"})

        assert result.ok
        assert not result.is_error
        assert result.error is None
        assert result.to_dict() == {"ok": True, "payload": {"a": 1}, "metadata": {"source": "test"}}

    def test_failure(self):
        result = ToolResult.failure("boom")

        assert not result.ok
        assert result.is_error
        assert not result.is_cancelled
        assert result.error.kind is FailureKind.ERROR
        assert result.error.message == "boom"
        assert result.text == "Error: boom"
        assert result.to_dict() == {"ok": False, "error": {"kind": "error", "message": "boom"}}

    def test_failure_kind_and_metadata(self):
        result = ToolResult.failure("nope", kind=FailureKind.DENIED, metadata={"denied_by_policy": True})

        assert result.error.kind is FailureKind.DENIED
        assert result.metadata == {"denied_by_policy": True}

    def test_cancelled(self):
        result = ToolResult.cancelled("stop")

        assert result.is_cancelled
        assert result.is_error
        assert result.error.kind is FailureKind.CANCELLED
        assert result.to_dict()["error"] == {"kind": "cancelled", "message": "stop"}


# =============================================================================
# End-to-end Scenarios
# =============================================================================


class TestExecuteScenarios:
    """Echo round trip and missing tool."""

    @pytest.mark.asyncio
    async def test_echo_returns_input_unchanged(self, executor, context):
        result = await executor.execute("echo", {"msg": "hi"}, context)

        assert result.ok
        assert result.payload == {"msg": "hi"}

    @pytest.mark.asyncio
    async def test_missing_tool_raises_not_found(self, executor, context):
        with pytest.raises(ToolNotFoundError):
            await executor.execute("missing-tool", {}, context)

    @pytest.mark.asyncio
    async def test_result_is_returned_unchanged(self, context):
        expected = ToolResult.success({"x": 1}, metadata={"source": "test"})

        class FixedTool(EchoTool):
            async def execute(self, arguments, context):
                return expected

        registry = ToolRegistry()
        registry.register(FixedTool())

        result = await ToolExecutor(registry).execute("echo", {"msg": "ignored"}, context)

        assert result is expected


# =============================================================================
# Input Validation Tests
# =============================================================================


class TestInputValidation:
    """Invalid input never reaches the tool."""

    @pytest.mark.asyncio
    async def test_missing_required_field(self, executor, echo_tool, context):
        with pytest.raises(InvalidToolInputError) as exc_info:
            await executor.execute("echo", {}, context)

        assert exc_info.value.tool_name == "echo"
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_wrong_type_reports_path(self, executor, echo_tool, context):
        with pytest.raises(InvalidToolInputError) as exc_info:
            await executor.execute("echo", {"msg": 42}, context)

        assert exc_info.value.validation_errors[0]["path"] == "msg"
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_field(self, executor, echo_tool, context):
        with pytest.raises(InvalidToolInputError):
            await executor.execute("echo", {"msg": "hi", "extra": True}, context)

        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_non_mapping_arguments(self, executor, echo_tool, context):
        with pytest.raises(InvalidToolInputError):
            await executor.execute("echo", ["msg", "hi"], context)

        assert echo_tool.calls == []


# =============================================================================
# Fault Wrapping Tests
# =============================================================================


class TestFaultWrapping:
    """Tool-internal faults surface as ToolExecutionError."""

    @pytest.mark.asyncio
    async def test_exception_wrapped_with_tool_name(self, context):
        registry = ToolRegistry()
        registry.register(ExplodingTool())

        with pytest.raises(ToolExecutionError) as exc_info:
            await ToolExecutor(registry).execute("explode", {}, context)

        error = exc_info.value
        assert error.tool_name == "explode"
        assert isinstance(error.cause, RuntimeError)
        assert error.__cause__ is error.cause
        assert "explode" in str(error)

    @pytest.mark.asyncio
    async def test_non_result_return_wrapped(self, context):
        registry = ToolRegistry()
        registry.register(BadResultTool())

        with pytest.raises(ToolExecutionError) as exc_info:
            await ToolExecutor(registry).execute("bad_result", {}, context)

        assert isinstance(exc_info.value.cause, TypeError)


# =============================================================================
# Capability Gate Tests
# =============================================================================


class TestCapabilityGate:
    """Tools requiring capabilities the caller lacks are denied."""

    @pytest.fixture
    def gated_tool(self):
        return EchoTool(capabilities=frozenset({"network"}))

    @pytest.fixture
    def gated_executor(self, gated_tool):
        registry = ToolRegistry()
        registry.register(gated_tool)
        return ToolExecutor(registry)

    @pytest.mark.asyncio
    async def test_missing_capability_denied(self, gated_executor, gated_tool):
        context = ToolExecutionContext.create(agent_id="a", capabilities=["memory"])

        result = await gated_executor.execute("echo", {"msg": "hi"}, context)

        assert result.error.kind is FailureKind.DENIED
        assert result.metadata["missing_capabilities"] == ["network"]
        assert gated_tool.calls == []

    @pytest.mark.asyncio
    async def test_held_capability_allowed(self, gated_executor):
        context = ToolExecutionContext.create(agent_id="a", capabilities=["network"])

        result = await gated_executor.execute("echo", {"msg": "hi"}, context)

        assert result.ok

    @pytest.mark.asyncio
    async def test_wildcard_and_unrestricted(self, gated_executor):
        wildcard = ToolExecutionContext.create(agent_id="a", capabilities=["*"])
        unrestricted = ToolExecutionContext.create(agent_id="a")

        assert (await gated_executor.execute("echo", {"msg": "hi"}, wildcard)).ok
        assert (await gated_executor.execute("echo", {"msg": "hi"}, unrestricted)).ok

    @pytest.mark.asyncio
    async def test_validation_precedes_gate(self, gated_executor):
        context = ToolExecutionContext.create(agent_id="a", capabilities=[])

        with pytest.raises(InvalidToolInputError):
            await gated_executor.execute("echo", {}, context)


# =============================================================================
# Cancellation Tests
# =============================================================================


class TestCancellation:
    """Cancelled invocations yield a cancelled result, not an error."""

    @pytest.mark.asyncio
    async def test_already_cancelled_skips_tool(self, executor, echo_tool, context):
        context.cancellation.cancel("user aborted")

        result = await executor.execute("echo", {"msg": "hi"}, context)

        assert result.is_cancelled
        assert result.error.message == "user aborted"
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_execution(self):
        registry = ToolRegistry()
        tool = SlowTool()
        registry.register(tool)
        context = ToolExecutionContext.create(agent_id="a")

        task = asyncio.create_task(ToolExecutor(registry).execute("slow", {}, context))
        await tool.started.wait()
        context.cancellation.cancel("caller gave up")
        result = await asyncio.wait_for(task, timeout=5)

        assert result.is_cancelled
        assert result.error.message == "caller gave up"

    @pytest.mark.asyncio
    async def test_cancel_after_acts_as_timeout(self):
        registry = ToolRegistry()
        registry.register(SlowTool())
        context = ToolExecutionContext.create(agent_id="a")
        context.cancellation.cancel_after(0.01)

        result = await asyncio.wait_for(
            ToolExecutor(registry).execute("slow", {}, context), timeout=5
        )

        assert result.is_cancelled
        assert "Timed out" in result.error.message

    @pytest.mark.asyncio
    async def test_operation_cancelled_not_wrapped(self, context):
        class GivesUp(EchoTool):
            async def execute(self, arguments, context):
                raise OperationCancelled("stopped early")

        registry = ToolRegistry()
        registry.register(GivesUp())

        result = await ToolExecutor(registry).execute("echo", {"msg": "x"}, context)

        assert result.is_cancelled
        assert result.error.message == "stopped early"

    @pytest.mark.asyncio
    async def test_contexts_are_independent(self, executor):
        first = ToolExecutionContext.create(agent_id="a")
        second = ToolExecutionContext.create(agent_id="a")
        first.cancellation.cancel()

        assert (await executor.execute("echo", {"msg": "x"}, first)).is_cancelled
        assert (await executor.execute("echo", {"msg": "x"}, second)).ok
        assert first.trace_id != second.trace_id

    @pytest.mark.asyncio
    async def test_outer_cancel_stops_guarded_work(self):
        token = CancellationToken()
        started = asyncio.Event()
        completed = []

        async def work():
            started.set()
            await asyncio.sleep(0.05)
            completed.append(True)

        task = asyncio.create_task(token.guard(work()))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.1)

        assert completed == []
        assert not token.cancelled
