"""
Tests for the built-in tools.

Tests cover:
- http_request (httpx.MockTransport)
- web_search with and without a backend
- memory_search / memory_store
- agent_message
- human_approval
"""

import httpx
import pytest

from agentworks.tools import FailureKind, ToolExecutionContext, ToolExecutor, ToolRegistry
from agentworks.tools.builtin import (
    AgentMessageTool,
    HttpRequestTool,
    HumanApprovalTool,
    InMemoryApprovalQueue,
    InMemoryMemoryBackend,
    InMemoryMessageBus,
    MemorySearchTool,
    MemoryStoreTool,
    SearchHit,
    WebSearchTool,
)
from agentworks.tools.builtin.http_request import MAX_BODY_CHARS


def _executor(*tools):
    registry = ToolRegistry()
    registry.register_many(tools)
    return ToolExecutor(registry)


# =============================================================================
# HTTP Request Tests
# =============================================================================


class TestHttpRequestTool:
    """Tests for http_request."""

    @pytest.mark.asyncio
    async def test_successful_get(self, context):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="hello")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await _executor(HttpRequestTool(client)).execute(
                "http_request", {"url": "https://example.com/ping"}, context
            )

        assert result.ok
        assert result.payload == {"status": 200, "status_text": "OK", "body": "hello"}
        assert result.metadata == {"status": 200, "url": "https://example.com/ping"}
        assert seen[0].method == "GET"

    @pytest.mark.asyncio
    async def test_post_sends_body_and_headers(self, context):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, text="created")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await _executor(HttpRequestTool(client)).execute(
                "http_request",
                {
                    "url": "https://example.com/items",
                    "method": "POST",
                    "headers": {"X-Test": "1"},
                    "body": '{"a": 1}',
                },
                context,
            )

        assert result.ok
        assert seen[0].method == "POST"
        assert seen[0].headers["x-test"] == "1"
        assert seen[0].content == b'{"a": 1}'

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self, context):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))

        async with httpx.AsyncClient(transport=transport) as client:
            result = await _executor(HttpRequestTool(client)).execute(
                "http_request", {"url": "https://example.com"}, context
            )

        assert result.is_error
        assert result.error.kind is FailureKind.ERROR
        assert result.metadata["status"] == 503
        assert result.metadata["response"]["body"] == "down"

    @pytest.mark.asyncio
    async def test_body_truncated(self, context):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="x" * (MAX_BODY_CHARS + 50)))

        async with httpx.AsyncClient(transport=transport) as client:
            result = await _executor(HttpRequestTool(client)).execute(
                "http_request", {"url": "https://example.com"}, context
            )

        assert result.payload["body"].endswith("\n...[truncated]")
        assert len(result.payload["body"]) == MAX_BODY_CHARS + len("\n...[truncated]")

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self, context):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await _executor(HttpRequestTool(client)).execute(
                "http_request", {"url": "https://example.com"}, context
            )

        assert result.is_error
        assert "connection refused" in result.error.message

    def test_requires_network_capability(self):
        assert "network" in HttpRequestTool().describe().capabilities


# =============================================================================
# Web Search Tests
# =============================================================================


class FakeSearch:
    def __init__(self):
        self.queries = []

    async def search(self, query, max_results):
        self.queries.append((query, max_results))
        return [SearchHit(title=f"Result {i}", url=f"https://r/{i}") for i in range(10)]


class TestWebSearchTool:
    """Tests for web_search."""

    @pytest.mark.asyncio
    async def test_not_configured(self, context):
        result = await _executor(WebSearchTool()).execute("web_search", {"query": "python"}, context)

        assert result.is_error
        assert result.error.message == 'Web search not configured. Query was: "python"'

    @pytest.mark.asyncio
    async def test_backend_results_limited(self, context):
        backend = FakeSearch()

        result = await _executor(WebSearchTool(backend)).execute(
            "web_search", {"query": "python", "max_results": 3}, context
        )

        assert result.ok
        assert len(result.payload) == 3
        assert result.payload[0] == {"title": "Result 0", "url": "https://r/0", "snippet": ""}
        assert backend.queries == [("python", 3)]


# =============================================================================
# Memory Tests
# =============================================================================


class TestMemoryTools:
    """Tests for memory_store and memory_search."""

    @pytest.fixture
    def memory(self):
        return InMemoryMemoryBackend()

    @pytest.fixture
    def memory_executor(self, memory):
        return _executor(MemoryStoreTool(memory), MemorySearchTool(memory))

    @pytest.mark.asyncio
    async def test_store_then_search(self, memory_executor, context):
        stored = await memory_executor.execute(
            "memory_store",
            {"content": "The deploy window is Tuesday", "memory_type": "fact", "tags": ["deploy"]},
            context,
        )
        found = await memory_executor.execute("memory_search", {"query": "deploy window"}, context)

        assert stored.ok
        assert stored.payload["shared"] is False
        assert found.metadata["result_count"] == 1
        assert found.payload[0]["content"] == "The deploy window is Tuesday"
        assert found.payload[0]["source"] == "agent:test-agent"

    @pytest.mark.asyncio
    async def test_private_memories_not_visible_to_other_agents(self, memory_executor, context):
        await memory_executor.execute(
            "memory_store", {"content": "secret plan", "memory_type": "fact"}, context
        )
        other = ToolExecutionContext.create(agent_id="other-agent")

        found = await memory_executor.execute("memory_search", {"query": "secret plan"}, other)

        assert found.ok
        assert found.payload == []

    @pytest.mark.asyncio
    async def test_shared_store_requires_capability(self, memory_executor, memory):
        limited = ToolExecutionContext.create(agent_id="a", capabilities=[])

        result = await memory_executor.execute(
            "memory_store",
            {"content": "team fact", "memory_type": "fact", "shared": True},
            limited,
        )

        assert result.error.kind is FailureKind.DENIED
        assert memory.entries == []

    @pytest.mark.asyncio
    async def test_shared_memory_visible_to_all(self, memory_executor, memory):
        writer = ToolExecutionContext.create(agent_id="a", capabilities=["memory:shared:write"])
        reader = ToolExecutionContext.create(agent_id="b")

        await memory_executor.execute(
            "memory_store",
            {"content": "office closes at six", "memory_type": "fact", "shared": True},
            writer,
        )
        found = await memory_executor.execute("memory_search", {"query": "office"}, reader)

        assert memory.entries[0].owner is None
        assert found.metadata["result_count"] == 1

    @pytest.mark.asyncio
    async def test_invalid_memory_type_rejected_before_store(self, memory_executor, memory, context):
        from agentworks.errors import InvalidToolInputError

        with pytest.raises(InvalidToolInputError):
            await memory_executor.execute(
                "memory_store", {"content": "x", "memory_type": "dream"}, context
            )

        assert memory.entries == []


# =============================================================================
# Collaboration Tests
# =============================================================================


class TestAgentMessageTool:
    """Tests for agent_message."""

    @pytest.mark.asyncio
    async def test_delivers_to_known_agent(self, context):
        bus = InMemoryMessageBus(["reviewer"])

        result = await _executor(AgentMessageTool(bus)).execute(
            "agent_message", {"to_agent": "reviewer", "message": "please review"}, context
        )

        assert result.ok
        assert result.payload["to_agent"] == "reviewer"
        message = bus.inboxes["reviewer"][0]
        assert message.from_agent == "test-agent"
        assert message.correlation_id == "trace-1"
        assert message.message_type == "request"

    @pytest.mark.asyncio
    async def test_unknown_agent_is_failure(self, context):
        result = await _executor(AgentMessageTool(InMemoryMessageBus())).execute(
            "agent_message", {"to_agent": "ghost", "message": "hello"}, context
        )

        assert result.is_error
        assert "ghost" in result.error.message


class TestHumanApprovalTool:
    """Tests for human_approval."""

    @pytest.mark.asyncio
    async def test_queues_request(self, context):
        queue = InMemoryApprovalQueue()

        result = await _executor(HumanApprovalTool(queue)).execute(
            "human_approval",
            {"action": "delete branch main", "reason": "cleanup"},
            context,
        )

        assert result.ok
        assert result.metadata["approval_pending"] is True
        request = queue.pending[result.metadata["approval_request_id"]]
        assert request.agent_id == "test-agent"
        assert request.action == "delete branch main"
        assert "Waiting for human decision" in result.payload
