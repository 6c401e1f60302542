"""Web search tool with a pluggable search backend."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from agentworks.tools.base import Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.tools.context import ToolExecutionContext


@dataclass(frozen=True, slots=True)
class SearchHit:
    title: str
    url: str
    snippet: str = ""


@runtime_checkable
class SearchBackend(Protocol):
    """Anything that can answer a web query (SerpAPI, Tavily, Brave, ...)."""

    async def search(self, query: str, max_results: int) -> list[SearchHit]: ...


class WebSearchTool(Tool):
    """
    Search the web for current information.

    Without a backend the tool reports that search is not configured,
    so hosts can register it unconditionally and wire a provider later.
    """

    def __init__(self, backend: SearchBackend | None = None):
        self._backend = backend
        self._definition = ToolDefinition(
            name="web_search",
            description=(
                "Search the web for current information. Returns relevant search "
                "results with titles, URLs, and snippets."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The search query"},
                    "max_results": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": 20,
                        "description": "Maximum number of results to return (default: 5)",
                    },
                },
                "required": ["query"],
            },
            category="web",
            capabilities=frozenset({"network"}),
            timeout=15.0,
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        query = arguments["query"]
        max_results = arguments.get("max_results", 5)

        if self._backend is None:
            return ToolResult.failure(
                f'Web search not configured. Query was: "{query}"',
                metadata={"query": query},
            )

        hits = await context.cancellation.guard(self._backend.search(query, max_results))
        return ToolResult.success(
            [asdict(hit) for hit in hits[:max_results]],
            metadata={"query": query, "result_count": len(hits[:max_results])},
        )
