"""
Long-term memory tools.

- memory_search: recall stored facts relevant to a query
- memory_store: remember a fact, decision or learning

Both talk to a MemoryBackend. InMemoryMemoryBackend ranks entries by term
overlap and is meant for tests and local development; production hosts
plug in a vector store behind the same protocol.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import uuid4

from agentworks.tools.base import FailureKind, Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.tools.context import ToolExecutionContext

MEMORY_TYPES = ("fact", "episode", "procedure", "semantic")


@dataclass(frozen=True, slots=True)
class MemoryEntry:
    id: str
    content: str
    memory_type: str
    importance: float
    tags: tuple[str, ...]
    source: str
    owner: str | None  # None = shared across agents
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class MemoryHit:
    entry: MemoryEntry
    similarity: float


@runtime_checkable
class MemoryBackend(Protocol):
    """Storage for agent memories."""

    async def store(
        self,
        content: str,
        *,
        memory_type: str,
        importance: float,
        tags: list[str],
        source: str,
        owner: str | None,
    ) -> str:
        """Store a memory and return its id. owner=None stores a shared memory."""
        ...

    async def search(
        self,
        query: str,
        *,
        owner: str,
        include_shared: bool,
        limit: int,
    ) -> list[MemoryHit]:
        """Return the best matches visible to `owner`, best first."""
        ...


_TOKEN = re.compile(r"\w+")


def _terms(text: str) -> set[str]:
    return {t.lower() for t in _TOKEN.findall(text)}


class InMemoryMemoryBackend:
    """
    In-memory memory backend for testing.

    Not suitable for production use.
    """

    def __init__(self) -> None:
        self.entries: list[MemoryEntry] = []

    async def store(
        self,
        content: str,
        *,
        memory_type: str,
        importance: float,
        tags: list[str],
        source: str,
        owner: str | None,
    ) -> str:
        entry = MemoryEntry(
            id=str(uuid4()),
            content=content,
            memory_type=memory_type,
            importance=importance,
            tags=tuple(tags),
            source=source,
            owner=owner,
        )
        self.entries.append(entry)
        return entry.id

    async def search(
        self,
        query: str,
        *,
        owner: str,
        include_shared: bool,
        limit: int,
    ) -> list[MemoryHit]:
        query_terms = _terms(query)
        if not query_terms:
            return []

        hits: list[MemoryHit] = []
        for entry in self.entries:
            visible = entry.owner == owner or (include_shared and entry.owner is None)
            if not visible:
                continue
            entry_terms = _terms(entry.content) | {t.lower() for t in entry.tags}
            overlap = len(query_terms & entry_terms)
            if overlap:
                hits.append(MemoryHit(entry=entry, similarity=overlap / len(query_terms)))

        hits.sort(key=lambda h: (h.similarity, h.entry.importance), reverse=True)
        return hits[:limit]


class MemorySearchTool(Tool):
    """Search long-term memory."""

    def __init__(self, backend: MemoryBackend):
        self._backend = backend
        self._definition = ToolDefinition(
            name="memory_search",
            description=(
                "Search your long-term memory for relevant information. Use this to "
                "recall facts, past conversations, and knowledge."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "What to search for in memory"},
                    "include_shared": {
                        "type": "boolean",
                        "description": "Include shared memories from other agents (default: true)",
                    },
                    "limit": {
                        "type": "integer",
                        "minimum": 1,
                        "description": "Maximum number of results (default: 5)",
                    },
                },
                "required": ["query"],
            },
            category="memory",
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        hits = await context.cancellation.guard(
            self._backend.search(
                arguments["query"],
                owner=context.agent_id,
                include_shared=arguments.get("include_shared", True),
                limit=arguments.get("limit", 5),
            )
        )

        if not hits:
            return ToolResult.success([], metadata={"result_count": 0})

        formatted = [
            {
                "rank": rank,
                "similarity": round(hit.similarity, 2),
                "type": hit.entry.memory_type,
                "content": hit.entry.content,
                "source": hit.entry.source,
                "tags": list(hit.entry.tags),
            }
            for rank, hit in enumerate(hits, start=1)
        ]
        return ToolResult.success(formatted, metadata={"result_count": len(hits)})


class MemoryStoreTool(Tool):
    """
    Store information in long-term memory.

    Writing a shared memory requires the `memory:shared:write` capability,
    checked here because it depends on the arguments.
    """

    SHARED_WRITE = "memory:shared:write"

    def __init__(self, backend: MemoryBackend):
        self._backend = backend
        self._definition = ToolDefinition(
            name="memory_store",
            description=(
                "Store important information in long-term memory for future recall. "
                "Use this to remember facts, decisions, and key learnings."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "content": {"type": "string", "description": "The information to remember"},
                    "memory_type": {
                        "type": "string",
                        "description": "Type of memory",
                        "enum": list(MEMORY_TYPES),
                    },
                    "importance": {
                        "type": "number",
                        "minimum": 0,
                        "maximum": 1,
                        "description": "How important this is (0.0-1.0, default: 0.5)",
                    },
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Tags to categorize this memory",
                    },
                    "shared": {
                        "type": "boolean",
                        "description": "Store as shared memory accessible to all agents (default: false)",
                    },
                },
                "required": ["content", "memory_type"],
            },
            category="memory",
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        shared = arguments.get("shared", False)
        memory_type = arguments["memory_type"]

        if shared and context.missing_capabilities([self.SHARED_WRITE]):
            return ToolResult.failure(
                f"Storing shared memory requires the '{self.SHARED_WRITE}' capability",
                kind=FailureKind.DENIED,
                metadata={"missing_capabilities": [self.SHARED_WRITE]},
            )

        memory_id = await context.cancellation.guard(
            self._backend.store(
                arguments["content"],
                memory_type=memory_type,
                importance=arguments.get("importance", 0.5),
                tags=list(arguments.get("tags", [])),
                source=f"agent:{context.agent_id}",
                owner=None if shared else context.agent_id,
            )
        )

        return ToolResult.success(
            {"memory_id": memory_id, "memory_type": memory_type, "shared": shared},
            metadata={"memory_id": memory_id},
        )
