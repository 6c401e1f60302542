"""
Built-in tools shipped with Agentworks.

    web_search      - pluggable web search
    http_request    - outbound HTTP calls
    memory_search   - recall from long-term memory
    memory_store    - write to long-term memory
    agent_message   - message another agent
    human_approval  - queue a human approval request
"""

from .http_request import HttpRequestTool
from .memory import (
    InMemoryMemoryBackend,
    MemoryBackend,
    MemoryEntry,
    MemoryHit,
    MemorySearchTool,
    MemoryStoreTool,
)
from .messaging import (
    AgentMessage,
    AgentMessageTool,
    ApprovalGateway,
    ApprovalRequest,
    HumanApprovalTool,
    InMemoryApprovalQueue,
    InMemoryMessageBus,
    MessageBus,
)
from .web_search import SearchBackend, SearchHit, WebSearchTool

__all__ = [
    "HttpRequestTool",
    "WebSearchTool",
    "SearchBackend",
    "SearchHit",
    "MemorySearchTool",
    "MemoryStoreTool",
    "MemoryBackend",
    "MemoryEntry",
    "MemoryHit",
    "InMemoryMemoryBackend",
    "AgentMessageTool",
    "AgentMessage",
    "MessageBus",
    "InMemoryMessageBus",
    "HumanApprovalTool",
    "ApprovalGateway",
    "ApprovalRequest",
    "InMemoryApprovalQueue",
]
