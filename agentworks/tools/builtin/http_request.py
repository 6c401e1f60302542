"""
HTTP request tool.

Lets an agent call an arbitrary URL. The response body is truncated so a
large page cannot flood the agent's context.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from agentworks.tools.base import Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.tools.context import ToolExecutionContext

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 10_000


class HttpRequestTool(Tool):
    """
    Make an HTTP request (GET, POST, PUT, DELETE).

    Args:
        client: Optional shared httpx.AsyncClient (one is created per
            call otherwise)
        timeout: Request timeout in seconds
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self._client = client
        self._timeout = timeout
        self._definition = ToolDefinition(
            name="http_request",
            description="Make an HTTP request to a URL. Supports GET, POST, PUT, DELETE methods.",
            input_schema={
                "type": "object",
                "properties": {
                    "url": {"type": "string", "description": "The URL to request"},
                    "method": {
                        "type": "string",
                        "description": "HTTP method",
                        "enum": ["GET", "POST", "PUT", "DELETE"],
                    },
                    "headers": {
                        "type": "object",
                        "description": "Request headers as key-value pairs",
                        "additionalProperties": {"type": "string"},
                    },
                    "body": {"type": "string", "description": "Request body (for POST/PUT)"},
                },
                "required": ["url"],
            },
            category="web",
            capabilities=frozenset({"network"}),
            timeout=timeout,
        )

    def describe(self) -> ToolDefinition:
        return self._definition

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        url = arguments["url"]
        method = arguments.get("method", "GET")
        headers = arguments.get("headers") or {}
        body = arguments.get("body")

        try:
            response = await context.cancellation.guard(
                self._send(method, url, headers=headers, content=body)
            )
        except httpx.HTTPError as e:
            logger.info(f"[http_request] {method} {url} failed: {e}")
            return ToolResult.failure(f"HTTP request failed: {e}")

        text = response.text
        if len(text) > MAX_BODY_CHARS:
            text = text[:MAX_BODY_CHARS] + "\n...[truncated]"

        payload = {
            "status": response.status_code,
            "status_text": response.reason_phrase,
            "body": text,
        }
        metadata = {"status": response.status_code, "url": url}

        if response.is_success:
            return ToolResult.success(payload, metadata=metadata)
        return ToolResult.failure(
            f"{method} {url} returned {response.status_code}",
            metadata={**metadata, "response": payload},
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        content: str | None,
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, headers=headers, content=content)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, headers=headers, content=content)
