"""
Tool Registry.

The registry manages available tools for agents:
- Registration with validation
- Lookup by name
- Schema export for LLM

Design Principle:
    Tools are registered once at startup and immutable during execution.
    The registry offers no guard against `register` racing with active
    lookups; registration belongs to the quiescent startup phase.

Usage:
    registry = ToolRegistry()
    registry.register(HttpRequestTool())
    registry.register(MemorySearchTool(memory))

    # Get tool by name
    tool = registry.get("http_request")

    # Definitions in registration order
    for definition in registry.list_definitions():
        print(definition.name)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from jsonschema import SchemaError
from jsonschema.validators import validator_for

from agentworks.errors import (
    DuplicateToolError,
    InvalidToolDefinitionError,
    ToolNotFoundError,
)

if TYPE_CHECKING:
    from .base import Tool, ToolDefinition

logger = logging.getLogger(__name__)


class DefinitionView:
    """
    Live, ordered view over registered tool definitions.

    Every iteration starts from the first registration, so the view can be
    consumed any number of times.
    """

    def __init__(self, definitions: dict[str, ToolDefinition]):
        self._definitions = definitions

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"<DefinitionView {list(self._definitions)}>"


class ToolRegistry:
    """
    Registry of available tools for agents.

    Owns the name -> (definition, tool) bindings for its lifetime.

    Example:
        registry = ToolRegistry()
        registry.register(EchoTool())

        tool = registry.get("echo")
        definition = registry.definition("echo")
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._definitions: dict[str, ToolDefinition] = {}

    def register(self, tool: Tool, definition: ToolDefinition | None = None) -> None:
        """
        Register a tool.

        Args:
            tool: Tool instance to register
            definition: Definition to bind; defaults to tool.describe()

        Raises:
            DuplicateToolError: If the name is already registered
            InvalidToolDefinitionError: If the definition is malformed
        """
        definition = definition or tool.describe()

        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)

        self._validate_definition(definition)

        self._tools[definition.name] = tool
        self._definitions[definition.name] = definition
        logger.info(f"[tool_registry] Registered tool: {definition.name}")

    def register_many(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        """
        Unregister a tool by name.

        Returns:
            True if tool was unregistered, False if not found
        """
        if name in self._tools:
            del self._tools[name]
            del self._definitions[name]
            logger.info(f"[tool_registry] Unregistered tool: {name}")
            return True
        return False

    def get(self, name: str) -> Tool:
        """
        Get a tool by name.

        Raises:
            ToolNotFoundError: If no tool is registered under `name`
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, available=list(self._tools))
        return tool

    def definition(self, name: str) -> ToolDefinition:
        """
        Get the definition bound to `name`.

        Raises:
            ToolNotFoundError: If no tool is registered under `name`
        """
        definition = self._definitions.get(name)
        if definition is None:
            raise ToolNotFoundError(name, available=list(self._definitions))
        return definition

    def list_definitions(self) -> DefinitionView:
        """Registered definitions in registration order."""
        return DefinitionView(self._definitions)

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def by_category(self, category: str) -> list[Tool]:
        return [
            self._tools[name]
            for name, definition in self._definitions.items()
            if definition.category == category
        ]

    def for_agent(self, names: Iterable[str]) -> list[Tool]:
        """Tools for an agent's allow-list. Unknown names are skipped."""
        return [self._tools[name] for name in names if name in self._tools]

    def to_llm_schemas(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """
        Get tool schemas for LLM tool use.

        Args:
            names: Restrict to these tool names (unknown names skipped)

        Returns:
            List of tool schemas compatible with Claude/OpenAI
        """
        selected = self._definitions if names is None else {
            name: self._definitions[name] for name in names if name in self._definitions
        }
        return [definition.to_llm_schema() for definition in selected.values()]

    def _validate_definition(self, definition: ToolDefinition) -> None:
        """
        Validate definition has required properties.

        Raises:
            InvalidToolDefinitionError: If definition is invalid
        """
        name = definition.name
        if not name or not isinstance(name, str):
            raise InvalidToolDefinitionError(f"Tool must have a valid name: {definition}", str(name))

        if not definition.description or not isinstance(definition.description, str):
            raise InvalidToolDefinitionError(f"Tool '{name}' must have a description", name)

        if not isinstance(definition.input_schema, Mapping):
            raise InvalidToolDefinitionError(f"Tool '{name}' input_schema must be a mapping", name)

        schema = definition.schema_dict()
        if schema.get("type") != "object":
            raise InvalidToolDefinitionError(
                f"Tool '{name}' input_schema must have type: 'object'", name
            )

        try:
            validator_for(schema).check_schema(schema)
        except SchemaError as e:
            raise InvalidToolDefinitionError(
                f"Tool '{name}' input_schema is not valid JSON Schema: {e.message}", name
            ) from e

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={list(self._tools.keys())}>"
