"""
Integration Registry.

Maps a provider identifier to its live integration instance.

The registry owns the integrations registered with it (close_all() releases
their HTTP clients) but never touches credentials itself; each integration
holds a reference to the shared CredentialStore.

Usage:
    registry = IntegrationRegistry()
    registry.register(GitHubIntegration(github_config, credentials))

    github = registry.get("github")
    tools = registry.all_tools()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from agentworks.errors import DuplicateIntegrationError, IntegrationNotConfiguredError

if TYPE_CHECKING:
    from agentworks.tools.base import Tool

    from .base import Integration

logger = logging.getLogger(__name__)


class IntegrationView:
    """Live, ordered, restartable view over registered integrations."""

    def __init__(self, integrations: dict[str, Integration]):
        self._integrations = integrations

    def __iter__(self) -> Iterator[Integration]:
        return iter(self._integrations.values())

    def __len__(self) -> int:
        return len(self._integrations)

    def __repr__(self) -> str:
        return f"<IntegrationView {list(self._integrations)}>"


class IntegrationRegistry:
    """Registry of configured integrations, keyed by provider."""

    def __init__(self) -> None:
        self._integrations: dict[str, Integration] = {}

    def register(self, integration: Integration, provider: str | None = None) -> None:
        """
        Register an integration.

        Args:
            integration: Integration instance
            provider: Key to register under; defaults to integration.provider

        Raises:
            DuplicateIntegrationError: If the provider is already registered
        """
        key = provider or integration.provider
        if not key:
            raise ValueError(f"Integration must have a provider: {integration!r}")
        if key in self._integrations:
            raise DuplicateIntegrationError(key)

        self._integrations[key] = integration
        logger.info(f"[integration_registry] Registered integration: {key}")

    def get(self, provider: str) -> Integration:
        """
        Get an integration by provider.

        Raises:
            IntegrationNotConfiguredError: If nothing is registered for the provider
        """
        integration = self._integrations.get(provider)
        if integration is None:
            raise IntegrationNotConfiguredError(provider)
        return integration

    def has(self, provider: str) -> bool:
        return provider in self._integrations

    def list_integrations(self) -> IntegrationView:
        """Registered integrations in registration order."""
        return IntegrationView(self._integrations)

    def list_providers(self) -> list[str]:
        return list(self._integrations)

    def all_tools(self) -> list[Tool]:
        """Tools contributed by every enabled integration."""
        tools: list[Tool] = []
        for integration in self._integrations.values():
            if integration.config.enabled:
                tools.extend(integration.tools())
        return tools

    async def close_all(self) -> None:
        """Close every integration's HTTP client."""
        for provider, integration in self._integrations.items():
            await integration.close()
            logger.debug(f"[integration_registry] Closed integration: {provider}")

    def __len__(self) -> int:
        return len(self._integrations)

    def __contains__(self, provider: str) -> bool:
        return provider in self._integrations

    def __repr__(self) -> str:
        return f"IntegrationRegistry(providers={list(self._integrations)})"
