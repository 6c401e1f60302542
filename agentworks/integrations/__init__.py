"""
Agentworks Integrations.

Provider-specific adapters to external services, the credential store
they authenticate through, and inbound webhook routing.

Usage:
    credentials = CredentialStore()
    await credentials.set("github", StaticCredential(token, CredentialType.PAT))

    integrations = IntegrationRegistry()
    integrations.register(GitHubIntegration(GitHubIntegration.default_config(), credentials))

    webhooks = WebhookHandler(integrations)
    outcome = await webhooks.handle(payload)
"""

from .base import Integration, IntegrationConfig
from .credentials import (
    Credential,
    CredentialBackend,
    CredentialKey,
    CredentialStore,
    CredentialType,
    InMemoryCredentialBackend,
    OAuthTokens,
    StaticCredential,
)
from .registry import IntegrationRegistry, IntegrationView
from .webhooks import WebhookHandler, WebhookOutcome, WebhookPayload

__all__ = [
    # Base
    "Integration",
    "IntegrationConfig",
    # Credentials
    "Credential",
    "CredentialBackend",
    "CredentialKey",
    "CredentialStore",
    "CredentialType",
    "InMemoryCredentialBackend",
    "OAuthTokens",
    "StaticCredential",
    # Registry
    "IntegrationRegistry",
    "IntegrationView",
    # Webhooks
    "WebhookHandler",
    "WebhookOutcome",
    "WebhookPayload",
]
