"""
Error taxonomy for Agentworks.

Every failure surfaced by the core is a subclass of AgentworksError:

- ToolError: tool lookup, registration, validation and execution faults
- IntegrationError: provider configuration, HTTP and webhook faults
- CredentialError: missing or unrefreshable credential material
- ObservationStateError: misuse of the run observation contract

Propagation Policy:
    Lookup and validation errors (ToolNotFoundError, DuplicateToolError,
    InvalidToolInputError, IntegrationNotConfiguredError, ...) indicate
    caller or configuration mistakes and are never retried.

    CredentialRefreshError is retryable; the store keeps the last known
    credential so a retry can still use it.

    WebhookVerificationError is terminal for the payload that caused it.
"""

from __future__ import annotations

from typing import Any


class AgentworksError(Exception):
    """Base exception for all Agentworks errors."""

    retryable: bool = False


# =============================================================================
# Tools
# =============================================================================


class ToolError(AgentworksError):
    """Base exception for tool errors. Always names the tool."""

    def __init__(self, message: str, tool_name: str):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Raised when a tool name is not registered."""

    def __init__(self, tool_name: str, available: list[str] | None = None):
        self.available = available or []
        super().__init__(
            f"Tool '{tool_name}' not found. Available tools: {self.available}",
            tool_name,
        )


class DuplicateToolError(ToolError):
    """Raised when a tool name is registered twice."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' already registered", tool_name)


class InvalidToolDefinitionError(ToolError):
    """Raised when a tool definition is malformed at registration time."""


class InvalidToolInputError(ToolError):
    """Raised when arguments do not match the tool's input schema."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        *,
        validation_errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(f"Invalid input for tool '{tool_name}': {message}", tool_name)
        self.validation_errors = validation_errors or []


class ToolExecutionError(ToolError):
    """Wraps an unexpected fault raised inside a tool."""

    def __init__(self, tool_name: str, cause: BaseException):
        super().__init__(
            f"Tool '{tool_name}' failed: {type(cause).__name__}: {cause}",
            tool_name,
        )
        self.cause = cause


# =============================================================================
# Integrations
# =============================================================================


class IntegrationError(AgentworksError):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.integration = integration
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [f"[{self.integration}] {self.args[0]}"]
        if self.status_code:
            parts.append(f"(status={self.status_code})")
        return " ".join(parts)


class IntegrationNotConfiguredError(IntegrationError):
    """Raised when no integration is registered for a provider."""

    def __init__(self, provider: str):
        super().__init__("Integration not configured", provider)


class DuplicateIntegrationError(IntegrationError):
    """Raised when a provider is registered twice."""

    def __init__(self, provider: str):
        super().__init__("Integration already registered", provider)


class WebhookVerificationError(IntegrationError):
    """Raised when an inbound webhook fails authenticity checks."""

    def __init__(self, provider: str, reason: str = "signature mismatch"):
        super().__init__(f"Webhook verification failed: {reason}", provider)
        self.reason = reason


class AuthenticationError(IntegrationError):
    """Raised when authentication fails (401/403)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class RateLimitError(IntegrationError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, integration, retryable=True, **kwargs)
        self.retry_after = retry_after


class ResourceNotFoundError(IntegrationError):
    """Raised when a remote resource is not found (404)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class RequestValidationError(IntegrationError):
    """Raised when the provider rejects a request (400/422)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


# =============================================================================
# Credentials
# =============================================================================


class CredentialError(AgentworksError):
    """Base exception for credential errors."""

    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class CredentialNotFoundError(CredentialError):
    """Raised when no credential is configured for a provider."""

    def __init__(self, provider: str):
        super().__init__(
            f"No credentials found for '{provider}'. Configure via credential store.",
            provider,
        )


class CredentialRefreshError(CredentialError):
    """
    Raised when refreshing an OAuth credential fails.

    Stored state is untouched, so the caller may retry.
    """

    retryable = True

    def __init__(self, provider: str, reason: str):
        super().__init__(f"Credential refresh failed for '{provider}': {reason}", provider)
        self.reason = reason


# =============================================================================
# Observability
# =============================================================================


class ObservationStateError(AgentworksError):
    """
    Raised when the run observation contract is violated.

    Unknown handles and calls against runs that are not running are
    programmer errors, not recoverable runtime conditions.
    """


__all__ = [
    "AgentworksError",
    # Tools
    "ToolError",
    "ToolNotFoundError",
    "DuplicateToolError",
    "InvalidToolDefinitionError",
    "InvalidToolInputError",
    "ToolExecutionError",
    # Integrations
    "IntegrationError",
    "IntegrationNotConfiguredError",
    "DuplicateIntegrationError",
    "WebhookVerificationError",
    "AuthenticationError",
    "RateLimitError",
    "ResourceNotFoundError",
    "RequestValidationError",
    # Credentials
    "CredentialError",
    "CredentialNotFoundError",
    "CredentialRefreshError",
    # Observability
    "ObservationStateError",
]
