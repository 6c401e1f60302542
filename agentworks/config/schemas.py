"""
Settings schema for Agentworks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr


class AppSettings(BaseModel):
    """
    Application settings model.

    Security:
        API keys, tokens and webhook secrets use SecretStr to prevent
        accidental logging. Access values with `.get_secret_value()`.
    """

    # Service identity
    service_name: str = "agentworks"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Observability
    observability_engine: str = "none"  # "none" | "langfuse"
    langfuse_public_key: SecretStr | None = None
    langfuse_secret_key: SecretStr | None = None
    langfuse_base_url: str = "https://cloud.langfuse.com"
    langfuse_flush_at: int = Field(default=15, ge=1)
    langfuse_flush_interval_ms: int = Field(default=10_000, ge=0)

    # GitHub
    github_token: SecretStr | None = None
    github_webhook_secret: SecretStr | None = None

    # Google Calendar
    google_client_id: str = ""
    google_client_secret: SecretStr = Field(default=SecretStr(""), description="OAuth client secret")
    google_webhook_token: SecretStr | None = None

    @property
    def langfuse_flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.langfuse_flush_interval_ms / 1000


def secret_or_none(value: SecretStr | None) -> str | None:
    """Plain secret value, with empty strings treated as unset."""
    if value is None:
        return None
    return value.get_secret_value() or None
