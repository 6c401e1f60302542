"""
Environment-backed settings loader.
"""

from __future__ import annotations

import os
from functools import lru_cache

from .schemas import AppSettings


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern; call get_settings.cache_clear()
    after changing the environment (tests).
    """
    return AppSettings(
        # Service
        service_name=os.getenv("AGENTWORKS_SERVICE_NAME", "agentworks"),
        environment=os.getenv("AGENTWORKS_ENVIRONMENT", "development"),
        debug=_flag("AGENTWORKS_DEBUG"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        # Observability
        observability_engine=os.getenv("OBSERVABILITY_ENGINE", "none").lower(),
        langfuse_public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
        langfuse_secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
        langfuse_base_url=os.getenv("LANGFUSE_BASE_URL", "https://cloud.langfuse.com"),
        langfuse_flush_at=int(os.getenv("LANGFUSE_FLUSH_AT", "15")),
        langfuse_flush_interval_ms=int(os.getenv("LANGFUSE_FLUSH_INTERVAL_MS", "10000")),
        # GitHub
        github_token=os.getenv("GITHUB_TOKEN"),
        github_webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET"),
        # Google Calendar
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        google_webhook_token=os.getenv("GOOGLE_WEBHOOK_TOKEN"),
    )
