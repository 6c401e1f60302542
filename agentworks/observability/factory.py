"""
Observability backend selection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from .base import RunObservation
from .langfuse import LangfuseObservability
from .logging import StructuredLogger, child_logger
from .noop import NoopObservability

if TYPE_CHECKING:
    from agentworks.config.schemas import AppSettings


def create_observability(
    settings: AppSettings,
    *,
    logger: StructuredLogger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunObservation:
    """
    Build the backend selected by OBSERVABILITY_ENGINE.

    Anything other than "langfuse" yields the no-op backend, as does
    "langfuse" without both keys (with a warning).
    """
    if settings.observability_engine.lower() != "langfuse":
        return NoopObservability(logger=logger)

    public_key = settings.langfuse_public_key.get_secret_value() if settings.langfuse_public_key else ""
    secret_key = settings.langfuse_secret_key.get_secret_value() if settings.langfuse_secret_key else ""
    if not public_key or not secret_key:
        child_logger(logger, "agentworks.observability.factory", module="observability-factory").warning(
            "OBSERVABILITY_ENGINE=langfuse but LANGFUSE_PUBLIC_KEY or LANGFUSE_SECRET_KEY "
            "is missing. Falling back to no-op."
        )
        return NoopObservability(logger=logger)

    return LangfuseObservability(
        public_key=public_key,
        secret_key=secret_key,
        base_url=settings.langfuse_base_url,
        flush_at=settings.langfuse_flush_at,
        flush_interval=settings.langfuse_flush_interval,
        transport=transport,
        logger=logger,
    )
