"""
Agentworks - agent tool execution and integration service

FastAPI application entry point.

Run:
    uvicorn agentworks.app.main:create_app --factory
    python -m agentworks.app.main
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI

from agentworks import __version__
from agentworks.app.api import webhooks_router
from agentworks.app.dependencies import Runtime, build_runtime, get_runtime, shutdown_runtime
from agentworks.config import AppSettings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the FastAPI application for `settings` (environment by default)."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Agentworks runtime...")
        try:
            app.state.runtime = await build_runtime(settings)
        except Exception as e:
            logger.error(f"Failed to initialize runtime: {e}", exc_info=True)
            raise

        yield

        logger.info("Shutting down Agentworks runtime...")
        try:
            await shutdown_runtime(app.state.runtime)
            logger.info("Agentworks runtime shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)

    app = FastAPI(
        title="Agentworks",
        description="Tool execution, provider integrations and run observability for autonomous agents",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.include_router(webhooks_router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    async def health_check(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": settings.service_name,
            "version": __version__,
            "tools": len(runtime.tools),
            "integrations": runtime.integrations.list_providers(),
            "observability": type(runtime.observability).__name__,
        }

    @app.get("/api/v1/tools", tags=["tools"])
    async def list_tools(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
        """Registered tool definitions in registration order."""
        return {"tools": [definition.to_dict() for definition in runtime.tools.list_definitions()]}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agentworks.app.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
