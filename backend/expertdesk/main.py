"""
ExpertDesk AI - FastAPI application.

One process serves one conversation: the orchestrator is built in the
lifespan, kept on app.state, and torn down (timers cancelled) on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .api import chat_router, sessions_router
from .agents.orchestrator import ConversationOrchestrator
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def create_app(config: Any = settings) -> FastAPI:
    """Build the application for the given Settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config)
        app.state.orchestrator = ConversationOrchestrator.from_settings(config)
        logger.info(
            f"Starting {config.app_name} v{config.app_version} "
            f"(llm_provider={config.llm_provider}, api_key_type={config.api_key_type}, "
            f"debug={config.debug})"
        )
        yield
        app.state.orchestrator.shutdown()
        logger.info(f"Shutting down {config.app_name}")

    application = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Support chat that routes users from a triage guide to domain specialists",
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added after CORS so it wraps the CORS layer
    if config.log_api_requests:
        application.add_middleware(RequestLoggingMiddleware)

    application.include_router(chat_router)
    application.include_router(sessions_router)

    @application.get("/")
    async def root():
        """Service banner."""
        return {
            "app": config.app_name,
            "version": config.app_version,
            "status": "running",
            "message": "Welcome to ExpertDesk AI - GitHub Expert Support"
        }

    @application.get("/health")
    async def health_check():
        """Liveness probe; also reports which LLM provider is configured."""
        return {
            "status": "healthy",
            "llm_provider": config.llm_provider,
            "llm_configured": bool(config.llm_api_key),
            "version": config.app_version
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "expertdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
