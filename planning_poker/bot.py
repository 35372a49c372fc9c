"""
Planning Poker Bot - FastAPI application factory.

Wires the Slack, OAuth and admin routers over a shared service container.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from planning_poker import __version__
from planning_poker.admin.routes import router as admin_router
from planning_poker.config import get_settings
from planning_poker.container import PokerServices, build_services
from planning_poker.db import PostgresStore, close_db, init_db, pool_status
from planning_poker.slack.routes import router as slack_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """
    FastAPI lifespan context manager.

    Opens the database pool and builds services on startup, unless services
    were injected when the app was created. Closes the pool on shutdown.
    """
    owns_database = getattr(fastapi_app.state, "services", None) is None

    if owns_database:
        logger.info("application_starting")
        settings = get_settings()
        await init_db(settings)
        store = PostgresStore()
        await store.create_tables()
        fastapi_app.state.services = build_services(settings, store)
        logger.info("services_initialized", environment=settings.environment)

    try:
        yield
    finally:
        if owns_database:
            logger.info("application_shutting_down")
            await close_db()


def create_fastapi_app(services: Optional[PokerServices] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Prebuilt service container. When omitted, the lifespan
            builds one over PostgreSQL.

    Returns:
        Configured FastAPI app instance.
    """
    fastapi_app = FastAPI(
        title="Slack Planning Poker",
        description="Slack bot for planning poker estimation sessions",
        version=__version__,
        lifespan=lifespan,
    )
    fastapi_app.state.services = services

    fastapi_app.include_router(slack_router)
    fastapi_app.include_router(admin_router)

    @fastapi_app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "Slack Planning Poker server is running!"

    @fastapi_app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
            "database": pool_status(),
        }

    return fastapi_app
