"""
Slack Planning Poker - main entry point for the FastAPI application.
"""

import structlog
import uvicorn

from planning_poker.bot import create_fastapi_app
from planning_poker.config import get_settings
from planning_poker.log import configure_logging

settings = get_settings()

# Configure structured logging
configure_logging(settings.log_level)

logger = structlog.get_logger()

# Create FastAPI application
app = create_fastapi_app()


if __name__ == "__main__":
    logger.info("planning_poker_starting", environment=settings.environment, port=settings.port)
    uvicorn.run(
        "planning_poker.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
