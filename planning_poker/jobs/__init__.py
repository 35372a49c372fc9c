"""Scheduled jobs, run out of process by ``python -m planning_poker.jobs``."""

from typing import Awaitable, Callable, Optional

import structlog

from planning_poker.config import Settings
from planning_poker.db import PostgresStore, close_db, init_db
from planning_poker.db.store import Store
from planning_poker.services.retention import RetentionSweeper

logger = structlog.get_logger()

DEFAULT_JOB = "data_retention"


async def data_retention(store: Store, settings: Settings, days: Optional[int] = None) -> bool:
    """Delete sessions and votes older than the retention window."""
    result = await RetentionSweeper(store).cleanup_old_sessions(days or settings.retention_days)
    logger.info(
        "data_retention_result",
        success=result.success,
        deleted_sessions=result.deleted_sessions,
        deleted_votes=result.deleted_votes,
        error=result.error,
    )
    return result.success


JOBS: dict[str, Callable[..., Awaitable[bool]]] = {
    DEFAULT_JOB: data_retention,
}


async def run_job(name: str, settings: Settings, days: Optional[int] = None) -> bool:
    """Run job ``name`` against PostgreSQL, opening and closing the pool around it.

    Returns:
        True on success. Unknown names and failures return False.
    """
    job = JOBS.get(name)
    if job is None:
        logger.error("unknown_job", job=name, available=sorted(JOBS))
        return False

    logger.info("job_started", job=name)
    await init_db(settings)
    try:
        ok = await job(PostgresStore(), settings, days=days)
    except Exception as e:
        logger.error("job_failed", job=name, error=str(e), exc_info=True)
        ok = False
    finally:
        await close_db()

    logger.info("job_finished", job=name, success=ok)
    return ok
