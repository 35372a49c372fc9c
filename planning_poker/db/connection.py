"""PostgreSQL connection pool shared by the web app and the job runner.

One pool per process. The web app opens it in its lifespan, the job runner
around each job; everything else borrows connections via ``get_connection``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from planning_poker.config import Settings, get_settings

logger = logging.getLogger(__name__)

POOL_NAME = "planning-poker"

_pool: Optional[AsyncConnectionPool] = None


def _build_pool(settings: Settings) -> AsyncConnectionPool:
    return AsyncConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.database_pool_min_size,
        max_size=max(settings.database_pool_max_size, settings.database_pool_min_size),
        timeout=settings.database_pool_timeout,
        name=POOL_NAME,
        # Connections idle in the pool may have been dropped by the server
        check=AsyncConnectionPool.check_connection,
        open=False,
    )


async def init_db(settings: Optional[Settings] = None) -> None:
    """Open the pool for ``settings`` (defaults to the process settings).

    Raises:
        RuntimeError: The pool is already open.
        psycopg_pool.PoolTimeout: The minimum connections could not be made.
    """
    global _pool
    if _pool is not None:
        raise RuntimeError("Database pool already initialized. Call close_db() first.")

    settings = settings or get_settings()
    pool = _build_pool(settings)
    await pool.open(wait=True, timeout=settings.database_pool_timeout)
    _pool = pool
    logger.info(
        "Database pool opened",
        extra={"pool": POOL_NAME, "min_size": pool.min_size, "max_size": pool.max_size},
    )


async def close_db() -> None:
    """Close the pool. A no-op when it was never opened."""
    global _pool
    if _pool is None:
        return
    pool, _pool = _pool, None
    await pool.close()
    logger.info("Database pool closed", extra={"pool": POOL_NAME})


def pool_status() -> dict[str, Any]:
    """Pool size and availability for the health endpoint."""
    if _pool is None:
        return {"initialized": False}
    stats = _pool.get_stats()
    return {
        "initialized": True,
        "size": stats.get("pool_size", 0),
        "available": stats.get("pool_available", 0),
        "waiting": stats.get("requests_waiting", 0),
    }


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """Borrow a connection; it goes back to the pool when the block exits.

    Raises:
        RuntimeError: ``init_db`` has not run.
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_db() at application startup.")

    async with _pool.connection() as conn:
        yield conn
