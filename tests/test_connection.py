"""Tests for the connection pool lifecycle."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from planning_poker.db import connection
from planning_poker.db.connection import POOL_NAME, close_db, get_connection, init_db, pool_status


@pytest.fixture
def pool_cls():
    """Replaces AsyncConnectionPool; the pool never touches a database."""
    pool = MagicMock()
    pool.open = AsyncMock()
    pool.close = AsyncMock()
    pool.min_size = 1
    pool.max_size = 10
    pool.get_stats.return_value = {"pool_size": 2, "pool_available": 1, "requests_waiting": 0}
    with patch("planning_poker.db.connection.AsyncConnectionPool") as cls:
        cls.return_value = pool
        yield cls
    connection._pool = None


class TestPoolLifecycle:
    @pytest.mark.asyncio
    async def test_opens_with_settings(self, pool_cls, settings):
        await init_db(settings)

        kwargs = pool_cls.call_args.kwargs
        assert kwargs["conninfo"] == settings.database_url
        assert kwargs["min_size"] == settings.database_pool_min_size
        assert kwargs["max_size"] == settings.database_pool_max_size
        assert kwargs["timeout"] == settings.database_pool_timeout
        assert kwargs["name"] == POOL_NAME
        assert kwargs["open"] is False
        pool_cls.return_value.open.assert_awaited_once_with(wait=True, timeout=settings.database_pool_timeout)

    @pytest.mark.asyncio
    async def test_max_size_never_below_min(self, pool_cls, settings):
        await init_db(settings.model_copy(update={"database_pool_min_size": 5, "database_pool_max_size": 2}))
        assert pool_cls.call_args.kwargs["max_size"] == 5

    @pytest.mark.asyncio
    async def test_double_init_rejected(self, pool_cls, settings):
        await init_db(settings)
        with pytest.raises(RuntimeError):
            await init_db(settings)

    @pytest.mark.asyncio
    async def test_failed_open_leaves_pool_unset(self, pool_cls, settings):
        """A pool that cannot open is not kept, so a retry can call init_db again."""
        pool_cls.return_value.open.side_effect = TimeoutError("no database")

        with pytest.raises(TimeoutError):
            await init_db(settings)
        assert pool_status() == {"initialized": False}

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, pool_cls, settings):
        await init_db(settings)
        await close_db()
        await close_db()

        pool_cls.return_value.close.assert_awaited_once()
        assert pool_status() == {"initialized": False}


class TestPoolStatus:
    def test_not_initialized(self):
        assert pool_status() == {"initialized": False}

    @pytest.mark.asyncio
    async def test_reports_stats(self, pool_cls, settings):
        await init_db(settings)
        assert pool_status() == {"initialized": True, "size": 2, "available": 1, "waiting": 0}


class TestGetConnection:
    @pytest.mark.asyncio
    async def test_requires_init(self):
        with pytest.raises(RuntimeError):
            async with get_connection():
                pass
