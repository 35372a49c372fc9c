"""Session registry: creates sessions and resolves the latest one per channel."""

import secrets
import time
from typing import Optional

import structlog

from planning_poker.db.models import SESSIONS_TABLE, PokerSession, utcnow
from planning_poker.db.store import Store
from planning_poker.errors import StoreError
from planning_poker.services.session_cache import LatestSessionCache

logger = structlog.get_logger()


def new_session_id() -> str:
    """Generate a time-ordered session id: ``sess-<epoch-ms>-<8 hex>``."""
    return f"sess-{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"


class SessionRegistry:
    """Creates planning poker sessions and finds the active one for a channel.

    Only the newest session in a channel is addressable by channel. The
    cache avoids the ordered channel query on the hot path; the store
    stays the source of truth.
    """

    def __init__(self, store: Store, cache: Optional[LatestSessionCache] = None):
        self._store = store
        self.cache = cache if cache is not None else LatestSessionCache()

    async def create_session(self, channel: str, issue: str) -> PokerSession:
        """Persist a new session and make it the channel's latest.

        Raises:
            StoreError: If the insert fails. The cache is left untouched.
        """
        session = PokerSession(id=new_session_id(), channel=channel, issue=issue, created_at=utcnow())
        await self._store.insert(SESSIONS_TABLE, session.model_dump())

        self.cache.set(channel, session.id)
        logger.info("session_created", session_id=session.id, channel=channel)
        return session

    async def get_session(self, session_id: str) -> Optional[PokerSession]:
        """Fetch a session by id, or None if it doesn't exist."""
        rows = await self._store.select(SESSIONS_TABLE, {"id": session_id}, limit=1)
        return PokerSession.model_validate(rows[0]) if rows else None

    async def get_latest_session(self, channel: str) -> Optional[PokerSession]:
        """Resolve the newest session for ``channel``.

        Returns:
            The session, or None when the channel never had one.

        Raises:
            StoreError: If the channel query fails.
        """
        cached_id = self.cache.get(channel)
        if cached_id:
            try:
                session = await self.get_session(cached_id)
            except StoreError as e:
                logger.warning("cached_session_lookup_failed", channel=channel, session_id=cached_id, error=str(e))
                session = None

            if session is not None:
                return session

            logger.info("stale_session_cache", channel=channel, session_id=cached_id)
            self.cache.discard(channel, cached_id)

        rows = await self._store.select_ordered(
            SESSIONS_TABLE,
            {"channel": channel},
            order_field="created_at",
            desc=True,
            limit=1,
        )
        if not rows:
            return None

        session = PokerSession.model_validate(rows[0])
        self.cache.set(channel, session.id)
        return session
