"""Vote ledger: one vote per (session, user), with upsert semantics."""

from dataclasses import dataclass
from typing import Optional

import structlog

from planning_poker.db.models import SESSIONS_TABLE, VOTES_TABLE, PokerSession, SessionVotes, Vote, utcnow
from planning_poker.db.store import Store
from planning_poker.errors import StoreError

logger = structlog.get_logger()


@dataclass(frozen=True)
class VoteCheck:
    """Result of a prior-vote lookup.

    ``ok`` is False when the lookup failed; ``has_voted`` is then False
    but means "unknown", not "no".
    """

    has_voted: bool
    ok: bool = True
    error: Optional[str] = None


class VoteLedger:
    """Stores votes and reads them back for reveal."""

    def __init__(self, store: Store):
        self._store = store

    async def save_vote(self, session_id: str, user_id: str, vote: int, username: Optional[str]) -> None:
        """Record ``vote``, overwriting any earlier vote by the same user.

        The value is not checked against the vote scale here; the
        interactive payload parser rejects values the buttons never offer.

        Raises:
            StoreError: If the upsert fails.
        """
        now = utcnow()
        await self._store.upsert(
            VOTES_TABLE,
            {
                "session_id": session_id,
                "user_id": user_id,
                "vote": vote,
                "username": username,
                "created_at": now,
                "updated_at": now,
            },
            conflict_keys=("session_id", "user_id"),
            update_columns=("vote", "username", "updated_at"),
        )
        logger.info("vote_saved", session_id=session_id, user_id=user_id, vote=vote)

    async def has_user_voted(self, session_id: str, user_id: str) -> VoteCheck:
        """Check whether ``user_id`` already voted in ``session_id``. Never raises."""
        try:
            rows = await self._store.select(
                VOTES_TABLE,
                {"session_id": session_id, "user_id": user_id},
                columns=("user_id",),
                limit=1,
            )
        except StoreError as e:
            logger.error("vote_check_failed", session_id=session_id, user_id=user_id, error=str(e))
            return VoteCheck(has_voted=False, ok=False, error=str(e))
        return VoteCheck(has_voted=bool(rows))

    async def get_votes_for_session(self, session_id: str) -> SessionVotes:
        """Fetch the session's votes, then the session itself.

        Raises:
            StoreError: If either fetch fails.
        """
        vote_rows = await self._store.select(VOTES_TABLE, {"session_id": session_id})
        session_rows = await self._store.select(SESSIONS_TABLE, {"id": session_id}, limit=1)

        votes = [Vote.model_validate(row) for row in vote_rows]
        if not session_rows:
            logger.warning("votes_without_session", session_id=session_id, vote_count=len(votes))
            return SessionVotes(session=None, votes=votes)

        return SessionVotes(session=PokerSession.model_validate(session_rows[0]), votes=votes)

    async def count_votes(self, session_id: str) -> int:
        """Number of distinct voters in a session.

        Raises:
            StoreError: If the select fails.
        """
        rows = await self._store.select(VOTES_TABLE, {"session_id": session_id}, columns=("user_id",))
        return len(rows)
