"""Data retention: time-bounded bulk delete of old sessions and their votes."""

from datetime import timedelta

import structlog

from planning_poker.db.models import SESSIONS_TABLE, VOTES_TABLE, CleanupResult, utcnow
from planning_poker.db.store import LessThan, Store
from planning_poker.errors import StoreError, ValidationError

logger = structlog.get_logger()


class RetentionSweeper:
    """Deletes sessions older than a cutoff together with their votes."""

    def __init__(self, store: Store):
        self._store = store

    async def cleanup_old_sessions(self, days: int = 30) -> CleanupResult:
        """Remove sessions created more than ``days`` days ago.

        Order: votes of the old sessions, then the sessions, then any
        orphaned votes older than the cutoff. The orphan pass is best-effort.

        Args:
            days: Retention window in days, at least 1.

        Returns:
            CleanupResult. Store failures are reported in it, not raised.

        Raises:
            ValidationError: If ``days`` is below 1.
        """
        if days < 1:
            raise ValidationError(f"Invalid retention window: {days}", "days must be a positive integer")

        cutoff = utcnow() - timedelta(days=days)
        log = logger.bind(days=days, cutoff=cutoff.isoformat())
        log.info("retention_sweep_started")

        try:
            old_sessions = await self._store.select(
                SESSIONS_TABLE, {"created_at": LessThan(cutoff)}, columns=("id",)
            )
            if not old_sessions:
                log.info("retention_sweep_nothing_to_delete")
                return CleanupResult(success=True, message="No old sessions to clean up")

            session_ids = [row["id"] for row in old_sessions]
            deleted_votes = await self._store.delete(VOTES_TABLE, {"session_id": session_ids})
            deleted_sessions = await self._store.delete(SESSIONS_TABLE, {"id": session_ids})
        except StoreError as e:
            log.error("retention_sweep_failed", error=str(e))
            return CleanupResult(success=False, error=str(e))

        try:
            orphaned = await self._store.delete(VOTES_TABLE, {"created_at": LessThan(cutoff)})
        except StoreError as e:
            log.warning("orphan_vote_cleanup_failed", error=str(e))
        else:
            if orphaned:
                log.info("orphan_votes_deleted", count=orphaned)
            deleted_votes += orphaned

        log.info(
            "retention_sweep_completed",
            deleted_sessions=deleted_sessions,
            deleted_votes=deleted_votes,
        )
        return CleanupResult(
            success=True,
            deleted_sessions=deleted_sessions,
            deleted_votes=deleted_votes,
            message=f"Deleted {deleted_sessions} sessions and {deleted_votes} votes older than {days} days",
        )
