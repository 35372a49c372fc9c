"""Workspace installations and per-workspace token resolution."""

from typing import Optional

import structlog

from planning_poker.db.models import INSTALLATIONS_TABLE, TeamInstallation, utcnow
from planning_poker.db.store import Store
from planning_poker.errors import StoreError

logger = structlog.get_logger()


class InstallationStore:
    """CRUD for ``team_installations`` rows, keyed by team_id."""

    def __init__(self, store: Store):
        self._store = store

    async def save(self, installation: TeamInstallation) -> None:
        """Insert or replace the installation for its team (re-installs overwrite).

        Raises:
            StoreError: If the upsert fails.
        """
        row = installation.model_dump()
        row["updated_at"] = utcnow()
        await self._store.upsert(INSTALLATIONS_TABLE, row, conflict_keys=("team_id",))
        logger.info("team_installation_saved", team_id=installation.team_id, app_id=installation.app_id)

    async def get(self, team_id: str) -> Optional[TeamInstallation]:
        """Raises StoreError on failure; None when the team never installed."""
        rows = await self._store.select(INSTALLATIONS_TABLE, {"team_id": team_id}, limit=1)
        return TeamInstallation.model_validate(rows[0]) if rows else None

    async def remove(self, team_id: str) -> int:
        """Delete the team's installation (uninstall). Returns rows removed."""
        deleted = await self._store.delete(INSTALLATIONS_TABLE, {"team_id": team_id})
        logger.info("team_installation_removed", team_id=team_id, deleted=deleted)
        return deleted

    async def list(self) -> list[TeamInstallation]:
        """All installations, most recently installed first."""
        rows = await self._store.select_ordered(INSTALLATIONS_TABLE, None, order_field="installed_at", desc=True)
        return [TeamInstallation.model_validate(row) for row in rows]


class WorkspaceTokenResolver:
    """Maps a team id to the bot token used for outbound Slack calls.

    Always returns some token. Without a team id, an installation, or a
    working lookup, the default token is used.
    """

    def __init__(self, installations: InstallationStore, default_token: str):
        self._installations = installations
        self._default_token = default_token

    async def resolve(self, team_id: Optional[str]) -> str:
        if not team_id:
            return self._default_token

        try:
            installation = await self._installations.get(team_id)
        except StoreError as e:
            logger.warning("team_token_lookup_failed", team_id=team_id, error=str(e))
            return self._default_token

        if installation is None or not installation.bot_token:
            logger.debug("team_token_default", team_id=team_id)
            return self._default_token

        return installation.bot_token
