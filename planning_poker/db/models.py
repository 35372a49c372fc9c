"""Pydantic models for database records.

These are data transfer objects, not ORM models. SQL operations are in store.py.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

# Planning poker scale offered by the voting buttons
VOTE_VALUES: tuple[int, ...] = (1, 2, 3, 5, 8)

SESSIONS_TABLE = "sessions"
VOTES_TABLE = "votes"
INSTALLATIONS_TABLE = "team_installations"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PokerSession(BaseModel):
    """One round of estimation for a single issue in one channel.

    Sessions are never mutated. A newer session in the same channel
    supersedes an older one without deleting it.
    """

    id: str = Field(description="Time-ordered session id (sess-<ms>-<hex>)")
    channel: str = Field(description="Slack channel ID the session was started in")
    issue: str = Field(description="Issue text or URL being estimated")
    created_at: datetime = Field(default_factory=utcnow, description="When the session was created")


class Vote(BaseModel):
    """One user's estimate for a session, unique per (session_id, user_id)."""

    session_id: str
    user_id: str
    vote: int
    username: Optional[str] = Field(default=None, description="Display name captured at vote time")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TeamInstallation(BaseModel):
    """OAuth installation of the app into a workspace."""

    team_id: str
    team_name: Optional[str] = None
    bot_token: str
    bot_user_id: Optional[str] = None
    scope: Optional[str] = None
    installer_user_id: Optional[str] = None
    app_id: Optional[str] = None
    installed_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class SessionVotes(BaseModel):
    """Votes for a session paired with the session record.

    ``session`` is None when the votes outlived their session row.
    """

    session: Optional[PokerSession] = None
    votes: list[Vote] = Field(default_factory=list)


class CleanupResult(BaseModel):
    """Outcome of a retention sweep."""

    success: bool
    deleted_sessions: int = 0
    deleted_votes: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
