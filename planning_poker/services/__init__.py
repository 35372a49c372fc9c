"""Domain services: sessions, votes, installations, retention."""

from planning_poker.services.installations import InstallationStore, WorkspaceTokenResolver
from planning_poker.services.retention import RetentionSweeper
from planning_poker.services.session_cache import LatestSessionCache
from planning_poker.services.session_registry import SessionRegistry, new_session_id
from planning_poker.services.vote_ledger import VoteCheck, VoteLedger

__all__ = [
    "LatestSessionCache",
    "SessionRegistry",
    "new_session_id",
    "VoteLedger",
    "VoteCheck",
    "InstallationStore",
    "WorkspaceTokenResolver",
    "RetentionSweeper",
]
