"""Database module for PostgreSQL connectivity and record storage.

Provides the async connection pool, the generic ``Store`` contract with its
psycopg implementation, and the pydantic record models.

Usage:
    from planning_poker.db import init_db, close_db, PostgresStore

    # At application startup
    await init_db(settings)
    store = PostgresStore()
    await store.create_tables()

    # At application shutdown
    await close_db()
"""
from planning_poker.db.connection import close_db, get_connection, init_db, pool_status
from planning_poker.db.models import (
    INSTALLATIONS_TABLE,
    SESSIONS_TABLE,
    VOTE_VALUES,
    VOTES_TABLE,
    CleanupResult,
    PokerSession,
    SessionVotes,
    TeamInstallation,
    Vote,
)
from planning_poker.db.store import LessThan, PostgresStore, Store

__all__ = [
    # Connection
    "get_connection",
    "init_db",
    "close_db",
    "pool_status",
    # Store
    "Store",
    "PostgresStore",
    "LessThan",
    # Models
    "PokerSession",
    "Vote",
    "TeamInstallation",
    "SessionVotes",
    "CleanupResult",
    "VOTE_VALUES",
    "SESSIONS_TABLE",
    "VOTES_TABLE",
    "INSTALLATIONS_TABLE",
]
