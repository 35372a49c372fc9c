"""Generic filtered-query store over PostgreSQL using psycopg v3.

Services talk to the database only through the ``Store`` contract:
insert / upsert / select / select_ordered / delete with simple filters.
Operations return rows (or a count) and raise ``StoreError`` on failure.

Filter semantics (``{column: value}``, all clauses AND-ed):
    scalar             -> column = value
    list / tuple / set -> column = ANY(values)
    LessThan(value)    -> column < value
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, Iterable, NamedTuple, Optional, Sequence

import psycopg
from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row

from planning_poker.db.connection import get_connection
from planning_poker.errors import StoreError

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Filters = dict[str, Any]


class LessThan(NamedTuple):
    """Filter value matching rows whose column is strictly below ``value``."""

    value: Any


class Store(ABC):
    """Persistence contract consumed by the services."""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> None:
        """Insert a single row."""

    @abstractmethod
    async def upsert(
        self,
        table: str,
        row: Row,
        conflict_keys: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
    ) -> None:
        """Insert a row, or update it when ``conflict_keys`` already exist.

        ``update_columns`` defaults to every non-key column in ``row``.
        """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """Select rows matching ``filters``."""

    @abstractmethod
    async def select_ordered(
        self,
        table: str,
        filters: Optional[Filters],
        order_field: str,
        desc: bool = True,
        limit: Optional[int] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """Select rows matching ``filters`` ordered by ``order_field``."""

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> int:
        """Delete rows matching ``filters``. Returns the number deleted."""


def _where_clause(filters: Optional[Filters]) -> tuple[sql.Composable, list[Any]]:
    if not filters:
        return sql.SQL(""), []

    clauses: list[sql.Composable] = []
    params: list[Any] = []
    for column, value in filters.items():
        ident = sql.Identifier(column)
        if isinstance(value, LessThan):
            clauses.append(sql.SQL("{} < %s").format(ident))
            params.append(value.value)
        elif isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(sql.SQL("{} = ANY(%s)").format(ident))
            params.append(list(value))
        else:
            clauses.append(sql.SQL("{} = %s").format(ident))
            params.append(value)

    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


def _column_list(columns: Optional[Iterable[str]]) -> sql.Composable:
    if not columns:
        return sql.SQL("*")
    return sql.SQL(", ").join(sql.Identifier(c) for c in columns)


def _limit_clause(limit: Optional[int]) -> sql.Composable:
    if limit is None:
        return sql.SQL("")
    return sql.SQL(" LIMIT {}").format(sql.Literal(int(limit)))


CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    channel TEXT NOT NULL,
    issue TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sessions_channel_created
    ON sessions (channel, created_at DESC);

CREATE INDEX IF NOT EXISTS idx_sessions_created
    ON sessions (created_at);

CREATE TABLE IF NOT EXISTS votes (
    session_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    vote INTEGER NOT NULL,
    username TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (session_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_votes_created
    ON votes (created_at);

CREATE TABLE IF NOT EXISTS team_installations (
    team_id TEXT PRIMARY KEY,
    team_name TEXT,
    bot_token TEXT NOT NULL,
    bot_user_id TEXT,
    scope TEXT,
    installer_user_id TEXT,
    app_id TEXT,
    installed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ
);
"""


class PostgresStore(Store):
    """``Store`` implementation backed by the shared psycopg pool.

    Usage:
        await init_db()
        store = PostgresStore()
        await store.create_tables()
        rows = await store.select("sessions", {"channel": "C123"}, limit=1)
    """

    def __init__(
        self,
        connection_factory: Callable[[], AsyncContextManager[AsyncConnection]] = get_connection,
    ) -> None:
        """Initialize store.

        Args:
            connection_factory: Async context manager yielding a connection.
                Defaults to the module-level pool.
        """
        self._connection = connection_factory

    async def create_tables(self) -> None:
        """Create tables if they don't exist.

        Safe to call multiple times - uses CREATE ... IF NOT EXISTS.
        """
        async with self._connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(CREATE_TABLES_SQL)
            await conn.commit()
        logger.info("Planning poker tables ready")

    async def _execute(
        self,
        operation: str,
        table: str,
        query: sql.Composable,
        params: Sequence[Any],
        fetch: bool = False,
    ) -> tuple[list[Row], int]:
        try:
            async with self._connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall() if fetch else []
                    rowcount = cur.rowcount
                await conn.commit()
        except psycopg.Error as e:
            logger.error(
                f"Store {operation} failed",
                extra={"table": table, "error": str(e)},
            )
            raise StoreError(operation, table, e) from e
        return rows, rowcount

    async def insert(self, table: str, row: Row) -> None:
        columns = list(row)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            sql.Identifier(table),
            _column_list(columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        await self._execute("insert", table, query, [row[c] for c in columns])

    async def upsert(
        self,
        table: str,
        row: Row,
        conflict_keys: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
    ) -> None:
        columns = list(row)
        if update_columns is None:
            update_columns = [c for c in columns if c not in conflict_keys]

        if update_columns:
            on_conflict = sql.SQL("DO UPDATE SET {}").format(
                sql.SQL(", ").join(
                    sql.SQL("{} = EXCLUDED.{}").format(sql.Identifier(c), sql.Identifier(c))
                    for c in update_columns
                )
            )
        else:
            on_conflict = sql.SQL("DO NOTHING")

        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) ON CONFLICT ({}) {}").format(
            sql.Identifier(table),
            _column_list(columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
            _column_list(conflict_keys),
            on_conflict,
        )
        await self._execute("upsert", table, query, [row[c] for c in columns])

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        where, params = _where_clause(filters)
        query = sql.SQL("SELECT {} FROM {}").format(
            _column_list(columns), sql.Identifier(table)
        ) + where + _limit_clause(limit)
        rows, _ = await self._execute("select", table, query, params, fetch=True)
        return rows

    async def select_ordered(
        self,
        table: str,
        filters: Optional[Filters],
        order_field: str,
        desc: bool = True,
        limit: Optional[int] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        where, params = _where_clause(filters)
        order = sql.SQL(" ORDER BY {} {}").format(
            sql.Identifier(order_field), sql.SQL("DESC" if desc else "ASC")
        )
        query = (
            sql.SQL("SELECT {} FROM {}").format(_column_list(columns), sql.Identifier(table))
            + where
            + order
            + _limit_clause(limit)
        )
        rows, _ = await self._execute("select_ordered", table, query, params, fetch=True)
        return rows

    async def delete(self, table: str, filters: Filters) -> int:
        if not filters:
            raise ValueError(f"Refusing to delete from {table} without a filter")
        where, params = _where_clause(filters)
        query = sql.SQL("DELETE FROM {}").format(sql.Identifier(table)) + where
        _, rowcount = await self._execute("delete", table, query, params)
        return max(rowcount, 0)
