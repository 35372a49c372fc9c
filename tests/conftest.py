"""
Pytest configuration and fixtures.

Services run over an in-memory Store and a mocked Slack gateway, so no
database or Slack credentials are needed.
"""

import json
from typing import Any, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from slack_sdk.webhook.async_client import AsyncWebhookClient

from planning_poker.bot import create_fastapi_app
from planning_poker.config import Settings
from planning_poker.container import build_services
from planning_poker.db.store import LessThan, Store
from planning_poker.errors import StoreError
from planning_poker.services import (
    InstallationStore,
    LatestSessionCache,
    RetentionSweeper,
    SessionRegistry,
    VoteLedger,
    WorkspaceTokenResolver,
)
from planning_poker.slack.actions import ActionDispatcher
from planning_poker.slack.api import ReactionResult, SlackGateway
from planning_poker.slack.commands import CommandDispatcher

DEFAULT_TOKEN = "xoxb-default"
ADMIN_KEY = "admin-secret"


# =============================================================================
# In-memory Store
# =============================================================================

PRIMARY_KEYS = {
    "sessions": ("id",),
    "votes": ("session_id", "user_id"),
    "team_installations": ("team_id",),
}


def _matches(row: dict, filters: Optional[dict]) -> bool:
    for column, value in (filters or {}).items():
        actual = row.get(column)
        if isinstance(value, LessThan):
            if actual is None or not actual < value.value:
                return False
        elif isinstance(value, (list, tuple, set, frozenset)):
            if actual not in value:
                return False
        elif actual != value:
            return False
    return True


class InMemoryStore(Store):
    """Store fake with the same filter semantics as PostgresStore.

    ``fail(operation, table)`` makes every later call of that operation on
    that table raise StoreError, until ``heal()``.
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self._failing: set[tuple[str, str]] = set()

    def fail(self, operation: str, table: str) -> None:
        self._failing.add((operation, table))

    def heal(self) -> None:
        self._failing.clear()

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if (operation, table) in self._failing:
            raise StoreError(operation, table, RuntimeError("injected failure"))

    @staticmethod
    def _project(row: dict, columns: Optional[Sequence[str]]) -> dict:
        if not columns:
            return dict(row)
        return {c: row.get(c) for c in columns}

    async def insert(self, table: str, row: dict) -> None:
        self._enter("insert", table)
        keys = PRIMARY_KEYS.get(table, ())
        for existing in self.rows(table):
            if keys and all(existing.get(k) == row.get(k) for k in keys):
                raise StoreError("insert", table, RuntimeError("duplicate key"))
        self.rows(table).append(dict(row))

    async def upsert(self, table, row, conflict_keys, update_columns=None) -> None:
        self._enter("upsert", table)
        if update_columns is None:
            update_columns = [c for c in row if c not in conflict_keys]
        for existing in self.rows(table):
            if all(existing.get(k) == row.get(k) for k in conflict_keys):
                for column in update_columns:
                    existing[column] = row[column]
                return
        self.rows(table).append(dict(row))

    async def select(self, table, filters=None, columns=None, limit=None) -> list[dict]:
        self._enter("select", table)
        found = [self._project(r, columns) for r in self.rows(table) if _matches(r, filters)]
        return found if limit is None else found[:limit]

    async def select_ordered(self, table, filters, order_field, desc=True, limit=None, columns=None) -> list[dict]:
        self._enter("select_ordered", table)
        indexed = [(i, r) for i, r in enumerate(self.rows(table)) if _matches(r, filters)]
        indexed.sort(key=lambda pair: (pair[1][order_field], pair[0]), reverse=desc)
        found = [self._project(r, columns) for _, r in indexed]
        return found if limit is None else found[:limit]

    async def delete(self, table, filters) -> int:
        if not filters:
            raise ValueError(f"Refusing to delete from {table} without a filter")
        self._enter("delete", table)
        kept = [r for r in self.rows(table) if not _matches(r, filters)]
        deleted = len(self.rows(table)) - len(kept)
        self.tables[table] = kept
        return deleted


# =============================================================================
# Payload helpers
# =============================================================================


def block_actions_payload(
    session_id: str,
    vote: Any,
    user_id: str = "U1",
    username: Optional[str] = "alice",
    channel_id: str = "C1",
    message_ts: Optional[str] = "1700000000.000100",
    team_id: Optional[str] = "T1",
) -> str:
    """Serialized Block Kit vote click, as Slack posts it in ``payload``."""
    payload: dict[str, Any] = {
        "type": "block_actions",
        "user": {"id": user_id, "username": username, "name": username, "team_id": team_id},
        "team": {"id": team_id} if team_id else None,
        "channel": {"id": channel_id},
        "container": {"type": "message", "message_ts": message_ts, "channel_id": channel_id},
        "actions": [{
            "type": "button",
            "action_id": f"vote_{vote}",
            "value": json.dumps({"sessionId": session_id, "vote": vote}),
        }],
    }
    return json.dumps(payload)


def legacy_payload(
    session_id: str,
    vote: Any,
    user_id: str = "U1",
    username: Optional[str] = "alice",
    channel_id: str = "C1",
    message_ts: Optional[str] = "1700000000.000100",
    team_id: Optional[str] = "T1",
) -> str:
    """Serialized attachment-button vote click."""
    payload = {
        "type": "interactive_message",
        "callback_id": "vote",
        "user": {"id": user_id, "name": username},
        "team": {"id": team_id},
        "channel": {"id": channel_id},
        "message_ts": message_ts,
        "actions": [{
            "name": "vote",
            "type": "button",
            "value": json.dumps({"sessionId": session_id, "vote": vote}),
        }],
    }
    return json.dumps(payload)


def command_form(command: str = "/poker", text: str = "Fix login bug", **overrides: str) -> dict[str, str]:
    form = {
        "command": command,
        "text": text,
        "user_id": "U1",
        "user_name": "alice",
        "channel_id": "C1",
        "team_id": "T1",
        "response_url": "https://hooks.slack.com/commands/T1/123/abc",
    }
    form.update(overrides)
    return form


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def cache():
    return LatestSessionCache()


@pytest.fixture
def registry(store, cache):
    return SessionRegistry(store, cache)


@pytest.fixture
def ledger(store):
    return VoteLedger(store)


@pytest.fixture
def installations(store):
    return InstallationStore(store)


@pytest.fixture
def resolver(installations):
    return WorkspaceTokenResolver(installations, DEFAULT_TOKEN)


@pytest.fixture
def sweeper(store):
    return RetentionSweeper(store)


@pytest.fixture
def gateway():
    """Mocked Slack gateway: reactions succeed."""
    mock = MagicMock(spec=SlackGateway)
    mock.add_reaction = AsyncMock(return_value=ReactionResult(success=True, emoji="thumbsup"))
    mock.exchange_oauth_code = AsyncMock()
    return mock


@pytest.fixture
def command_dispatcher(registry, ledger, gateway):
    return CommandDispatcher(registry, ledger, gateway)


@pytest.fixture
def action_dispatcher(ledger, gateway):
    return ActionDispatcher(ledger, gateway)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        slack_bot_token=DEFAULT_TOKEN,
        slack_signing_secret="",
        slack_client_id="111.222",
        slack_client_secret="client-secret",
        base_url="https://poker.example.com",
        admin_key=ADMIN_KEY,
        retention_days=30,
        slack_process_before_response=True,
    )


@pytest.fixture
def services(settings, store, gateway):
    return build_services(settings, store, gateway=gateway)


@pytest.fixture
def client(services, slack_webhook):
    """TestClient over injected services; Bolt listeners finish before it returns."""
    return TestClient(create_fastapi_app(services))


@pytest.fixture
def ack():
    return AsyncMock()


@pytest.fixture
def respond():
    """Bolt ``respond`` stand-in; Slack accepts every message."""
    return AsyncMock(return_value=MagicMock(status_code=200, body="ok"))


@pytest.fixture
def slack_webhook():
    """Intercepts messages Bolt's ``respond`` posts to a response_url."""
    send = AsyncMock(return_value=MagicMock(status_code=200, body="ok"))
    with patch.object(AsyncWebhookClient, "send_dict", send):
        yield send


def sent_messages(send: AsyncMock) -> list[dict]:
    """Messages posted through a patched ``send_dict``, in order."""
    return [call.args[0] if call.args else call.kwargs["body"] for call in send.await_args_list]
