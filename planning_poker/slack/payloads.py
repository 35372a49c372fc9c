"""Interactive payload parsing.

Slack delivers button clicks in two shapes, told apart by ``payload.type``:

    interactive_message  legacy attachment buttons, ``callback_id == "vote"``,
                         action ``name == "vote"``
    block_actions        Block Kit buttons, ``action_id`` starting with ``vote_``

Both carry the vote as embedded JSON ``{"sessionId": ..., "vote": ...}`` in
the action value. Each shape has its own parser; all of them normalize to
``VoteIntent`` or raise ``PayloadError`` with the reply text for the user.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from planning_poker.db.models import VOTE_VALUES
from planning_poker.errors import PayloadError
from planning_poker.slack.blocks import VOTE_ACTION_PREFIX

MISSING_PAYLOAD = "Error: Missing payload in the request."
INVALID_VOTE_DATA = "Error: Invalid vote data."
UNSUPPORTED_PAYLOAD_TYPE = "Error: Unsupported payload type."
NO_ACTIONS = "Error: No actions found in the payload."
UNSUPPORTED_ACTION = "Error: Unsupported action."
MISSING_USER = "Error: Missing user information in the payload."

LEGACY_VOTE_ACTION = "vote"
LEGACY_VOTE_CALLBACK = "vote"


@dataclass(frozen=True)
class VoteIntent:
    """A vote click, independent of the payload shape it arrived in."""

    session_id: str
    vote: int
    user_id: str
    user_name: Optional[str] = None
    channel_id: Optional[str] = None
    message_ts: Optional[str] = None
    team_id: Optional[str] = None


class VoteValue(BaseModel):
    """The JSON embedded in a vote button's value."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    vote: StrictInt

    @field_validator("vote")
    @classmethod
    def vote_on_scale(cls, v: int) -> int:
        if v not in VOTE_VALUES:
            raise ValueError(f"vote must be one of {VOTE_VALUES}")
        return v


def _fail(reason: str, user_message: str) -> PayloadError:
    return PayloadError(reason, user_message)


def _first_action(payload: dict) -> dict:
    actions = payload.get("actions")
    if not isinstance(actions, list) or not actions:
        raise _fail("payload has no actions", NO_ACTIONS)
    action = actions[0]
    if not isinstance(action, dict):
        raise _fail("first action is not an object", UNSUPPORTED_ACTION)
    return action


def _parse_vote_value(raw: Any) -> VoteValue:
    if not raw or not isinstance(raw, str):
        raise _fail("vote action has no value", UNSUPPORTED_ACTION)
    try:
        return VoteValue.model_validate_json(raw)
    except PydanticValidationError as e:
        raise _fail(f"invalid vote value: {e.error_count()} error(s)", INVALID_VOTE_DATA) from e


def _nested_id(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if isinstance(value, dict):
        return value.get("id") or None
    return None


def _build_intent(payload: dict, value: VoteValue, message_ts: Optional[str], channel_id: Optional[str]) -> VoteIntent:
    user = payload.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        raise _fail("payload has no user id", MISSING_USER)

    return VoteIntent(
        session_id=value.session_id,
        vote=value.vote,
        user_id=user["id"],
        user_name=user.get("name") or user.get("username"),
        channel_id=channel_id,
        message_ts=message_ts or None,
        team_id=_nested_id(payload, "team") or user.get("team_id"),
    )


def parse_interactive_message(payload: dict) -> VoteIntent:
    """Legacy attachment-button click."""
    if payload.get("callback_id") != LEGACY_VOTE_CALLBACK:
        raise _fail(f"unsupported callback {payload.get('callback_id')!r}", UNSUPPORTED_ACTION)
    action = _first_action(payload)
    if action.get("name") != LEGACY_VOTE_ACTION:
        raise _fail(f"unsupported legacy action {action.get('name')!r}", UNSUPPORTED_ACTION)

    value = _parse_vote_value(action.get("value"))
    original = payload.get("original_message") or {}
    message_ts = payload.get("message_ts") or original.get("ts")
    return _build_intent(payload, value, message_ts, _nested_id(payload, "channel"))


def parse_block_actions(payload: dict) -> VoteIntent:
    """Block Kit button click."""
    action = _first_action(payload)
    action_id = action.get("action_id") or ""
    if not action_id.startswith(VOTE_ACTION_PREFIX):
        raise _fail(f"unsupported block action {action_id!r}", UNSUPPORTED_ACTION)

    value = _parse_vote_value(action.get("value"))
    container = payload.get("container") or {}
    message = payload.get("message") or {}
    message_ts = container.get("message_ts") or message.get("ts")
    channel_id = _nested_id(payload, "channel") or container.get("channel_id")
    return _build_intent(payload, value, message_ts, channel_id)


PAYLOAD_PARSERS: dict[str, Callable[[dict], VoteIntent]] = {
    "interactive_message": parse_interactive_message,
    "block_actions": parse_block_actions,
}


def parse_action_payload(raw: Optional[str]) -> VoteIntent:
    """Parse the form-encoded ``payload`` field of an interactive request.

    Raises:
        PayloadError: With ``user_message`` set to the reply for the user.
    """
    if not raw:
        raise _fail("request has no payload field", MISSING_PAYLOAD)

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise _fail(f"payload is not valid JSON: {e}", INVALID_VOTE_DATA) from e
    if not isinstance(payload, dict):
        raise _fail("payload is not a JSON object", INVALID_VOTE_DATA)
    return parse_payload(payload)


def parse_payload(payload: dict) -> VoteIntent:
    """Parse a decoded interactive payload by its ``type``."""
    payload_type = payload.get("type")
    parser = PAYLOAD_PARSERS.get(payload_type) if isinstance(payload_type, str) else None
    if parser is None:
        raise _fail(f"unsupported payload type {payload_type!r}", UNSUPPORTED_PAYLOAD_TYPE)
    return parser(payload)
