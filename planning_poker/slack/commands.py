"""Slash command handling: ``/poker`` and ``/poker-reveal``.

Slack expects an answer within three seconds, so each command is acked with
a placeholder before any store or Slack I/O. The real message goes out
afterwards through Bolt's ``respond`` (the command's response_url).
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

import structlog

from planning_poker.errors import StoreError, ValidationError
from planning_poker.services.session_registry import SessionRegistry
from planning_poker.services.vote_ledger import VoteLedger
from planning_poker.slack.api import SlackGateway
from planning_poker.slack.blocks import build_results_message, build_session_message, ephemeral

logger = structlog.get_logger()

Ack = Callable[..., Awaitable[Any]]
Respond = Callable[..., Awaitable[Any]]

START_COMMAND = "/poker"
REVEAL_COMMAND = "/poker-reveal"

STARTING_TEXT = "Starting a planning poker session…"
REVEALING_TEXT = "Revealing votes…"
USAGE_TEXT = "Please provide an issue description or link. Usage: `/poker [issue]`"
CREATE_FAILED_TEXT = "Error: Could not create a new planning poker session."
NO_SESSION_TEXT = "No active planning poker session found for this channel."
LOOKUP_FAILED_TEXT = "Error: Could not look up the planning poker session for this channel."
VOTES_FAILED_TEXT = "Error: Could not retrieve votes for the current session."
COMMAND_FAILED_TEXT = "Sorry, there was an error processing your command. Please try again."
UNKNOWN_COMMAND_TEXT = "This endpoint only handles the /poker and /poker-reveal commands."
MISSING_RESPONSE_URL_TEXT = "Error: Missing response URL in the request."

STARTED_REACTION = "rocket"
ENDED_REACTION = "checkered_flag"


@dataclass(frozen=True)
class SlashCommand:
    """Fields of a slash command payload that the handlers use."""

    command: str
    text: str
    user_id: str
    channel_id: str
    response_url: str
    team_id: Optional[str] = None
    message_ts: Optional[str] = None

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "SlashCommand":
        return cls(
            command=(form.get("command") or "").strip(),
            text=form.get("text") or "",
            user_id=form.get("user_id") or "",
            channel_id=form.get("channel_id") or "",
            response_url=form.get("response_url") or "",
            team_id=form.get("team_id") or None,
            message_ts=form.get("message_ts") or form.get("thread_ts") or None,
        )


async def deliver(respond: Respond, message: dict) -> bool:
    """Send ``message`` through ``respond``. Failures are logged, never raised."""
    try:
        response = await respond(**message)
    except Exception as e:
        logger.error("delayed_response_exception", error=str(e), exc_info=True)
        return False

    status_code = getattr(response, "status_code", None)
    if status_code != 200:
        logger.error("delayed_response_rejected", status_code=status_code, body=getattr(response, "body", None))
        return False
    return True


class CommandDispatcher:
    """Session start and reveal for the Bolt command listeners."""

    def __init__(self, registry: SessionRegistry, ledger: VoteLedger, gateway: SlackGateway):
        self._registry = registry
        self._ledger = ledger
        self._gateway = gateway

    async def acknowledge(self, ack: Ack, cmd: SlashCommand, placeholder: str) -> bool:
        """Ack the command with ``placeholder``, or with an error when it cannot be answered later.

        Returns:
            True when the command should go on to phase 2.
        """
        logger.info(
            "slash_command_received",
            command=cmd.command,
            channel=cmd.channel_id,
            user=cmd.user_id,
            team=cmd.team_id,
        )
        if not cmd.response_url:
            logger.warning("slash_command_missing_response_url", command=cmd.command)
            await ack(ephemeral(MISSING_RESPONSE_URL_TEXT))
            return False
        await ack(ephemeral(placeholder))
        return True

    async def start(self, ack: Ack, command: Mapping[str, Any], respond: Respond, token: Optional[str]) -> bool:
        """``/poker <issue>``: ack, then create the session and post its voting message."""
        cmd = SlashCommand.from_form(command)
        if not await self.acknowledge(ack, cmd, STARTING_TEXT):
            return False
        return await self.start_session(cmd, respond, token)

    async def reveal(self, ack: Ack, command: Mapping[str, Any], respond: Respond, token: Optional[str]) -> bool:
        """``/poker-reveal``: ack, then post the latest session's results."""
        cmd = SlashCommand.from_form(command)
        if not await self.acknowledge(ack, cmd, REVEALING_TEXT):
            return False
        return await self.reveal_votes(cmd, respond, token)

    # =========================================================================
    # Phase 2
    # =========================================================================

    async def start_session(self, cmd: SlashCommand, respond: Respond, token: Optional[str]) -> bool:
        """Create a session and post its voting message. Returns delivery status."""
        log = logger.bind(command=cmd.command, channel=cmd.channel_id)
        started = False
        try:
            issue = cmd.text.strip()
            if not issue:
                raise ValidationError("empty issue text", USAGE_TEXT)

            session = await self._registry.create_session(cmd.channel_id, issue)
            message = build_session_message(cmd.user_id, issue, session.id)
            started = True

        except ValidationError as e:
            log.info("poker_command_rejected", reason=e.message)
            message = ephemeral(e.user_message)
        except StoreError as e:
            log.error("session_create_failed", error=str(e))
            message = ephemeral(CREATE_FAILED_TEXT)
        except Exception as e:
            log.error("poker_command_failed", error=str(e), exc_info=True)
            message = ephemeral(COMMAND_FAILED_TEXT)

        delivered = await deliver(respond, message)
        if delivered and started:
            await self._mark_origin(cmd, token, STARTED_REACTION)
        return delivered

    async def reveal_votes(self, cmd: SlashCommand, respond: Respond, token: Optional[str]) -> bool:
        """Post the latest session's results. Returns delivery status."""
        log = logger.bind(command=cmd.command, channel=cmd.channel_id)
        revealed = False
        try:
            message = await self._build_reveal(cmd.channel_id)
            revealed = message.get("response_type") == "in_channel"
        except Exception as e:
            log.error("reveal_command_failed", error=str(e), exc_info=True)
            message = ephemeral(COMMAND_FAILED_TEXT)

        delivered = await deliver(respond, message)
        if delivered and revealed:
            await self._mark_origin(cmd, token, ENDED_REACTION)
        return delivered

    async def _build_reveal(self, channel_id: str) -> dict:
        try:
            session = await self._registry.get_latest_session(channel_id)
        except StoreError as e:
            logger.error("latest_session_lookup_failed", channel=channel_id, error=str(e))
            return ephemeral(LOOKUP_FAILED_TEXT)

        if session is None:
            return ephemeral(NO_SESSION_TEXT)

        try:
            result = await self._ledger.get_votes_for_session(session.id)
        except StoreError as e:
            logger.error("votes_fetch_failed", session_id=session.id, error=str(e))
            return ephemeral(VOTES_FAILED_TEXT)

        logger.info("votes_revealed", session_id=session.id, vote_count=len(result.votes))
        return build_results_message(result.votes, session.issue)

    async def _mark_origin(self, cmd: SlashCommand, token: Optional[str], reaction: str) -> None:
        """React to the message the command came from, when Slack sent its timestamp."""
        if not cmd.message_ts:
            return
        if not token:
            logger.warning("origin_reaction_no_token", channel=cmd.channel_id, team=cmd.team_id)
            return
        result = await self._gateway.add_reaction(cmd.channel_id, cmd.message_ts, token, reaction)
        if not result.success:
            logger.warning("origin_reaction_failed", channel=cmd.channel_id, error=result.error)
