"""Interactive action handling: vote button clicks.

Votes are saved before acking: the ack body says whether the vote was new
or replaced an earlier one. Only the reaction happens after the ack.
"""

from typing import Any, Awaitable, Callable, Optional

import structlog

from planning_poker.errors import PayloadError, StoreError
from planning_poker.services.vote_ledger import VoteLedger
from planning_poker.slack.api import SlackGateway
from planning_poker.slack.blocks import ephemeral
from planning_poker.slack.payloads import VoteIntent, parse_payload

logger = structlog.get_logger()

SAVE_FAILED_TEXT = "Error: Could not save your vote."
ACTION_FAILED_TEXT = "Sorry, there was an error processing your action. Please try again."


def vote_confirmation(vote: int, updated: bool) -> dict:
    if updated:
        text = f":arrows_counterclockwise: Your vote ({vote}) has been updated."
    else:
        text = f":white_check_mark: Your vote ({vote}) has been recorded."
    return {"response_type": "ephemeral", "replace_original": False, "text": text}


class ActionDispatcher:
    """Records votes from button clicks and confirms them to the voter."""

    def __init__(self, ledger: VoteLedger, gateway: SlackGateway):
        self._ledger = ledger
        self._gateway = gateway

    async def handle_vote(self, ack: Callable[..., Awaitable[Any]], body: dict, token: Optional[str]) -> bool:
        """Record the click in ``body``, ack with the reply, then react to the voting message.

        Returns:
            True when the vote was saved.
        """
        try:
            intent = parse_payload(body)
        except PayloadError as e:
            logger.warning("action_payload_rejected", reason=e.message)
            await ack(ephemeral(e.user_message))
            return False

        reply, saved = await self.record_vote(intent)
        await ack(reply)

        if saved and intent.channel_id and intent.message_ts:
            await self.react_to_vote(intent, token)
        return saved

    async def record_vote(self, intent: VoteIntent) -> tuple[dict, bool]:
        """Save the vote. Returns the reply for the voter and whether it was saved."""
        log = logger.bind(session_id=intent.session_id, user=intent.user_id, channel=intent.channel_id)
        try:
            # Checked before the upsert; concurrent clicks by one user may
            # report "recorded" twice, the stored vote is still last-write-wins.
            prior = await self._ledger.has_user_voted(intent.session_id, intent.user_id)
            if not prior.ok:
                log.warning("prior_vote_unknown", error=prior.error)

            try:
                await self._ledger.save_vote(intent.session_id, intent.user_id, intent.vote, intent.user_name)
            except StoreError as e:
                log.error("vote_save_failed", error=str(e))
                return ephemeral(SAVE_FAILED_TEXT), False

            updated = prior.ok and prior.has_voted
            log.info("vote_action_handled", vote=intent.vote, updated=updated)

        except Exception as e:
            log.error("vote_action_failed", error=str(e), exc_info=True)
            return ephemeral(ACTION_FAILED_TEXT), False

        return vote_confirmation(intent.vote, updated), True

    async def react_to_vote(self, intent: VoteIntent, token: Optional[str]) -> None:
        """Add a random reaction to the voting message. Failures are logged."""
        if not token:
            logger.warning("vote_reaction_no_token", channel=intent.channel_id, team=intent.team_id)
            return
        try:
            result = await self._gateway.add_reaction(intent.channel_id, intent.message_ts, token)
        except Exception as e:
            logger.error("vote_reaction_exception", channel=intent.channel_id, error=str(e), exc_info=True)
            return
        if not result.success:
            logger.warning("vote_reaction_failed", channel=intent.channel_id, error=result.error)
