"""Outbound Slack Web API calls: reactions and OAuth code exchange.

Reactions are cosmetic and never raise; the OAuth exchange raises
``OAuthExchangeError`` so the installer sees Slack's error. Replies to
commands and actions go through Bolt (``ack``/``respond``), not this module.
"""

import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from planning_poker.errors import OAuthExchangeError

logger = structlog.get_logger()

# Pool used when no specific reaction is requested
VOTE_EMOJIS: tuple[str, ...] = (
    "thumbsup",
    "white_check_mark",
    "ballot_box_with_check",
    "heavy_check_mark",
    "raised_hands",
    "clap",
    "rocket",
    "tada",
    "star",
    "sparkles",
    "fire",
    "100",
    "dart",
    "bulb",
    "eyes",
)

EMOJI_POOL = frozenset(VOTE_EMOJIS)

NO_TIMESTAMP = "No timestamp provided"
BOT_NOT_IN_CHANNEL = "Bot not in channel"
MISSING_SCOPE = "Missing scope"


def random_emoji(exclude: Optional[set[str]] = None) -> str:
    """Pick a random emoji from the pool, avoiding ``exclude`` when possible."""
    candidates = [e for e in VOTE_EMOJIS if not exclude or e not in exclude]
    return random.choice(candidates or VOTE_EMOJIS)


@dataclass(frozen=True)
class ReactionResult:
    success: bool
    emoji: Optional[str] = None
    error: Optional[str] = None


class SlackGateway:
    """Slack Web API access with per-call bot tokens.

    Args:
        client_id: OAuth client id, used only by ``exchange_oauth_code``.
        client_secret: OAuth client secret.
        client_factory: Builds a web client for a token. Overridable in tests.
    """

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        client_factory: Callable[..., Any] = AsyncWebClient,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._client_factory = client_factory

    async def add_reaction(
        self,
        channel: str,
        timestamp: Optional[str],
        token: str,
        name: Optional[str] = None,
    ) -> ReactionResult:
        """Add an emoji reaction to a message.

        ``already_reacted`` retries with a pool emoji not tried yet until every
        pool entry has been tried. A requested ``name`` outside the pool does
        not use up a retry. Other failures are logged and returned.
        """
        if not timestamp:
            logger.debug("reaction_skipped_no_timestamp", channel=channel)
            return ReactionResult(success=False, error=NO_TIMESTAMP)

        client = self._client_factory(token=token)
        emoji = name or random_emoji()
        tried: set[str] = set()

        while True:
            tried.add(emoji)
            try:
                await client.reactions_add(channel=channel, timestamp=timestamp, name=emoji)
                return ReactionResult(success=True, emoji=emoji)

            except SlackApiError as e:
                error_code = e.response.get("error", "unknown")
                if error_code == "already_reacted":
                    if len(tried & EMOJI_POOL) >= len(EMOJI_POOL):
                        logger.warning("reaction_pool_exhausted", channel=channel, timestamp=timestamp)
                        return ReactionResult(success=False, error=error_code)
                    emoji = random_emoji(exclude=tried)
                    continue
                if error_code == "not_in_channel":
                    logger.warning("reaction_bot_not_in_channel", channel=channel)
                    return ReactionResult(success=False, error=BOT_NOT_IN_CHANNEL)
                if error_code == "missing_scope":
                    logger.warning("reaction_missing_scope", channel=channel)
                    return ReactionResult(success=False, error=MISSING_SCOPE)

                logger.warning("reaction_failed", channel=channel, error=error_code)
                return ReactionResult(success=False, error=error_code)

            except Exception as e:
                logger.error("reaction_exception", channel=channel, error=str(e), exc_info=True)
                return ReactionResult(success=False, error=str(e))

    async def exchange_oauth_code(self, code: str, redirect_uri: str) -> dict:
        """Exchange an OAuth authorization code via ``oauth.v2.access``.

        Returns:
            Slack's response payload.

        Raises:
            OAuthExchangeError: With Slack's error string when ``ok`` is false.
        """
        client = self._client_factory()
        try:
            response = await client.oauth_v2_access(
                client_id=self._client_id,
                client_secret=self._client_secret,
                code=code,
                redirect_uri=redirect_uri,
            )
        except SlackApiError as e:
            error_code = e.response.get("error", "unknown")
            logger.error("oauth_exchange_failed", error=error_code)
            raise OAuthExchangeError(error_code) from e

        data = getattr(response, "data", response)
        if not data.get("ok", False):
            error_code = data.get("error", "unknown")
            logger.error("oauth_exchange_failed", error=error_code)
            raise OAuthExchangeError(error_code)
        return data
