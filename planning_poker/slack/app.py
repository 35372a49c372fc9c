"""Slack Bolt app: request verification, per-workspace tokens, listeners.

The FastAPI routes hand ``/slack/commands`` and ``/slack/actions`` to the
``AsyncSlackRequestHandler`` built here. Bolt checks the signature, resolves
the bot token through ``authorize`` and runs the matching listener; the
listener acks first and does the slow work afterwards.
"""

import re
from typing import Optional

import structlog
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler
from slack_bolt.async_app import AsyncApp
from slack_bolt.authorization import AuthorizeResult

from planning_poker.config import Settings
from planning_poker.services.installations import WorkspaceTokenResolver
from planning_poker.slack.actions import ActionDispatcher
from planning_poker.slack.blocks import VOTE_ACTION_PREFIX, ephemeral
from planning_poker.slack.commands import (
    REVEAL_COMMAND,
    START_COMMAND,
    UNKNOWN_COMMAND_TEXT,
    CommandDispatcher,
)
from planning_poker.slack.payloads import LEGACY_VOTE_CALLBACK

logger = structlog.get_logger()

BLOCK_VOTE_ACTION = re.compile(f"^{re.escape(VOTE_ACTION_PREFIX)}")
LEGACY_VOTE_ACTION = {"type": "interactive_message", "callback_id": LEGACY_VOTE_CALLBACK}


def create_bolt_app(
    settings: Settings,
    resolver: WorkspaceTokenResolver,
    commands: CommandDispatcher,
    actions: ActionDispatcher,
) -> AsyncApp:
    """Build the Bolt app with every poker listener registered.

    Signature verification is on whenever a signing secret is configured.
    """

    # Bolt passes arguments by name, so this stays a plain function.
    async def authorize(enterprise_id: Optional[str], team_id: Optional[str]) -> AuthorizeResult:
        token = await resolver.resolve(team_id)
        return AuthorizeResult(enterprise_id=enterprise_id, team_id=team_id, bot_token=token)

    app = AsyncApp(
        signing_secret=settings.slack_signing_secret,
        request_verification_enabled=bool(settings.slack_signing_secret),
        authorize=authorize,
        process_before_response=settings.slack_process_before_response,
    )
    register_handlers(app, commands, actions)
    logger.info(
        "bolt_app_created",
        verification=bool(settings.slack_signing_secret),
        process_before_response=settings.slack_process_before_response,
    )
    return app


def register_handlers(app: AsyncApp, commands: CommandDispatcher, actions: ActionDispatcher) -> None:
    """Register command and action listeners on ``app``."""

    @app.command(START_COMMAND)
    async def handle_poker_command(ack, command, respond, context):
        await commands.start(ack, command, respond, context.bot_token)

    @app.command(REVEAL_COMMAND)
    async def handle_reveal_command(ack, command, respond, context):
        await commands.reveal(ack, command, respond, context.bot_token)

    # Registered last: Bolt runs only the first matching listener.
    @app.command(re.compile(r".*"))
    async def handle_unknown_command(ack, command):
        logger.info("slash_command_unknown", command=command.get("command"))
        await ack(ephemeral(UNKNOWN_COMMAND_TEXT))

    @app.action(BLOCK_VOTE_ACTION)
    async def handle_block_vote(ack, body, context):
        await actions.handle_vote(ack, body, context.bot_token)

    @app.action(LEGACY_VOTE_ACTION)
    async def handle_legacy_vote(ack, body, context):
        await actions.handle_vote(ack, body, context.bot_token)


def create_request_handler(app: AsyncApp) -> AsyncSlackRequestHandler:
    return AsyncSlackRequestHandler(app)
