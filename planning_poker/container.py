"""Service wiring.

One ``PokerServices`` per application instance, stored on ``app.state`` and
handed to route handlers through the ``get_services`` dependency. Tests build
their own with an in-memory store and a mocked gateway.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler
from slack_bolt.async_app import AsyncApp

from planning_poker.config import Settings
from planning_poker.db.store import Store
from planning_poker.services.installations import InstallationStore, WorkspaceTokenResolver
from planning_poker.services.retention import RetentionSweeper
from planning_poker.services.session_cache import LatestSessionCache
from planning_poker.services.session_registry import SessionRegistry
from planning_poker.services.vote_ledger import VoteLedger
from planning_poker.slack.actions import ActionDispatcher
from planning_poker.slack.api import SlackGateway
from planning_poker.slack.app import create_bolt_app, create_request_handler
from planning_poker.slack.commands import CommandDispatcher
from planning_poker.slack.oauth import OAuthInstaller


@dataclass
class PokerServices:
    settings: Settings
    store: Store
    cache: LatestSessionCache
    registry: SessionRegistry
    ledger: VoteLedger
    installations: InstallationStore
    resolver: WorkspaceTokenResolver
    sweeper: RetentionSweeper
    gateway: SlackGateway
    commands: CommandDispatcher
    actions: ActionDispatcher
    installer: OAuthInstaller
    bolt_app: AsyncApp
    slack_handler: AsyncSlackRequestHandler


def build_services(
    settings: Settings,
    store: Store,
    gateway: Optional[SlackGateway] = None,
) -> PokerServices:
    """Wire every service over ``store``.

    Args:
        settings: Application settings.
        store: Persistence backend.
        gateway: Slack gateway; defaults to one using the OAuth client credentials.
    """
    if gateway is None:
        gateway = SlackGateway(
            client_id=settings.slack_client_id,
            client_secret=settings.slack_client_secret,
        )

    cache = LatestSessionCache()
    registry = SessionRegistry(store, cache)
    ledger = VoteLedger(store)
    installations = InstallationStore(store)
    resolver = WorkspaceTokenResolver(installations, settings.slack_bot_token)
    commands = CommandDispatcher(registry, ledger, gateway)
    actions = ActionDispatcher(ledger, gateway)
    bolt_app = create_bolt_app(settings, resolver, commands, actions)

    return PokerServices(
        settings=settings,
        store=store,
        cache=cache,
        registry=registry,
        ledger=ledger,
        installations=installations,
        resolver=resolver,
        sweeper=RetentionSweeper(store),
        gateway=gateway,
        commands=commands,
        actions=actions,
        installer=OAuthInstaller(settings, gateway, installations),
        bolt_app=bolt_app,
        slack_handler=create_request_handler(bolt_app),
    )


def get_services(request: Request) -> PokerServices:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services
