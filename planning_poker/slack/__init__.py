"""Slack integration: Bolt app, payload parsing, dispatchers, message builders, API gateway.

The HTTP router lives in ``planning_poker.slack.routes`` and is not imported
here, since it depends on the service container which in turn imports this
package.
"""

from planning_poker.slack.actions import ActionDispatcher
from planning_poker.slack.api import ReactionResult, SlackGateway
from planning_poker.slack.app import create_bolt_app, register_handlers
from planning_poker.slack.commands import CommandDispatcher, SlashCommand
from planning_poker.slack.oauth import OAuthInstaller
from planning_poker.slack.payloads import VoteIntent, parse_action_payload, parse_payload

__all__ = [
    "SlackGateway",
    "ReactionResult",
    "CommandDispatcher",
    "SlashCommand",
    "ActionDispatcher",
    "create_bolt_app",
    "register_handlers",
    "OAuthInstaller",
    "VoteIntent",
    "parse_action_payload",
    "parse_payload",
]
