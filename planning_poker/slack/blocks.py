"""Slack Block Kit builders for planning poker messages."""

import json
from dataclasses import dataclass, field
from typing import Iterable

from planning_poker.db.models import VOTE_VALUES, Vote

VOTE_ACTION_PREFIX = "vote_"
RESULTS_COLOR = "#3AA3E3"
NO_VOTES_TEXT = "No votes have been cast for the current session."


def ephemeral(text: str) -> dict:
    """Reply visible only to the acting user."""
    return {"response_type": "ephemeral", "text": text}


def format_issue_text(text: str) -> str:
    """Wrap bare URLs in ``<...>`` so Slack renders them as links."""
    if text.startswith("http"):
        return f"<{text}>"
    return text


def build_vote_buttons(session_id: str) -> list[dict]:
    """One button per allowed vote value.

    Each button carries ``{"sessionId", "vote"}`` as JSON in its value.
    """
    return [
        {
            "type": "button",
            "text": {"type": "plain_text", "text": str(value)},
            "action_id": f"{VOTE_ACTION_PREFIX}{value}",
            "value": json.dumps({"sessionId": session_id, "vote": value}),
        }
        for value in VOTE_VALUES
    ]


def build_session_message(user_id: str, issue: str, session_id: str) -> dict:
    """In-channel message announcing a new session with its vote buttons."""
    formatted_issue = format_issue_text(issue)
    headline = f"Planning Poker started by <@{user_id}> for: *{formatted_issue}*"

    return {
        "response_type": "in_channel",
        "text": headline,
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"{headline}\nSession ID: {session_id}",
                },
            },
            {
                "type": "actions",
                "block_id": f"poker_vote_{session_id}",
                "elements": build_vote_buttons(session_id),
            },
            {
                "type": "context",
                "elements": [{
                    "type": "mrkdwn",
                    "text": "Once everyone has voted, type `/poker-reveal` to reveal the results.",
                }],
            },
        ],
    }


@dataclass
class VoteBucket:
    """Voters who picked the same value."""

    value: int
    voters: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.voters)


def tally_votes(votes: Iterable[Vote]) -> list[VoteBucket]:
    """Group votes by value, ascending.

    Voters are listed by captured display name, or as a user mention
    when no name was captured.
    """
    buckets: dict[int, VoteBucket] = {}
    for vote in votes:
        bucket = buckets.setdefault(vote.vote, VoteBucket(value=vote.vote))
        bucket.voters.append(vote.username or f"<@{vote.user_id}>")
    return [buckets[value] for value in sorted(buckets)]


def build_results_message(votes: list[Vote], issue: str) -> dict:
    """Results of a reveal.

    Zero votes is a valid state and yields an ephemeral notice instead
    of an empty results card.
    """
    if not votes:
        return ephemeral(NO_VOTES_TEXT)

    lines = ["*Vote distribution:*"]
    for bucket in tally_votes(votes):
        plural = "s" if bucket.count > 1 else ""
        lines.append(
            f"• {bucket.value} points: {bucket.count} vote{plural} ({', '.join(bucket.voters)})"
        )
    distribution = "\n".join(lines)

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "🎯 Planning Poker Results"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"*Issue:* {format_issue_text(issue)}\n"
                    f"*Total votes:* {len(votes)}\n\n"
                    f"{distribution}"
                ),
            },
        },
        {"type": "divider"},
        {
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": "Voting completed • Results visible to channel",
            }],
        },
    ]

    return {
        "response_type": "in_channel",
        "text": "Planning Poker Results",
        "attachments": [{"color": RESULTS_COLOR, "blocks": blocks}],
    }
