"""Tests for Slack message builders."""
import json

from planning_poker.db.models import VOTE_VALUES, Vote
from planning_poker.slack.blocks import (
    NO_VOTES_TEXT,
    build_results_message,
    build_session_message,
    build_vote_buttons,
    ephemeral,
    format_issue_text,
    tally_votes,
)


def vote(user_id, value, username=None):
    return Vote(session_id="sess-1", user_id=user_id, vote=value, username=username)


class TestFormatIssueText:
    def test_url_is_wrapped(self):
        assert format_issue_text("https://jira.example.com/PROJ-1") == "<https://jira.example.com/PROJ-1>"

    def test_plain_text_unchanged(self):
        assert format_issue_text("Fix login bug") == "Fix login bug"


class TestVoteButtons:
    """Tests for build_vote_buttons."""

    def test_one_button_per_value(self):
        buttons = build_vote_buttons("sess-1")
        assert [b["text"]["text"] for b in buttons] == [str(v) for v in VOTE_VALUES]
        assert [b["action_id"] for b in buttons] == [f"vote_{v}" for v in VOTE_VALUES]

    def test_value_carries_session_and_vote(self):
        values = [json.loads(b["value"]) for b in build_vote_buttons("sess-1")]
        assert values == [{"sessionId": "sess-1", "vote": v} for v in VOTE_VALUES]


class TestSessionMessage:
    """Tests for build_session_message."""

    def test_in_channel_with_issue_and_session_id(self):
        message = build_session_message("U1", "Fix login bug", "sess-1")

        assert message["response_type"] == "in_channel"
        section = message["blocks"][0]["text"]["text"]
        assert "<@U1>" in section
        assert "*Fix login bug*" in section
        assert "Session ID: sess-1" in section

    def test_has_vote_buttons_and_reveal_hint(self):
        message = build_session_message("U1", "Fix login bug", "sess-1")

        actions = message["blocks"][1]
        assert actions["type"] == "actions"
        assert len(actions["elements"]) == len(VOTE_VALUES)
        assert "/poker-reveal" in message["blocks"][2]["elements"][0]["text"]


class TestTallyVotes:
    """Tests for tally_votes."""

    def test_sorted_numerically_with_voters(self):
        buckets = tally_votes([
            vote("U1", 8, "alice"),
            vote("U2", 2, "bob"),
            vote("U3", 8, "carol"),
            vote("U4", 13),
        ])

        assert [b.value for b in buckets] == [2, 8, 13]
        assert buckets[1].voters == ["alice", "carol"]
        assert buckets[1].count == 2

    def test_mention_when_no_username(self):
        buckets = tally_votes([vote("U9", 3)])
        assert buckets[0].voters == ["<@U9>"]

    def test_empty(self):
        assert tally_votes([]) == []


class TestResultsMessage:
    """Tests for build_results_message."""

    def test_no_votes_is_ephemeral_notice(self):
        assert build_results_message([], "Issue") == ephemeral(NO_VOTES_TEXT)

    def test_distribution(self):
        message = build_results_message(
            [vote("U1", 5, "alice"), vote("U2", 5, "bob"), vote("U3", 1, "carol")],
            "https://jira.example.com/PROJ-1",
        )

        assert message["response_type"] == "in_channel"
        blocks = message["attachments"][0]["blocks"]
        assert blocks[0]["text"]["text"] == "🎯 Planning Poker Results"
        body = blocks[1]["text"]["text"]
        assert "*Issue:* <https://jira.example.com/PROJ-1>" in body
        assert "*Total votes:* 3" in body
        assert "• 1 points: 1 vote (carol)" in body
        assert "• 5 points: 2 votes (alice, bob)" in body
        assert body.index("• 1 points") < body.index("• 5 points")
        assert blocks[2] == {"type": "divider"}
        assert blocks[3]["elements"][0]["text"] == "Voting completed • Results visible to channel"
