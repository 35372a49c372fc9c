"""Tests for vote storage, prior-vote checks and vote retrieval."""
import pytest

from planning_poker.errors import StoreError


class TestSaveVote:
    """Tests for VoteLedger.save_vote."""

    @pytest.mark.asyncio
    async def test_first_vote_inserts_row(self, ledger, store):
        await ledger.save_vote("sess-1", "U1", 5, "alice")

        rows = store.rows("votes")
        assert len(rows) == 1
        assert rows[0]["vote"] == 5
        assert rows[0]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_revote_overwrites_single_row(self, ledger, store):
        """A second vote by the same user replaces the first."""
        await ledger.save_vote("sess-1", "U1", 5, "alice")
        first_created = store.rows("votes")[0]["created_at"]

        await ledger.save_vote("sess-1", "U1", 8, "alice.b")

        rows = store.rows("votes")
        assert len(rows) == 1
        assert rows[0]["vote"] == 8
        assert rows[0]["username"] == "alice.b"
        assert rows[0]["created_at"] == first_created

    @pytest.mark.asyncio
    async def test_users_and_sessions_are_separate(self, ledger, store):
        await ledger.save_vote("sess-1", "U1", 5, "alice")
        await ledger.save_vote("sess-1", "U2", 3, "bob")
        await ledger.save_vote("sess-2", "U1", 8, "alice")
        assert len(store.rows("votes")) == 3

    @pytest.mark.asyncio
    async def test_store_failure_raises(self, ledger, store):
        store.fail("upsert", "votes")
        with pytest.raises(StoreError):
            await ledger.save_vote("sess-1", "U1", 5, "alice")


class TestHasUserVoted:
    """Tests for VoteLedger.has_user_voted."""

    @pytest.mark.asyncio
    async def test_false_before_true_after(self, ledger):
        before = await ledger.has_user_voted("sess-1", "U1")
        await ledger.save_vote("sess-1", "U1", 5, "alice")
        after = await ledger.has_user_voted("sess-1", "U1")

        assert before.ok and not before.has_voted
        assert after.ok and after.has_voted

    @pytest.mark.asyncio
    async def test_other_user_not_counted(self, ledger):
        await ledger.save_vote("sess-1", "U1", 5, "alice")
        check = await ledger.has_user_voted("sess-1", "U2")
        assert check.has_voted is False

    @pytest.mark.asyncio
    async def test_failure_is_unknown_not_no(self, ledger, store):
        """Lookup failure reports ok=False instead of raising."""
        store.fail("select", "votes")
        check = await ledger.has_user_voted("sess-1", "U1")
        assert check.ok is False
        assert check.has_voted is False
        assert "injected failure" in check.error


class TestGetVotesForSession:
    """Tests for VoteLedger.get_votes_for_session."""

    @pytest.mark.asyncio
    async def test_zero_votes_returns_session(self, ledger, registry):
        """No votes is an empty list, with the session intact."""
        session = await registry.create_session("C1", "Issue A")

        result = await ledger.get_votes_for_session(session.id)

        assert result.votes == []
        assert result.session.id == session.id
        assert result.session.issue == "Issue A"

    @pytest.mark.asyncio
    async def test_returns_only_session_votes(self, ledger, registry):
        session = await registry.create_session("C1", "Issue A")
        await ledger.save_vote(session.id, "U1", 5, "alice")
        await ledger.save_vote(session.id, "U2", 8, "bob")
        await ledger.save_vote("sess-other", "U3", 1, "carol")

        result = await ledger.get_votes_for_session(session.id)

        assert sorted(v.user_id for v in result.votes) == ["U1", "U2"]

    @pytest.mark.asyncio
    async def test_orphaned_votes_without_session(self, ledger):
        """Votes whose session row is gone come back with session=None."""
        await ledger.save_vote("sess-gone", "U1", 3, "alice")

        result = await ledger.get_votes_for_session("sess-gone")

        assert result.session is None
        assert [v.vote for v in result.votes] == [3]

    @pytest.mark.asyncio
    async def test_vote_fetch_failure_raises(self, ledger, store):
        store.fail("select", "votes")
        with pytest.raises(StoreError):
            await ledger.get_votes_for_session("sess-1")


class TestCountVotes:
    """Tests for VoteLedger.count_votes."""

    @pytest.mark.asyncio
    async def test_counts_distinct_voters(self, ledger):
        await ledger.save_vote("sess-1", "U1", 5, "alice")
        await ledger.save_vote("sess-1", "U1", 8, "alice")
        await ledger.save_vote("sess-1", "U2", 3, "bob")
        assert await ledger.count_votes("sess-1") == 2

    @pytest.mark.asyncio
    async def test_empty_session(self, ledger):
        assert await ledger.count_votes("sess-1") == 0
