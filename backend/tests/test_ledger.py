"""
Tests for the vote ledger: create, delete, lookups and nullification.
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import DanglingReference, InvalidValue, NotFound
from votekit.models.refs import EntityRef
from votekit.models.vote import Vote
from votekit.schemas.vote import VoteResponse
from votekit.services.ledger import VoteLedger

from sample_models import Post, User


class TestCreateVote:
    """Recording votes."""

    @pytest.mark.asyncio
    async def test_create_vote(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        vote = await ledger.create(db_session, alice, post, 1)

        assert vote.id is not None
        assert vote.value == 1
        assert vote.voter == EntityRef("User", alice.id)
        assert vote.voteable == EntityRef("Post", post.id)
        assert vote.created is not None

    @pytest.mark.asyncio
    async def test_create_with_refs(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        """References work as well as loaded instances."""
        vote = await ledger.create(
            db_session, EntityRef("User", alice.id), EntityRef("Post", post.id), -1
        )
        assert vote.voteable_type == "Post"
        assert vote.voter_id == alice.id

    @pytest.mark.asyncio
    async def test_vote_for_and_against(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        up = await ledger.vote_for(db_session, alice, post)
        down = await ledger.vote_against(db_session, alice, post)
        assert (up.value, down.value) == (1, -1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [2, 0, -2, True, 1.0, "1", None])
    async def test_invalid_value(self, db_session: AsyncSession, ledger: VoteLedger, alice, post, value):
        with pytest.raises(InvalidValue):
            await ledger.create(db_session, alice, post, value)
        assert await ledger.votes_for_voteable(db_session, post) == []

    @pytest.mark.asyncio
    async def test_missing_voter(self, db_session: AsyncSession, ledger: VoteLedger, post):
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, EntityRef("User", "doesnotexist"), post, 1)

    @pytest.mark.asyncio
    async def test_unknown_voter_type(self, db_session: AsyncSession, ledger: VoteLedger, post):
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, EntityRef("Ghost", "1"), post, 1)

    @pytest.mark.asyncio
    async def test_missing_voteable(self, db_session: AsyncSession, ledger: VoteLedger, alice):
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, alice, EntityRef("Post", "doesnotexist"), 1)

    @pytest.mark.asyncio
    async def test_unsaved_voteable(self, db_session: AsyncSession, ledger: VoteLedger, alice):
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, alice, Post(title="Draft"), 1)

    @pytest.mark.asyncio
    async def test_unregistered_voteable_type(self, db_session: AsyncSession, ledger: VoteLedger, alice, bob):
        """Users are voters here, not voteables."""
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, alice, bob, 1)

    @pytest.mark.asyncio
    async def test_unmapped_voter(self, db_session: AsyncSession, ledger: VoteLedger, post):
        with pytest.raises(DanglingReference):
            await ledger.create(db_session, object(), post, 1)

    @pytest.mark.asyncio
    async def test_vote_response(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        vote = await ledger.create(db_session, alice, post, 1)
        data = VoteResponse.model_validate(vote)
        assert data.id == vote.id
        assert data.voteable_id == post.id
        assert data.value == 1


class TestDeleteVote:
    """Removing votes."""

    @pytest.mark.asyncio
    async def test_delete_vote(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        vote = await ledger.create(db_session, alice, post, 1)
        await ledger.delete(db_session, vote)

        with pytest.raises(NotFound):
            await ledger.get(db_session, vote.id)

    @pytest.mark.asyncio
    async def test_delete_twice(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        vote = await ledger.create(db_session, alice, post, 1)
        await ledger.delete(db_session, vote.id)
        with pytest.raises(NotFound):
            await ledger.delete(db_session, vote)

    @pytest.mark.asyncio
    async def test_delete_unknown_id(self, db_session: AsyncSession, ledger: VoteLedger):
        with pytest.raises(NotFound):
            await ledger.delete(db_session, "nosuchvote")

    @pytest.mark.asyncio
    async def test_delete_leaves_voter_and_voteable(
        self, db_session: AsyncSession, ledger: VoteLedger, alice, post
    ):
        vote = await ledger.create(db_session, alice, post, 1)
        await ledger.delete(db_session, vote)

        assert await db_session.get(User, alice.id, populate_existing=True) is not None
        assert await db_session.get(Post, post.id, populate_existing=True) is not None


class TestLookups:
    """Finding votes by voter and voteable."""

    @pytest.mark.asyncio
    async def test_get(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        vote = await ledger.create(db_session, alice, post, 1)
        assert (await ledger.get(db_session, vote.id)).id == vote.id

    @pytest.mark.asyncio
    async def test_find_by_voter_and_voteable(
        self, db_session: AsyncSession, ledger: VoteLedger, alice, bob, post
    ):
        vote = await ledger.create(db_session, alice, post, -1)

        found = await ledger.find_by_voter_and_voteable(db_session, alice, post)
        assert found is not None and found.id == vote.id
        assert await ledger.find_by_voter_and_voteable(db_session, alice, post, value=-1) is not None
        assert await ledger.find_by_voter_and_voteable(db_session, alice, post, value=1) is None
        assert await ledger.find_by_voter_and_voteable(db_session, bob, post) is None

    @pytest.mark.asyncio
    async def test_find_rejects_invalid_value(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        with pytest.raises(InvalidValue):
            await ledger.find_by_voter_and_voteable(db_session, alice, post, value=5)

    @pytest.mark.asyncio
    async def test_votes_by_voter(
        self, db_session: AsyncSession, ledger: VoteLedger, alice, bob, post, comment
    ):
        await ledger.create(db_session, alice, post, 1)
        await ledger.create(db_session, alice, comment, -1)
        await ledger.create(db_session, bob, post, 1)

        votes = await ledger.votes_by_voter(db_session, alice)
        assert {v.voteable_type for v in votes} == {"Post", "Comment"}
        assert all(v.voter_id == alice.id for v in votes)

    @pytest.mark.asyncio
    async def test_votes_for_voteable(
        self, db_session: AsyncSession, ledger: VoteLedger, alice, bob, post, comment
    ):
        await ledger.create(db_session, alice, post, 1)
        await ledger.create(db_session, bob, post, -1)
        await ledger.create(db_session, bob, comment, 1)

        votes = await ledger.votes_for_voteable(db_session, post)
        assert len(votes) == 2
        assert all(v.voteable_id == post.id for v in votes)


class TestNullifyVoteable:
    """Votes outlive a deleted voteable."""

    @pytest.mark.asyncio
    async def test_nullify(self, db_session: AsyncSession, ledger: VoteLedger, alice, bob, post):
        first = await ledger.create(db_session, alice, post, 1)
        await ledger.create(db_session, bob, post, 1)

        assert await ledger.nullify_voteable(db_session, post) == 2
        await db_session.delete(post)
        await db_session.flush()

        vote = await ledger.get(db_session, first.id)
        assert vote.voteable is None
        assert vote.voter == EntityRef("User", alice.id)
        assert await ledger.votes_for_voteable(db_session, post) == []
        assert len(await ledger.votes_by_voter(db_session, alice)) == 1

    @pytest.mark.asyncio
    async def test_delete_detached_vote(self, db_session: AsyncSession, ledger: VoteLedger, alice, post):
        """A vote whose voteable is gone can still be deleted."""
        vote = await ledger.create(db_session, alice, post, 1)
        await ledger.nullify_voteable(db_session, post)
        await db_session.delete(post)
        await db_session.flush()

        await ledger.delete(db_session, vote)
        with pytest.raises(NotFound):
            await ledger.get(db_session, vote.id)

    @pytest.mark.asyncio
    async def test_nullify_without_votes(self, db_session: AsyncSession, ledger: VoteLedger, post):
        assert await ledger.nullify_voteable(db_session, post) == 0
