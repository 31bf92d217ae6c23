"""
Vote ledger service.

Provides:
- Vote creation and deletion, with counter maintenance in the same SAVEPOINT
- Lookups by voter, voteable or both
- Nullifying the votes of a voteable that is about to be deleted
"""
import logging
from typing import Optional, Union
from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import DanglingReference, InvalidValue, NotFound, StorageFailure
from votekit.models.refs import EntityLike, EntityRef, entity_ref, resolve
from votekit.models.vote import Vote, VOTE_FOR, VOTE_AGAINST, VOTE_VALUES
from votekit.services.counter import CounterMaintainer
from votekit.services.registry import VoteableRegistry

logger = logging.getLogger(__name__)


def voteable_clause(voteable: EntityLike):
    """WHERE clause selecting the ledger rows of one voteable."""
    ref = entity_ref(voteable)
    return and_(Vote.voteable_type == ref.type, Vote.voteable_id == ref.id)


def voter_clause(voter: EntityLike):
    """WHERE clause selecting the ledger rows cast by one voter."""
    ref = entity_ref(voter)
    return and_(Vote.voter_type == ref.type, Vote.voter_id == ref.id)


def validate_value(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value not in VOTE_VALUES:
        raise InvalidValue(f"Vote value must be +1 or -1, got {value!r}")
    return value


class VoteLedger:
    """Storage and identity of vote rows."""

    def __init__(self, registry: VoteableRegistry, counters: Optional[CounterMaintainer] = None):
        self.registry = registry
        self.counters = counters or CounterMaintainer(registry)

    async def create(
        self,
        db: AsyncSession,
        voter: EntityLike,
        voteable: EntityLike,
        value: int
    ) -> Vote:
        """
        Record a vote and update the voteable's counter, if it keeps one.

        Both writes share one SAVEPOINT: if the counter update fails the
        vote row is rolled back with it.
        """
        validate_value(value)
        voter_ref = entity_ref(voter)
        voteable_ref = entity_ref(voteable)
        if not self.registry.is_registered(voteable_ref.type):
            logger.warning("Vote rejected: %s is not a registered voteable type", voteable_ref.type)
            raise DanglingReference(f"{voteable_ref.type} is not registered as voteable")

        try:
            await self._resolve(db, voter_ref, "voter")
            await self._resolve(db, voteable_ref, "voteable")
            async with db.begin_nested():
                vote = Vote(
                    voter_type=voter_ref.type,
                    voter_id=voter_ref.id,
                    voteable_type=voteable_ref.type,
                    voteable_id=voteable_ref.id,
                    value=value,
                )
                db.add(vote)
                await db.flush()
                await self.counters.vote_created(db, vote)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Could not record vote on {voteable_ref}: {e}") from e

        logger.info("Vote %s recorded: %+d by %s on %s", vote.id, value, voter_ref, voteable_ref)
        return vote

    async def vote_for(self, db: AsyncSession, voter: EntityLike, voteable: EntityLike) -> Vote:
        return await self.create(db, voter, voteable, VOTE_FOR)

    async def vote_against(self, db: AsyncSession, voter: EntityLike, voteable: EntityLike) -> Vote:
        return await self.create(db, voter, voteable, VOTE_AGAINST)

    async def delete(self, db: AsyncSession, vote: Union[Vote, str]) -> None:
        """
        Delete a vote. The counter is decremented before the row goes away,
        in the same SAVEPOINT.
        """
        vote_id = vote.id if isinstance(vote, Vote) else vote
        try:
            async with db.begin_nested():
                existing = await db.get(Vote, vote_id, populate_existing=True)
                if existing is None:
                    raise NotFound(f"Vote {vote_id} not found")
                await self.counters.vote_destroyed(db, existing)
                await db.delete(existing)
                await db.flush()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Could not delete vote {vote_id}: {e}") from e

        logger.info("Vote %s deleted", vote_id)

    async def get(self, db: AsyncSession, vote_id: str) -> Vote:
        try:
            vote = await db.get(Vote, vote_id)
        except SQLAlchemyError as e:
            raise StorageFailure(str(e)) from e
        if vote is None:
            raise NotFound(f"Vote {vote_id} not found")
        return vote

    async def find_by_voter_and_voteable(
        self,
        db: AsyncSession,
        voter: EntityLike,
        voteable: EntityLike,
        value: Optional[int] = None
    ) -> Optional[Vote]:
        """First vote cast by voter on voteable, optionally with a given value."""
        stmt = select(Vote).where(voter_clause(voter), voteable_clause(voteable))
        if value is not None:
            stmt = stmt.where(Vote.value == validate_value(value))
        stmt = stmt.order_by(Vote.created, Vote.id).limit(1)
        return (await self._execute(db, stmt)).scalars().first()

    async def votes_for_voteable(self, db: AsyncSession, voteable: EntityLike) -> list[Vote]:
        stmt = select(Vote).where(voteable_clause(voteable)).order_by(Vote.created, Vote.id)
        return list((await self._execute(db, stmt)).scalars().all())

    async def votes_by_voter(self, db: AsyncSession, voter: EntityLike) -> list[Vote]:
        stmt = select(Vote).where(voter_clause(voter)).order_by(Vote.created, Vote.id)
        return list((await self._execute(db, stmt)).scalars().all())

    async def nullify_voteable(self, db: AsyncSession, voteable: EntityLike) -> int:
        """
        Detach all votes from a voteable that is being deleted.

        The vote rows are kept as history with a NULL voteable reference.
        Returns the number of votes detached.
        """
        ref = entity_ref(voteable)
        stmt = (
            update(Vote)
            .where(voteable_clause(ref))
            .values(voteable_type=None, voteable_id=None)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self._execute(db, stmt)
        logger.info("Detached %s votes from %s", result.rowcount, ref)
        return result.rowcount

    async def _resolve(self, db: AsyncSession, ref: EntityRef, role: str) -> None:
        try:
            await resolve(db, ref)
        except DanglingReference:
            logger.warning("Vote rejected: %s %s cannot be resolved", role, ref)
            raise

    @staticmethod
    async def _execute(db: AsyncSession, stmt):
        try:
            return await db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageFailure(str(e)) from e
