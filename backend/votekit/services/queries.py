"""
Per-voteable aggregates read straight from the vote ledger.

These never consult a denormalized counter column, so they are the ground
truth when a counter is suspected to have drifted.
"""
import enum
from typing import AsyncIterator, Union
from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import InvalidOption, StorageFailure
from votekit.models.refs import EntityLike, EntityRef, entity_ref
from votekit.models.vote import Vote, VOTE_FOR, VOTE_AGAINST
from votekit.schemas.vote import VoteSummary
from votekit.services.ledger import voteable_clause, voter_clause


class VoteDirection(str, enum.Enum):
    """Which votes voted_by() looks for."""
    FOR = "for"
    AGAINST = "against"
    ANY = "any"


async def _scalar(db: AsyncSession, stmt) -> int:
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise StorageFailure(str(e)) from e
    return int(result.scalar_one())


async def votes_for(db: AsyncSession, voteable: EntityLike) -> int:
    return await _scalar(
        db,
        select(func.count(Vote.id)).where(voteable_clause(voteable), Vote.value == VOTE_FOR)
    )


async def votes_against(db: AsyncSession, voteable: EntityLike) -> int:
    return await _scalar(
        db,
        select(func.count(Vote.id)).where(voteable_clause(voteable), Vote.value == VOTE_AGAINST)
    )


async def votes_count(db: AsyncSession, voteable: EntityLike) -> int:
    return await _scalar(db, select(func.count(Vote.id)).where(voteable_clause(voteable)))


async def votes_total(db: AsyncSession, voteable: EntityLike) -> int:
    """Net score: sum of vote values, 0 when there are no votes."""
    return await _scalar(
        db,
        select(func.coalesce(func.sum(Vote.value), 0)).where(voteable_clause(voteable))
    )


class VoterSequence:
    """
    Voters of one voteable, one reference per vote, oldest vote first.

    Iteration is lazy and restartable: every ``async for`` runs the query
    again. Voters appear once per vote; nothing is deduplicated.
    """

    def __init__(self, db: AsyncSession, voteable: EntityLike):
        self.db = db
        self.clause = voteable_clause(voteable)

    def __aiter__(self) -> AsyncIterator[EntityRef]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[EntityRef]:
        stmt = (
            select(Vote.voter_type, Vote.voter_id)
            .where(self.clause)
            .order_by(Vote.created, Vote.id)
        )
        try:
            result = await self.db.stream(stmt)
            async for voter_type, voter_id in result:
                yield EntityRef(voter_type, voter_id)
        except SQLAlchemyError as e:
            raise StorageFailure(str(e)) from e

    async def all(self) -> list[EntityRef]:
        return [voter async for voter in self]


def voters_who_voted(db: AsyncSession, voteable: EntityLike) -> VoterSequence:
    return VoterSequence(db, voteable)


async def voted_by(
    db: AsyncSession,
    voteable: EntityLike,
    voter: EntityLike,
    direction: Union[VoteDirection, str] = VoteDirection.ANY
) -> bool:
    """Whether voter has voted on voteable (for, against, or either way)."""
    try:
        direction = VoteDirection(direction)
    except ValueError:
        raise InvalidOption(f"Unknown vote direction {direction!r}") from None

    criteria = [voteable_clause(voteable), voter_clause(voter)]
    if direction is VoteDirection.FOR:
        criteria.append(Vote.value == VOTE_FOR)
    elif direction is VoteDirection.AGAINST:
        criteria.append(Vote.value == VOTE_AGAINST)

    try:
        result = await db.execute(select(exists().where(*criteria)))
    except SQLAlchemyError as e:
        raise StorageFailure(str(e)) from e
    return bool(result.scalar())


async def vote_summary(db: AsyncSession, voteable: EntityLike) -> VoteSummary:
    """All four ledger aggregates for one voteable."""
    ref = entity_ref(voteable)
    return VoteSummary(
        voteable_type=ref.type,
        voteable_id=ref.id,
        votes_for=await votes_for(db, ref),
        votes_against=await votes_against(db, ref),
        votes_count=await votes_count(db, ref),
        votes_total=await votes_total(db, ref),
    )
