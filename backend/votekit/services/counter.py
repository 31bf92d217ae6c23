"""
Counter maintenance for voteables that keep a denormalized vote sum.

Each ledger mutation is mirrored by a single UPDATE of the form
``col = col + delta`` so concurrent votes never overwrite each other.
"""
import logging
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import DanglingReference, InvalidOption, StorageFailure
from votekit.models.refs import EntityLike, EntityRef, coerce_key, entity_ref, primary_key_column
from votekit.models.vote import Vote
from votekit.services.registry import VoteableRegistry

logger = logging.getLogger(__name__)


class CounterMaintainer:
    """Keeps registered counter columns equal to the sum of vote values."""

    def __init__(self, registry: VoteableRegistry):
        self.registry = registry

    async def vote_created(self, db: AsyncSession, vote: Vote) -> None:
        await self._increment(db, vote, vote.value)

    async def vote_destroyed(self, db: AsyncSession, vote: Vote) -> None:
        await self._increment(db, vote, -vote.value)

    async def _increment(self, db: AsyncSession, vote: Vote, delta: int) -> None:
        if vote.voteable_type is None or vote.voteable_id is None:
            return
        column = self.registry.counter_column_for(vote.voteable_type)
        if column is None:
            return

        model = self.registry.registration_for(vote.voteable_type).model
        counter = getattr(model, column)
        stmt = (
            update(model)
            .where(primary_key_column(model) == coerce_key(model, vote.voteable_id))
            .values({counter: counter + delta})
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Counter update failed: {e}") from e
        if result.rowcount != 1:
            logger.error(
                "Counter %s.%s not updated for %s:%s (rows=%s)",
                model.__name__, column, vote.voteable_type, vote.voteable_id, result.rowcount
            )
            raise StorageFailure(
                f"Could not update {model.__name__}.{column} for {vote.voteable_id}"
            )
        logger.debug(
            "%s.%s %+d for %s", model.__name__, column, delta, vote.voteable_id
        )

    async def reload_counter(self, db: AsyncSession, voteable: EntityLike) -> int:
        """
        Re-read the counter column from storage.

        Mapped instances are refreshed in place. This reads the stored
        value; it does not recompute it from the ledger (use votes_total
        for that).
        """
        ref = entity_ref(voteable)
        column = self.registry.counter_column_for(ref.type)
        if column is None:
            raise InvalidOption(f"{ref.type} does not keep a vote counter")

        model = self.registry.registration_for(ref.type).model
        try:
            if not isinstance(voteable, EntityRef):
                await db.refresh(voteable, attribute_names=[column])
                return getattr(voteable, column)

            result = await db.execute(
                select(getattr(model, column)).where(
                    primary_key_column(model) == coerce_key(model, ref.id)
                )
            )
        except SQLAlchemyError as e:
            raise StorageFailure(f"Could not reload {model.__name__}.{column}: {e}") from e
        row = result.one_or_none()
        if row is None:
            raise DanglingReference(f"{ref} does not exist")
        return row[0]
