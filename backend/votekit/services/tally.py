"""
Tally builder.

Ranks the voteables of one type by how many votes they received:

    SELECT posts.*, COUNT(votes.id) AS count
    FROM posts LEFT OUTER JOIN votes
      ON votes.voteable_id = posts.id AND votes.voteable_type = 'Post'
         [AND votes.created >= :start_at] [AND votes.created <= :end_at]
    [WHERE <conditions> AND <scope criteria>]
    GROUP BY posts.id
    HAVING COUNT(votes.id) > 0 [AND >= :at_least] [AND <= :at_most]
    ORDER BY count DESC [, <scope order>]
    [LIMIT :limit]
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union
from sqlalchemy import Select, String, and_, cast, func, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import StorageFailure
from votekit.models.refs import entity_ref, primary_key_column
from votekit.models.vote import Vote
from votekit.schemas.tally import TallyOptions
from votekit.schemas.vote import TallyRowResponse
from votekit.services.registry import VoteableRegistry

logger = logging.getLogger(__name__)


@dataclass
class TallyRow:
    """A voteable and the number of votes that matched the tally filters."""
    entity: Any
    count: int

    def to_response(self) -> TallyRowResponse:
        ref = entity_ref(self.entity)
        attributes = {
            attr.key: getattr(self.entity, attr.key)
            for attr in inspect(self.entity).mapper.column_attrs
        }
        return TallyRowResponse(
            voteable_type=ref.type,
            voteable_id=ref.id,
            count=self.count,
            attributes=attributes,
        )


def _order_clauses(order, count_label):
    clauses = []
    for item in order:
        if not isinstance(item, str):
            clauses.append(item)
            continue
        parts = item.split()
        if parts and parts[0].lower() == "count" and len(parts) <= 2:
            direction = parts[1].lower() if len(parts) == 2 else "asc"
            if direction in ("asc", "desc"):
                clauses.append(count_label.desc() if direction == "desc" else count_label.asc())
                continue
        clauses.append(text(item))
    return clauses


def build_tally_query(
    registry: VoteableRegistry,
    entity_type: Union[str, type],
    options: Optional[TallyOptions] = None,
    scope: Optional[Select] = None
) -> Select:
    """
    Build the tally statement for a registered voteable type.

    scope may be an existing select() over the model; its criteria and
    joins are kept and ANDed with the tally filters. Its ORDER BY, if any,
    only breaks ties after the tally order.
    """
    if options is None:
        options = TallyOptions()
    registration = registry.registration_for(entity_type)
    model = registration.model

    pk = primary_key_column(model)
    key = pk if isinstance(pk.type, String) else cast(pk, String)

    # Filtered ledger rows, joined so voteables without votes still group
    join_criteria = [Vote.voteable_id == key, Vote.voteable_type == registration.entity_type]
    if options.start_at is not None:
        join_criteria.append(Vote.created >= options.start_at)
    if options.end_at is not None:
        join_criteria.append(Vote.created <= options.end_at)

    vote_count = func.count(Vote.id)
    count_label = vote_count.label("count")

    scope_order = tuple(scope._order_by_clauses) if scope is not None else ()
    stmt = scope.order_by(None) if scope is not None else select(model)
    stmt = stmt.add_columns(count_label).join_from(
        model, Vote, and_(*join_criteria), isouter=True
    )
    if options.conditions is not None:
        stmt = stmt.where(options.conditions)

    having = [vote_count > 0]
    if options.at_least is not None:
        having.append(vote_count >= options.at_least)
    if options.at_most is not None:
        having.append(vote_count <= options.at_most)

    stmt = (
        stmt.group_by(pk)
        .having(and_(*having))
        .order_by(*_order_clauses(options.order, count_label), *scope_order)
    )
    if options.limit is not None:
        stmt = stmt.limit(options.limit)
    return stmt


async def tally(
    db: AsyncSession,
    registry: VoteableRegistry,
    entity_type: Union[str, type],
    scope: Optional[Select] = None,
    **options
) -> list[TallyRow]:
    """
    Vote counts for all voteables of a type, ranked by count (descending
    unless order says otherwise). Voteables without matching votes are
    never included.

    Options: start_at, end_at, conditions, at_least, at_most, order, limit.
    Unknown options raise InvalidOption before any SQL is issued.
    """
    tally_options = TallyOptions.build(**options)
    stmt = build_tally_query(registry, entity_type, tally_options, scope)
    logger.debug("Tally %s with %s", registry.registration_for(entity_type).entity_type, options)

    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise StorageFailure(f"Tally failed: {e}") from e
    return [TallyRow(entity=row[0], count=row[-1]) for row in result.all()]
