"""
SQLAlchemy models for votekit.

- Vote: the polymorphic vote ledger
- EntityRef: (type, id) identity of voters and voteables
"""
from votekit.models.base import BaseModel, TimestampMixin, generate_id
from votekit.models.refs import EntityRef, entity_ref
from votekit.models.vote import Vote, VOTE_FOR, VOTE_AGAINST, VOTE_VALUES

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "generate_id",
    "EntityRef",
    "entity_ref",
    "Vote",
    "VOTE_FOR",
    "VOTE_AGAINST",
    "VOTE_VALUES",
]
