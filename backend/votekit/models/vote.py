"""
Vote model.
"""
from typing import Optional
from sqlalchemy import String, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column
from votekit.models.base import BaseModel
from votekit.models.refs import EntityRef

VOTE_FOR = 1
VOTE_AGAINST = -1
VOTE_VALUES = (VOTE_FOR, VOTE_AGAINST)


class Vote(BaseModel):
    """A single ledger entry: one voter's +1/-1 on one voteable."""
    __tablename__ = "votes"
    __table_args__ = (
        Index("ix_votes_voteable", "voteable_type", "voteable_id"),
        Index("ix_votes_voter", "voter_type", "voter_id"),
    )

    # Polymorphic voter reference
    voter_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    voter_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Polymorphic voteable reference (nulled when the voteable is deleted)
    voteable_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    voteable_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # +1 for, -1 against
    value: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def voter(self) -> Optional[EntityRef]:
        if self.voter_type is None or self.voter_id is None:
            return None
        return EntityRef(self.voter_type, self.voter_id)

    @property
    def voteable(self) -> Optional[EntityRef]:
        if self.voteable_type is None or self.voteable_id is None:
            return None
        return EntityRef(self.voteable_type, self.voteable_id)

    def __repr__(self) -> str:
        return (
            f"<Vote {self.value:+d} by {self.voter_type}:{self.voter_id} "
            f"on {self.voteable_type}:{self.voteable_id}>"
        )
