"""
Vote and tally read schemas.
"""
from typing import Optional, Any
from pydantic import BaseModel
from datetime import datetime


class VoteResponse(BaseModel):
    """Vote ledger entry."""
    id: str
    voter_type: Optional[str] = None
    voter_id: Optional[str] = None
    voteable_type: Optional[str] = None  # None once the voteable was deleted
    voteable_id: Optional[str] = None
    value: int
    created: datetime
    updated: datetime

    class Config:
        from_attributes = True


class VoteSummary(BaseModel):
    """Ledger aggregates for one voteable."""
    voteable_type: str
    voteable_id: str
    votes_for: int = 0
    votes_against: int = 0
    votes_count: int = 0
    votes_total: int = 0


class TallyRowResponse(BaseModel):
    """One tally row: the voteable's attributes plus its vote count."""
    voteable_type: str
    voteable_id: str
    count: int
    attributes: dict[str, Any] = {}
