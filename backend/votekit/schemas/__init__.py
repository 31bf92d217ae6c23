"""
Pydantic schemas for tally options and serialised results.
"""
from votekit.schemas.tally import TallyOptions
from votekit.schemas.vote import VoteResponse, VoteSummary, TallyRowResponse
