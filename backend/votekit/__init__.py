"""
votekit: up/down votes on any SQLAlchemy model.

Register voteable models on a VoteableRegistry, record votes through a
VoteLedger, and read aggregates with the query functions or tally().
"""
from votekit.core.exceptions import (
    VotingError, InvalidValue, DanglingReference, NotFound,
    InvalidOption, ReadOnlyCounter, StorageFailure
)
from votekit.models import EntityRef, entity_ref, Vote, VOTE_FOR, VOTE_AGAINST
from votekit.schemas import TallyOptions
from votekit.services.registry import VoteableRegistry, VoteableRegistration
from votekit.services.counter import CounterMaintainer
from votekit.services.ledger import VoteLedger
from votekit.services.queries import (
    VoteDirection, votes_for, votes_against, votes_count, votes_total,
    voters_who_voted, voted_by, vote_summary
)
from votekit.services.tally import TallyRow, build_tally_query, tally

__version__ = "0.1.0"
