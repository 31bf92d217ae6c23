"""
Typed failures raised by the voting engine.

Every error derives from VotingError so callers can branch on the whole
family or on a single case. Persistence errors are never swallowed; they
surface as StorageFailure with the SQLAlchemy error chained as __cause__.
"""


class VotingError(Exception):
    """Base class for all voting errors."""


class InvalidValue(VotingError, ValueError):
    """Vote value outside {+1, -1}."""


class DanglingReference(VotingError, LookupError):
    """Voter or voteable could not be resolved when casting a vote."""


class NotFound(VotingError, LookupError):
    """Vote does not exist (or was already deleted)."""


class InvalidOption(VotingError, ValueError):
    """Unrecognised or invalid option passed to the registry or tally."""


class ReadOnlyCounter(VotingError, AttributeError):
    """Attempt to write a registered vote counter column directly."""


class StorageFailure(VotingError):
    """Underlying persistence error, including failed counter increments."""
