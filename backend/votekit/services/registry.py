"""
Voteable registry.

Maps each voteable entity type to its optional denormalized counter column.
Applications build one registry at startup, register their voteable models
and pass the registry to the ledger, counter maintainer and tally builder.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import event, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import ColumnProperty

from votekit.core.config import settings
from votekit.core.exceptions import InvalidOption, ReadOnlyCounter
from votekit.models.refs import primary_key_column

logger = logging.getLogger(__name__)

REGISTER_OPTIONS = frozenset({"vote_counter"})

# Guarded (model, column) pairs and how many registrations rely on each.
# Listeners live on the mapped class, so every registry shares them.
_guards: Counter = Counter()


@dataclass(frozen=True)
class VoteableRegistration:
    """Configuration of one voteable type."""
    entity_type: str
    model: type
    counter_column: Optional[str] = None


def _reject_counter_write(target, value, oldvalue, initiator):
    """Attribute 'set' listener guarding registered counter columns."""
    if inspect(target).persistent:
        raise ReadOnlyCounter(
            f"{type(target).__name__}.{initiator.key} is maintained by the vote ledger"
        )
    return value


class VoteableRegistry:
    """Process-wide mapping of entity type to counter column."""

    def __init__(self):
        self._registrations: dict[str, VoteableRegistration] = {}

    def register(self, model: type, **options) -> VoteableRegistration:
        """
        Register a mapped class as voteable.

        Options:
            vote_counter: True to keep the sum of votes in the default
                counter column, or the name of a custom column.

        Registering the same type again replaces its configuration.
        """
        unknown = set(options) - REGISTER_OPTIONS
        if unknown:
            raise InvalidOption(f"Unknown voteable options: {', '.join(sorted(unknown))}")

        try:
            mapper = inspect(model)
        except NoInspectionAvailable:
            raise InvalidOption(f"{model!r} is not a mapped class") from None
        try:
            primary_key_column(model)
        except TypeError as e:
            raise InvalidOption(str(e)) from None

        counter = options.get("vote_counter")
        if counter is True:
            counter_column = settings.DEFAULT_VOTE_COUNTER_COLUMN
        elif not counter:
            counter_column = None
        elif isinstance(counter, str):
            counter_column = counter
        else:
            raise InvalidOption(f"vote_counter must be a bool or column name, got {counter!r}")

        if counter_column is not None:
            prop = mapper.attrs.get(counter_column)
            if not isinstance(prop, ColumnProperty):
                raise InvalidOption(
                    f"{model.__name__} has no column {counter_column!r} for the vote counter"
                )

        entity_type = model.__name__
        previous = self._registrations.get(entity_type)
        if previous is not None and previous.counter_column != counter_column:
            logger.warning(
                "Re-registering %s: vote counter %r replaced by %r",
                entity_type, previous.counter_column, counter_column
            )

        old_guard = (previous.model, previous.counter_column) if previous and previous.counter_column else None
        new_guard = (model, counter_column) if counter_column else None
        if old_guard != new_guard:
            if old_guard is not None:
                self._unprotect(*old_guard)
            if new_guard is not None:
                self._protect(*new_guard)

        registration = VoteableRegistration(entity_type, model, counter_column)
        self._registrations[entity_type] = registration
        logger.info("Registered voteable %s (counter=%s)", entity_type, counter_column)
        return registration

    def is_registered(self, entity_type: Union[str, type]) -> bool:
        return self._name(entity_type) in self._registrations

    def registration_for(self, entity_type: Union[str, type]) -> VoteableRegistration:
        name = self._name(entity_type)
        try:
            return self._registrations[name]
        except KeyError:
            raise InvalidOption(f"{name} is not registered as voteable") from None

    def counter_column_for(self, entity_type: Union[str, type]) -> Optional[str]:
        registration = self._registrations.get(self._name(entity_type))
        return registration.counter_column if registration else None

    def __contains__(self, entity_type) -> bool:
        return self.is_registered(entity_type)

    def __iter__(self):
        return iter(self._registrations.values())

    @staticmethod
    def _name(entity_type: Union[str, type]) -> str:
        return entity_type if isinstance(entity_type, str) else entity_type.__name__

    @staticmethod
    def _protect(model: type, column: str) -> None:
        _guards[(model, column)] += 1
        attr = getattr(model, column)
        if not event.contains(attr, "set", _reject_counter_write):
            event.listen(attr, "set", _reject_counter_write, retval=True)

    @staticmethod
    def _unprotect(model: type, column: str) -> None:
        _guards[(model, column)] -= 1
        if _guards[(model, column)] > 0:
            return
        del _guards[(model, column)]
        attr = getattr(model, column)
        if event.contains(attr, "set", _reject_counter_write):
            event.remove(attr, "set", _reject_counter_write)
