"""
Tally option schema.
"""
from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import text
from sqlalchemy.sql import ClauseElement

from votekit.core.exceptions import InvalidOption

DEFAULT_ORDER = "count desc"


class TallyOptions(BaseModel):
    """
    Filters for a tally.

    start_at / end_at bound the vote creation time (inclusive), conditions
    is an extra predicate ANDed into the query, at_least / at_most bound the
    per-voteable vote count, order defaults to descending count and limit
    caps the number of rows.
    """
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    conditions: Optional[Any] = None
    at_least: Optional[int] = Field(None, ge=0)
    at_most: Optional[int] = Field(None, ge=0)
    order: Any = (DEFAULT_ORDER,)
    limit: Optional[int] = Field(None, ge=0)

    class Config:
        extra = "forbid"
        frozen = True
        arbitrary_types_allowed = True

    @field_validator("conditions")
    @classmethod
    def check_conditions(cls, v):
        if v is None or isinstance(v, ClauseElement):
            return v
        if isinstance(v, str):
            return text(v)
        raise ValueError("conditions must be a SQL expression or string")

    @field_validator("order")
    @classmethod
    def check_order(cls, v):
        items = tuple(v) if isinstance(v, (list, tuple)) else (v,)
        if not items:
            raise ValueError("order must not be empty")
        for item in items:
            if not isinstance(item, (str, ClauseElement)):
                raise ValueError(f"cannot order by {item!r}")
        return items

    @classmethod
    def build(cls, **options) -> "TallyOptions":
        """Validate raw keyword options, raising InvalidOption on any problem."""
        try:
            return cls(**options)
        except ValidationError as e:
            raise InvalidOption(str(e)) from None
