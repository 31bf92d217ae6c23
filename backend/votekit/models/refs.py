"""
Polymorphic (type, id) references to voters and voteables.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union
from sqlalchemy import Column, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.asyncio import AsyncSession

from votekit.core.exceptions import DanglingReference
from votekit.db.base import Base


@dataclass(frozen=True)
class EntityRef:
    """Identity of any mapped entity: class name plus primary key as text."""
    type: str
    id: str

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


EntityLike = Union[EntityRef, Any]


def primary_key_column(model: type) -> Column:
    """Single primary key column of a mapped class."""
    columns = inspect(model).primary_key
    if len(columns) != 1:
        raise TypeError(f"{model.__name__} must have a single-column primary key")
    return columns[0]


def entity_ref(entity: EntityLike) -> EntityRef:
    """
    Build the polymorphic reference for a mapped instance.

    EntityRef values pass through untouched. Instances that are not mapped,
    or whose primary key has not been assigned yet, cannot be referenced.
    """
    if isinstance(entity, EntityRef):
        return entity
    try:
        mapper = inspect(type(entity))
    except NoInspectionAvailable:
        raise DanglingReference(f"{entity!r} is not a mapped entity") from None
    key = mapper.primary_key_from_instance(entity)
    if len(key) != 1 or key[0] is None:
        raise DanglingReference(
            f"{type(entity).__name__} instance has no primary key yet"
        )
    return EntityRef(type(entity).__name__, key[0])


def model_for_type(type_name: str) -> Optional[type]:
    """Mapped class on the shared Base whose class name is type_name."""
    for mapper in Base.registry.mappers:
        if mapper.class_.__name__ == type_name:
            return mapper.class_
    return None


def coerce_key(model: type, key: str) -> Any:
    """Convert a stored text key back to the primary key's Python type."""
    column = primary_key_column(model)
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return key
    if python_type is str:
        return key
    try:
        return python_type(key)
    except (TypeError, ValueError):
        raise DanglingReference(
            f"{key!r} is not a valid {model.__name__} key"
        ) from None


async def resolve(db: AsyncSession, entity: EntityLike) -> Any:
    """Load the row an entity or reference points at, or raise DanglingReference."""
    ref = entity_ref(entity)
    model = model_for_type(ref.type)
    if model is None:
        raise DanglingReference(f"Unknown entity type {ref.type!r}")
    instance = await db.get(model, coerce_key(model, ref.id))
    if instance is None:
        raise DanglingReference(f"{ref} does not exist")
    return instance
