"""
core/models.py -- Shared domain building blocks.

Reference models a foreign key as returned by a store: either the bare
identifier (IdRef) or the referenced record already loaded (Expanded). Stores
decide which one to return; mappers branch on the variant, never on the shape
of the value.

Page is the pagination envelope every list endpoint shares.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class IdRef:
    id: str


@dataclass(frozen=True)
class Expanded(Generic[T]):
    record: T

    @property
    def id(self) -> str:
        return self.record.id


Reference = Union[IdRef, Expanded[T]]


def reference_id(ref: Reference) -> str:
    """Return the identifier carried by either variant."""
    return ref.id


@dataclass
class Page(Generic[T]):
    total: int
    page: int
    limit: int
    data: list[T] = field(default_factory=list)
