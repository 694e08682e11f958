"""Ports for persisting records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from formingest.domain.model import Coding, Record, Reference, ResourceType


class RecordNotFoundError(LookupError):
    """Raised when a record cannot be loaded by type and id."""

    def __init__(self, resource_type: ResourceType, record_id: str) -> None:
        super().__init__(f"{resource_type}/{record_id} not found")
        self.resource_type = resource_type
        self.record_id = record_id


class PersistenceError(RuntimeError):
    """Raised by repositories when the storage backend rejects an operation."""


class ConcurrentUpdateError(PersistenceError):
    """Raised when a record changed in storage since it was loaded."""


@dataclass(slots=True, frozen=True)
class RecordQuery:
    """Search criteria: all given conditions must hold.

    ``fields`` compares top-level attributes by string value; references match
    on their ``Type/id`` rendering. ``tag`` matches on system and code.
    """

    resource_type: ResourceType
    fields: Mapping[str, str] = field(default_factory=dict[str, str])
    tag: Coding | None = None
    subject: Reference | None = None


@runtime_checkable
class RecordRepository(Protocol):
    """Persistence contract for records of every kind."""

    def load(self, resource_type: ResourceType, record_id: str) -> Record:
        """Return the stored record or raise ``RecordNotFoundError``."""
        ...

    def get(self, resource_type: ResourceType, record_id: str) -> Record | None: ...

    def upsert(self, record: Record) -> None:
        """Insert or replace ``record``; raise ``ConcurrentUpdateError`` on a stale version."""
        ...

    def search(self, query: RecordQuery) -> list[Record]: ...

    def delete(self, resource_type: ResourceType, record_id: str) -> None: ...
