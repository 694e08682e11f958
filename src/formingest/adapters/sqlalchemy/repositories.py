"""Record repository backed by a SQLAlchemy session."""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from formingest.adapters.sqlalchemy.mappings import record_table
from formingest.domain.model import Reference, record_from_document, record_to_document
from formingest.domain.ports import (
    ConcurrentUpdateError,
    PersistenceError,
    RecordNotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from formingest.domain.model import Record, ResourceType
    from formingest.domain.ports import RecordQuery

log = getLogger(__name__)


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Re-raise driver failures as the domain ``PersistenceError``."""

    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{action} failed: {exc}") from exc


class SqlAlchemyRecordRepository:
    """Stores records as JSON documents with an optimistic version counter."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self, resource_type: ResourceType, record_id: str) -> Record:
        record = self.get(resource_type, record_id)
        if record is None:
            raise RecordNotFoundError(resource_type, record_id)
        return record

    def get(self, resource_type: ResourceType, record_id: str) -> Record | None:
        stmt = select(record_table.c.payload, record_table.c.version).where(
            record_table.c.resource_type == resource_type.value,
            record_table.c.id == record_id,
        )
        with translate_errors(f"Loading {resource_type}/{record_id}"):
            row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return _to_record(row)

    def upsert(self, record: Record) -> None:
        record_id = record.ensure_id()
        document = record_to_document(record)
        document.get("meta", {}).pop("version_id", None)
        key = (
            record_table.c.resource_type == record.resource_type.value,
            record_table.c.id == record_id,
        )
        with translate_errors(f"Saving {record.resource_type}/{record_id}"):
            current = self.session.execute(
                select(record_table.c.version).where(*key)
            ).scalar_one_or_none()
            if current is None:
                self.session.execute(
                    insert(record_table).values(
                        resource_type=record.resource_type.value,
                        id=record_id,
                        payload=document,
                        last_updated=record.meta.last_updated,
                        version=1,
                    )
                )
                record.meta.version_id = 1
                return

            expected = record.meta.version_id
            if expected is not None and expected != current:
                raise ConcurrentUpdateError(
                    f"{record.resource_type}/{record_id} is at version {current}, "
                    f"update was based on version {expected}"
                )
            result = self.session.execute(
                update(record_table)
                .where(*key, record_table.c.version == current)
                .values(
                    payload=document,
                    last_updated=record.meta.last_updated,
                    version=current + 1,
                )
            )
            if result.rowcount != 1:  # pyright: ignore[reportAttributeAccessIssue]
                raise ConcurrentUpdateError(
                    f"{record.resource_type}/{record_id} changed while saving"
                )
        record.meta.version_id = current + 1

    def search(self, query: RecordQuery) -> list[Record]:
        stmt = (
            select(record_table.c.payload, record_table.c.version)
            .where(record_table.c.resource_type == query.resource_type.value)
            .order_by(record_table.c.last_updated, record_table.c.id)
        )
        with translate_errors(f"Searching {query.resource_type}"):
            rows = self.session.execute(stmt).all()
        return [record for record in map(_to_record, rows) if _matches(record, query)]

    def delete(self, resource_type: ResourceType, record_id: str) -> None:
        stmt = delete(record_table).where(
            record_table.c.resource_type == resource_type.value,
            record_table.c.id == record_id,
        )
        with translate_errors(f"Deleting {resource_type}/{record_id}"):
            self.session.execute(stmt)
        log.debug("Deleted %s/%s", resource_type, record_id)


def _to_record(row: Row[Any]) -> Record:
    record = record_from_document(dict(row.payload))
    record.meta.version_id = row.version
    return record


def _matches(record: Record, query: RecordQuery) -> bool:
    if query.tag is not None and not record.has_tag(query.tag):
        return False
    if query.subject is not None:
        subject = record.get_subject()
        if subject is None or subject.reference != query.subject.reference:
            return False
    return all(_field_text(record, name) == value for name, value in query.fields.items())


def _field_text(record: Record, name: str) -> str | None:
    value = getattr(record, name, None)
    if value is None:
        return None
    if isinstance(value, Reference):
        return value.reference
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
