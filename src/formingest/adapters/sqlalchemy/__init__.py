"""SQLAlchemy adapter package for formingest."""

from __future__ import annotations

from .mappings import create_all_tables, metadata, record_table
from .repositories import SqlAlchemyRecordRepository
from .unit_of_work import (
    SqlAlchemySubmissionUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyRecordRepository",
    "SqlAlchemySubmissionUnitOfWork",
    "StartupError",
    "create_all_tables",
    "metadata",
    "record_table",
    "shutdown",
    "startup",
]
