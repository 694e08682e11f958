"""Domain port definitions for adapters."""

from __future__ import annotations

from .engines import (
    ExpressionError,
    ExpressionEvaluator,
    LibraryEvaluator,
    MappingContext,
    MappingEngine,
    OutputParameter,
    PlanGenerator,
    TransformNotFoundError,
    TransformResolver,
)
from .persistence import (
    ConcurrentUpdateError,
    PersistenceError,
    RecordNotFoundError,
    RecordQuery,
    RecordRepository,
)
from .unit_of_work import (
    RepositoryCollection,
    SubmissionRepositories,
    SubmissionUnitOfWork,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "ConcurrentUpdateError",
    "ExpressionError",
    "ExpressionEvaluator",
    "LibraryEvaluator",
    "MappingContext",
    "MappingEngine",
    "OutputParameter",
    "PersistenceError",
    "PlanGenerator",
    "RecordNotFoundError",
    "RecordQuery",
    "RecordRepository",
    "RepositoryCollection",
    "SubmissionRepositories",
    "SubmissionUnitOfWork",
    "TransformNotFoundError",
    "TransformResolver",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
