"""Ports for the engines the submission pipeline delegates to.

None of these are implemented in the domain. The mapping engine and the
expression evaluator have adapters in ``formingest.adapters``; library and plan
engines are always supplied by the host application.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.domain.model import FormResponse, FormTemplate, Record, Reference


class TransformNotFoundError(LookupError):
    """Raised by a mapping engine when the referenced transform does not exist."""


class ExpressionError(ValueError):
    """Raised when an expression cannot be evaluated against a record."""


type TransformResolver = Callable[[str], Awaitable[Record | None]]


@dataclass(slots=True, frozen=True)
class MappingContext:
    """Context handed to the mapping engine for one extraction."""

    resolve_transform: TransformResolver


@runtime_checkable
class MappingEngine(Protocol):
    async def extract(
        self,
        template: FormTemplate,
        response: FormResponse,
        context: MappingContext,
    ) -> Sequence[Record]:
        """Return candidate records in extraction order."""
        ...


@dataclass(slots=True, frozen=True)
class OutputParameter:
    """One named output of a library evaluation."""

    name: str
    value: object
    output_artifact: bool = False


@runtime_checkable
class LibraryEvaluator(Protocol):
    async def evaluate(
        self,
        library: Record,
        subject: Reference | None,
        bundle: Sequence[Record],
    ) -> Sequence[OutputParameter]: ...


@runtime_checkable
class PlanGenerator(Protocol):
    async def generate(
        self,
        plan_template_id: str,
        subject: Reference,
        bundle: Sequence[Record],
    ) -> Record | None:
        """Create or update the plan instance for ``subject``."""
        ...


@runtime_checkable
class ExpressionEvaluator(Protocol):
    def extract_value(self, record: Record, expression: str) -> str | None:
        """Evaluate ``expression`` against ``record``; raise ``ExpressionError`` on failure."""
        ...
