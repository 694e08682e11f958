"""Outcome values reported by the submission pipeline.

Best-effort steps never raise. They report one of three outcomes so callers
(and tests) can tell a step that was not configured apart from one that failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from formingest.domain.model import FormResponse, Reference


class StepStatus(StrEnum):
    COMPLETED = "completed"
    NOT_CONFIGURED = "not_configured"
    ENGINE_FAILURE = "engine_failure"


@dataclass(slots=True, kw_only=True)
class Completed:
    status: Literal[StepStatus.COMPLETED] = StepStatus.COMPLETED
    produced: tuple[Reference, ...] = ()


@dataclass(slots=True, kw_only=True)
class NotConfigured:
    """Benign: the step had nothing to do (missing library, transform, ...)."""

    reason: str
    status: Literal[StepStatus.NOT_CONFIGURED] = StepStatus.NOT_CONFIGURED


@dataclass(slots=True, kw_only=True)
class EngineFailure:
    error: Exception
    status: Literal[StepStatus.ENGINE_FAILURE] = StepStatus.ENGINE_FAILURE

    @property
    def reason(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


type StepOutcome = Completed | NotConfigured | EngineFailure
type OutcomesByKey = dict[str, StepOutcome]


class WarningKind(StrEnum):
    VALIDATION = "validation"
    EXTRACTION = "extraction"
    RECONCILIATION = "reconciliation"
    COMPUTATION = "computation"
    PLAN_GENERATION = "plan_generation"
    CLEANUP = "cleanup"
    EXPERIMENTAL = "experimental"


@dataclass(slots=True, frozen=True)
class SubmissionWarning:
    """A recovered failure; the submission itself still succeeded."""

    kind: WarningKind
    context: str
    message: str


@dataclass(slots=True)
class SubmissionResult:
    """Outcome of a successful submission."""

    generated: list[Reference]
    response: FormResponse
    persisted: bool = True
    extraction: StepOutcome | None = None
    plans: OutcomesByKey = field(default_factory=dict[str, "StepOutcome"])
    computations: OutcomesByKey = field(default_factory=dict[str, "StepOutcome"])
    warnings: list[SubmissionWarning] = field(default_factory=list[SubmissionWarning])

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def warnings_of(self, kind: WarningKind) -> list[SubmissionWarning]:
        return [warning for warning in self.warnings if warning.kind is kind]
