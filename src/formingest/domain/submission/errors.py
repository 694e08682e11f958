"""Error taxonomy of the submission pipeline.

Only ``ValidationFailed`` and ``PersistenceFailed`` escape ``submit``. The
others are raised internally, caught at the step that owns them and reported
as warnings on the submission result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.domain.submission.validation import ValidationIssue


class SubmissionError(RuntimeError):
    """Base class for submission pipeline failures."""


class ValidationFailed(SubmissionError):
    def __init__(self, message: str, *, issues: Sequence[ValidationIssue] = ()) -> None:
        super().__init__(message)
        self.issues = tuple(issues)


class ExtractionFailed(SubmissionError):
    """The mapping engine failed; the submission continues with no records."""


class ReconciliationError(SubmissionError):
    """An identity expression could not be evaluated for one candidate."""


class PersistenceFailed(SubmissionError):
    """The submission transaction was rolled back."""


class ComputationFailed(SubmissionError):
    """A computation library failed after the submission was committed."""


class PlanGenerationFailed(SubmissionError):
    """A plan template failed after the submission was committed."""
