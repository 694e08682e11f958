"""Identity resolution of freshly extracted records against a previous submission.

Matching policy:
- the subject-type record takes the response subject id (editable submissions)
- types without an identity expression, or without prior records, stay new
- otherwise the first unclaimed prior record whose natural key equals the
  candidate's, ignoring case, lends its id to the candidate; each prior lends
  its id at most once
- related persons also inherit the prior external identifiers, which cannot be
  re-derived from answers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import RelatedPerson, ResourceType
from formingest.domain.submission.errors import ReconciliationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from formingest.domain.model import Record, Reference
    from formingest.domain.ports import ExpressionEvaluator


log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationResult:
    records: list[Record]
    # candidate id -> prior id it was re-identified to
    matched: dict[str, str] = field(default_factory=dict[str, str])
    errors: list[ReconciliationError] = field(default_factory=list[ReconciliationError])


@dataclass(slots=True)
class Reconciler:
    evaluator: ExpressionEvaluator

    def reconcile(
        self,
        candidates: Sequence[Record],
        prior_records: Mapping[ResourceType, Sequence[Record]],
        identity_expressions: Mapping[ResourceType, str],
        *,
        subject: Reference | None = None,
        subject_type: ResourceType | None = None,
        editable: bool = False,
    ) -> ReconciliationResult:
        result = ReconciliationResult(records=list(candidates))
        claimed: set[str] = set()
        for candidate in result.records:
            previous_id = candidate.id
            if (
                editable
                and subject is not None
                and subject_type is not None
                and candidate.resource_type is subject_type
            ):
                candidate.identify(subject.id)
                claimed.add(subject.id)
                _record_match(result, previous_id, subject.id)
                continue

            expression = identity_expressions.get(candidate.resource_type)
            priors = prior_records.get(candidate.resource_type, ())
            if expression is None:
                if priors:
                    log.debug(
                        "No identity expression for %s; candidate %s treated as new",
                        candidate.resource_type,
                        candidate.id,
                    )
                continue
            if not priors:
                continue

            try:
                match = self._find_match(candidate, priors, expression, claimed)
            except Exception as exc:  # noqa: BLE001
                error = ReconciliationError(
                    f"Identity expression {expression!r} failed for "
                    f"{candidate.resource_type}/{candidate.id}: {exc}"
                )
                log.warning("%s; keeping candidate as new", error)
                result.errors.append(error)
                continue
            if match is None or not match.id:
                continue

            claimed.add(match.id)
            candidate.identify(match.id)
            if isinstance(candidate, RelatedPerson) and isinstance(match, RelatedPerson):
                candidate.identifiers = list(match.identifiers)
            _record_match(result, previous_id, match.id)
        return result

    def _find_match(
        self,
        candidate: Record,
        priors: Sequence[Record],
        expression: str,
        claimed: set[str],
    ) -> Record | None:
        key = self.evaluator.extract_value(candidate, expression)
        if key is None:
            return None
        folded = key.casefold()
        for prior in priors:
            if prior.id in claimed:
                continue
            try:
                prior_key = self.evaluator.extract_value(prior, expression)
            except Exception:  # noqa: BLE001
                log.debug("Identity expression failed for prior %s", prior.key)
                continue
            if prior_key is not None and prior_key.casefold() == folded:
                return prior
        return None


def _record_match(result: ReconciliationResult, previous_id: str | None, matched_id: str) -> None:
    if previous_id is not None and previous_id != matched_id:
        result.matched[previous_id] = matched_id
