from __future__ import annotations

from typing import TYPE_CHECKING

from formingest.adapters.expressions import FieldPathEvaluator
from formingest.domain.model import (
    GenericRecord,
    Identifier,
    Person,
    Reference,
    RelatedPerson,
    ResourceType,
)
from formingest.domain.submission import Reconciler

if TYPE_CHECKING:
    from formingest.domain.model import Record

OBSERVATION = ResourceType.OBSERVATION


def _observation(record_id: str, code: str) -> GenericRecord:
    return GenericRecord(resource_type=OBSERVATION, id=record_id, code=code)


def test_natural_keys_match_ignoring_case() -> None:
    prior = _observation("prior-1", "abc")
    candidate = _observation("new-1", "ABC")

    result = Reconciler(FieldPathEvaluator()).reconcile(
        [candidate], {OBSERVATION: [prior]}, {OBSERVATION: "code"}
    )

    assert [record.id for record in result.records] == ["prior-1"]
    assert result.matched == {"new-1": "prior-1"}
    assert result.errors == []


def test_first_matching_prior_wins() -> None:
    priors = [_observation("first", "abc"), _observation("second", "ABC")]

    result = Reconciler(FieldPathEvaluator()).reconcile(
        [_observation("new-1", "abc")], {OBSERVATION: priors}, {OBSERVATION: "code"}
    )

    assert result.records[0].id == "first"


def test_unmatched_and_unconfigured_candidates_stay_new() -> None:
    priors = {OBSERVATION: [_observation("prior-1", "abc")]}
    candidates = [_observation("new-1", "xyz")]
    evaluator = FieldPathEvaluator()

    unmatched = Reconciler(evaluator).reconcile(candidates, priors, {OBSERVATION: "code"})
    unconfigured = Reconciler(evaluator).reconcile(
        [_observation("new-2", "abc")], priors, {}
    )

    assert unmatched.records[0].id == "new-1"
    assert unconfigured.records[0].id == "new-2"


def test_related_person_keeps_prior_identifiers() -> None:
    prior = RelatedPerson(
        id="rp-1", identifiers=[Identifier(value="ID-9")], name="Grace"  # type: ignore[call-arg]
    )
    candidate = RelatedPerson(id="rp-new", name="grace")  # type: ignore[call-arg]

    result = Reconciler(FieldPathEvaluator()).reconcile(
        [candidate],
        {ResourceType.RELATED_PERSON: [prior]},
        {ResourceType.RELATED_PERSON: "RelatedPerson.name"},
    )

    matched = result.records[0]
    assert isinstance(matched, RelatedPerson)
    assert matched.id == "rp-1"
    assert matched.identifiers == [Identifier(value="ID-9")]


def test_subject_record_takes_the_subject_id_when_editable() -> None:
    subject = Reference.of(ResourceType.PERSON, "p1")
    reconciler = Reconciler(FieldPathEvaluator())

    editable = reconciler.reconcile(
        [Person(id="tmp")], {}, {}, subject=subject, subject_type=ResourceType.PERSON, editable=True
    )
    read_once = reconciler.reconcile(
        [Person(id="tmp")], {}, {}, subject=subject, subject_type=ResourceType.PERSON
    )

    assert editable.records[0].id == "p1"
    assert read_once.records[0].id == "tmp"


def test_expression_errors_keep_the_candidate_as_new() -> None:
    result = Reconciler(FieldPathEvaluator()).reconcile(
        [_observation("new-1", "abc")],
        {OBSERVATION: [_observation("prior-1", "abc")]},
        {OBSERVATION: "code["},
    )

    assert result.records[0].id == "new-1"
    assert len(result.errors) == 1
    assert "code[" in str(result.errors[0])


def test_each_prior_lends_its_id_once() -> None:
    priors = [_observation("o1", "bp"), _observation("o2", "bp")]
    candidates = [
        _observation("new-1", "bp"),
        _observation("new-2", "BP"),
        _observation("new-3", "bp"),
    ]

    result = Reconciler(FieldPathEvaluator()).reconcile(
        candidates, {OBSERVATION: priors}, {OBSERVATION: "code"}
    )

    assert [record.id for record in result.records] == ["o1", "o2", "new-3"]
    assert result.matched == {"new-1": "o1", "new-2": "o2"}


class _BrokenEvaluator:
    def extract_value(self, record: Record, expression: str) -> str | None:
        if record.id == "new-1":
            raise TypeError(f"cannot evaluate {expression}")
        return FieldPathEvaluator().extract_value(record, expression)


def test_any_evaluator_error_only_affects_its_candidate() -> None:
    priors = {OBSERVATION: [_observation("o1", "bp"), _observation("o2", "hr")]}
    candidates = [_observation("new-1", "bp"), _observation("new-2", "hr")]

    result = Reconciler(_BrokenEvaluator()).reconcile(candidates, priors, {OBSERVATION: "code"})

    assert [record.id for record in result.records] == ["new-1", "o2"]
    assert len(result.errors) == 1
    assert "cannot evaluate code" in str(result.errors[0])
