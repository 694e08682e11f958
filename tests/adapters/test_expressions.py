from __future__ import annotations

import pytest

from formingest.adapters.expressions import FieldPathEvaluator, PathSegment, parse_path
from formingest.domain.model import (
    Coding,
    Encounter,
    GenericRecord,
    Identifier,
    Person,
    Reference,
    RelatedPerson,
    ResourceType,
)
from formingest.domain.ports import ExpressionError


def test_parse_path_reads_indexes() -> None:
    assert parse_path("Person.identifiers[1].value") == [
        PathSegment("Person"),
        PathSegment("identifiers", 1),
        PathSegment("value"),
    ]


@pytest.mark.parametrize("expression", ["", "  ", "name.", "identifiers[x]", "a..b", "1abc"])
def test_parse_path_rejects_malformed_expressions(expression: str) -> None:
    with pytest.raises(ExpressionError):
        parse_path(expression)


def test_identifier_value_is_extracted() -> None:
    person = Person(identifiers=[Identifier(system="national", value="A-1")])

    assert FieldPathEvaluator().extract_value(person, "Person.identifiers[0].value") == "A-1"
    assert FieldPathEvaluator().extract_value(person, "identifiers.value") == "A-1"


def test_type_prefix_of_another_kind_yields_nothing() -> None:
    person = Person(identifiers=[Identifier(value="A-1")])

    assert FieldPathEvaluator().extract_value(person, "Encounter.subject") is None


def test_values_are_rendered_as_text() -> None:
    evaluator = FieldPathEvaluator()
    encounter = Encounter(subject=Reference.of(ResourceType.PERSON, "p1"))
    related = RelatedPerson(relationship=[Coding(system="rel", code="mother")], active=False)
    observation = GenericRecord(resource_type=ResourceType.OBSERVATION, code="bp", value=120)

    assert evaluator.extract_value(encounter, "subject") == "Person/p1"
    assert evaluator.extract_value(encounter, "resource_type") == "Encounter"
    assert evaluator.extract_value(related, "relationship.code") == "mother"
    assert evaluator.extract_value(related, "active") == "false"
    assert evaluator.extract_value(observation, "value") == "120"


def test_missing_values_yield_none() -> None:
    evaluator = FieldPathEvaluator()
    person = Person()

    assert evaluator.extract_value(person, "identifiers[0].value") is None
    assert evaluator.extract_value(person, "managing_organization") is None
    assert evaluator.extract_value(person, "nickname") is None


def test_structures_are_not_values() -> None:
    person = Person(identifiers=[Identifier(value="A-1")])

    with pytest.raises(ExpressionError):
        FieldPathEvaluator().extract_value(person, "identifiers")
    with pytest.raises(ExpressionError):
        FieldPathEvaluator().extract_value(person, "Person")
    with pytest.raises(ExpressionError):
        FieldPathEvaluator().extract_value(person, "active[0]")
