from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from formingest.adapters.mapping import DefinitionMappingEngine, build_record
from formingest.domain.model import (
    Encounter,
    GenericRecord,
    Person,
    RecordDefinition,
    Reference,
    ResourceType,
)
from formingest.domain.ports import MappingContext, TransformNotFoundError
from tests.helpers.forms import make_response, make_template

if TYPE_CHECKING:
    from formingest.domain.model import Record

PERSON_DEFINITION = RecordDefinition(
    resource_type=ResourceType.PERSON,
    fields={"identifiers[0].value": "unique-id", "name": "name"},
    constants={"identifiers": [{"system": "national"}]},
)
ENCOUNTER_DEFINITION = RecordDefinition(
    resource_type=ResourceType.ENCOUNTER,
    constants={"service_provider": {"reference": "Organization/clinic"}},
)


def _context(transforms: dict[str, Record] | None = None) -> MappingContext:
    stored = transforms or {}

    async def resolve(transform_id: str) -> Record | None:
        return stored.get(transform_id)

    return MappingContext(resolve_transform=resolve)


def test_build_record_merges_constants_and_answers() -> None:
    response = make_response({"name": "Ada", "unique-id": "001"})

    record = build_record(PERSON_DEFINITION, response)

    assert isinstance(record, Person)
    assert record.identifiers[0].system == "national"
    assert record.identifiers[0].value == "001"
    assert record.model_extra == {"name": "Ada"}


def test_build_record_leaves_definition_constants_untouched() -> None:
    build_record(PERSON_DEFINITION, make_response({"unique-id": "001"}))

    assert PERSON_DEFINITION.constants == {"identifiers": [{"system": "national"}]}


def test_definition_without_answers_builds_nothing() -> None:
    assert build_record(PERSON_DEFINITION, make_response({"age": 3})) is None


def test_constant_only_definition_always_builds() -> None:
    record = build_record(ENCOUNTER_DEFINITION, make_response())

    assert isinstance(record, Encounter)
    assert record.service_provider == Reference.of(ResourceType.ORGANIZATION, "clinic")


def test_inline_definitions_are_extracted_in_order() -> None:
    template = make_template(definitions=(PERSON_DEFINITION, ENCOUNTER_DEFINITION))

    records = asyncio.run(
        DefinitionMappingEngine().extract(template, make_response({"name": "Ada"}), _context())
    )

    assert [record.resource_type for record in records] == [
        ResourceType.PERSON,
        ResourceType.ENCOUNTER,
    ]


def test_transform_definitions_are_resolved() -> None:
    transform = GenericRecord(
        resource_type=ResourceType.TRANSFORM,
        id="registration-map",
        definitions=[
            {
                "resource_type": "Observation",
                "fields": {"value": "age"},
                "constants": {"code": "age"},
            }
        ],
    )
    template = make_template(transform="registration-map")

    records = asyncio.run(
        DefinitionMappingEngine().extract(
            template,
            make_response({"name": "Ada", "age": 36}),
            _context({"registration-map": transform}),
        )
    )

    assert len(records) == 1
    assert isinstance(records[0], GenericRecord)
    assert records[0].model_extra == {"code": "age", "value": 36}


def test_missing_transform_raises() -> None:
    template = make_template(transform="missing")

    with pytest.raises(TransformNotFoundError):
        asyncio.run(DefinitionMappingEngine().extract(template, make_response(), _context()))


def test_template_without_extraction_yields_nothing() -> None:
    records = asyncio.run(
        DefinitionMappingEngine().extract(make_template(), make_response(), _context())
    )

    assert records == []
