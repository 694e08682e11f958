from __future__ import annotations

from datetime import UTC, datetime

import pytest

from formingest.domain.model import (
    Coding,
    Encounter,
    FormResponse,
    GenericRecord,
    Group,
    InvalidStatusTransitionError,
    Person,
    Reference,
    ResourceType,
    ResponseStatus,
    UniqueIdPool,
    make_record,
    record_from_document,
    record_to_document,
)
from tests.helpers.forms import make_pool


def test_reference_parse_accepts_typed_and_bare_values() -> None:
    typed = Reference.parse("Person/p1")
    bare = Reference.parse("p1", default_type=ResourceType.PERSON)

    assert typed == bare
    assert typed.resource_type is ResourceType.PERSON
    assert typed.id == "p1"
    assert str(typed) == "Person/p1"


def test_reference_parse_requires_a_type() -> None:
    with pytest.raises(ValueError, match="no resource type"):
        Reference.parse("p1")


def test_apply_tag_dedupes_by_system_and_code() -> None:
    person = Person(id="p1")

    assert person.apply_tag(Coding(system="https://example.org", code="a", display="A"))
    assert not person.apply_tag(Coding(system="https://example.org", code="a"))
    assert len(person.meta.tags) == 1


def test_ownership_fields_follow_the_record_kind() -> None:
    person = Person(id="p1")
    encounter = Encounter(id="e1")
    org = Reference.of(ResourceType.ORGANIZATION, "org-1")
    practitioner = Reference.of(ResourceType.PRACTITIONER, "pr-1")

    assert person.append_organization(org)
    assert not person.append_organization(Reference.of(ResourceType.ORGANIZATION, "org-2"))
    assert person.managing_organization == org

    assert encounter.append_practitioner(practitioner)
    assert not encounter.append_practitioner(practitioner)
    assert encounter.participants == [practitioner]

    assert not GenericRecord(resource_type=ResourceType.OBSERVATION).append_organization(org)


def test_group_refuses_itself_and_duplicates() -> None:
    group = Group(id="household")
    person = Reference.of(ResourceType.PERSON, "p1")

    assert not group.add_member(group.reference)
    assert group.add_member(person)
    assert not group.add_member(person)
    assert [member.entity for member in group.members] == [person]


def test_pool_retire_is_monotonic() -> None:
    pool = make_pool(values=("001", "002", "003"))

    assert pool.retire("001")
    assert not pool.retire("001")

    assert pool.next_index == 1
    assert pool.next_available() == "002"
    assert pool.active


def test_pool_turns_inactive_after_last_entry() -> None:
    pool = make_pool(values=("001", "002", "003"))

    for value in ("001", "002", "003"):
        assert pool.retire(value)

    assert pool.next_index == 3
    assert not pool.active
    assert pool.next_available() is None


def test_pool_ignores_unknown_values() -> None:
    pool = make_pool(values=("001",))

    assert not pool.retire("999")
    assert pool.next_index == 0


def test_documents_dispatch_to_record_kinds() -> None:
    pool = record_from_document(record_to_document(make_pool()))
    group = record_from_document({"resource_type": "Group", "id": "g1"})
    observation = record_from_document(
        {"resource_type": "Observation", "id": "o1", "code": "weight"}
    )

    assert isinstance(pool, UniqueIdPool)
    assert type(group) is Group
    assert isinstance(observation, GenericRecord)
    assert observation.code == "weight"  # type: ignore[attr-defined]


def test_make_record_builds_dedicated_kind() -> None:
    record = make_record(ResourceType.PERSON, id="p1", active=False)

    assert isinstance(record, Person)
    assert record.reference == Reference.of(ResourceType.PERSON, "p1")
    assert record.active is False


def test_reference_requires_an_id() -> None:
    with pytest.raises(ValueError, match="no id"):
        _ = Person().reference


def test_response_status_moves_forward_only() -> None:
    response = FormResponse(id="r1")
    response.mark_completed(datetime(2024, 1, 1, tzinfo=UTC))

    assert response.status is ResponseStatus.COMPLETED
    with pytest.raises(InvalidStatusTransitionError):
        response.mark_stopped()
    with pytest.raises(InvalidStatusTransitionError):
        response.require_in_progress()


def test_stopped_response_cannot_complete() -> None:
    response = FormResponse(id="r1")
    response.mark_stopped()

    with pytest.raises(InvalidStatusTransitionError):
        response.mark_completed(datetime(2024, 1, 1, tzinfo=UTC))
