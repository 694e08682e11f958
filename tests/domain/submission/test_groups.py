from __future__ import annotations

from typing import TYPE_CHECKING

from formingest.domain.model import (
    Coding,
    Encounter,
    GenericRecord,
    Group,
    Person,
    Reference,
    RelatedPerson,
    ResourceType,
)
from formingest.domain.submission import GroupMembershipManager
from tests.helpers.forms import make_group

if TYPE_CHECKING:
    from formingest.adapters.sqlalchemy.repositories import SqlAlchemyRecordRepository

PERSON = ResourceType.PERSON


def _stored_group(repository: SqlAlchemyRecordRepository, group_id: str = "household") -> Group:
    group = repository.load(ResourceType.GROUP, group_id)
    assert isinstance(group, Group)
    return group


def test_add_member_persists_the_group(record_repository: SqlAlchemyRecordRepository) -> None:
    record_repository.upsert(make_group())
    manager = GroupMembershipManager(record_repository)

    assert manager.add_member(Person(id="p1"), PERSON, "household")
    assert not manager.add_member(Person(id="p1"), PERSON, "household")

    members = _stored_group(record_repository).members
    assert [member.entity for member in members] == [Reference.of(PERSON, "p1")]


def test_group_is_never_its_own_member(record_repository: SqlAlchemyRecordRepository) -> None:
    record_repository.upsert(make_group())
    manager = GroupMembershipManager(record_repository)

    assert not manager.add_member(Group(id="household"), ResourceType.GROUP, "household")
    assert _stored_group(record_repository).members == []


def test_add_member_preconditions_are_silent(
    record_repository: SqlAlchemyRecordRepository,
) -> None:
    record_repository.upsert(make_group())
    manager = GroupMembershipManager(record_repository)

    assert not manager.add_member(Encounter(id="e1"), PERSON, "household")
    assert not manager.add_member(Encounter(id="e1"), ResourceType.ENCOUNTER, "household")
    assert not manager.add_member(Person(id="p1"), PERSON, "missing-group")
    assert _stored_group(record_repository).members == []


def test_matching_relationship_becomes_managing_entity(
    record_repository: SqlAlchemyRecordRepository,
) -> None:
    record_repository.upsert(make_group())
    manager = GroupMembershipManager(record_repository)
    head = RelatedPerson(id="rp-1", relationship=[Coding(system="rel", code="head")])
    other = RelatedPerson(id="rp-2", relationship=[Coding(system="rel", code="child")])

    assert not manager.update_managing_entity(other, "household", "head")
    assert manager.update_managing_entity(head, "household", "head")

    group = _stored_group(record_repository)
    assert group.managing_entity == Reference.of(ResourceType.RELATED_PERSON, "rp-1")


def test_remove_group_deactivates_members(record_repository: SqlAlchemyRecordRepository) -> None:
    record_repository.upsert(Person(id="p1"))
    group = make_group()
    group.add_member(Reference.of(PERSON, "p1"))
    group.managing_entity = Reference.of(ResourceType.RELATED_PERSON, "rp-1")
    record_repository.upsert(group)

    assert GroupMembershipManager(record_repository).remove_group("household")

    stored = _stored_group(record_repository)
    assert not stored.active
    assert stored.members == []
    assert stored.managing_entity is None
    person = record_repository.load(PERSON, "p1")
    assert isinstance(person, Person)
    assert not person.active


def test_remove_member_takes_it_out_of_the_group(
    record_repository: SqlAlchemyRecordRepository,
) -> None:
    record_repository.upsert(Person(id="p1"))
    group = make_group()
    group.add_member(Reference.of(PERSON, "p1"))
    record_repository.upsert(group)

    assert GroupMembershipManager(record_repository).remove_member(
        Reference.of(PERSON, "p1"), "household"
    )

    assert _stored_group(record_repository).members == []
    assert record_repository.load(PERSON, "p1").active is False  # type: ignore[attr-defined]


def test_remove_resource_without_active_flag_deletes_it(
    record_repository: SqlAlchemyRecordRepository,
) -> None:
    record_repository.upsert(GenericRecord(resource_type=ResourceType.OBSERVATION, id="o1"))

    assert GroupMembershipManager(record_repository).remove_resource(
        Reference.of(ResourceType.OBSERVATION, "o1")
    )

    assert record_repository.get(ResourceType.OBSERVATION, "o1") is None
