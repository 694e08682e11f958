"""Record kinds extracted from form responses.

The set of kinds is closed. ``DomainRecord`` is the tagged union used whenever
records cross a serialization boundary; dispatch happens on ``resource_type``
(and on ``kind`` for groups) rather than on runtime class inspection.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, Discriminator, Field, Tag, TypeAdapter

from formingest.domain.model.base import Coding, Identifier, Record, Reference
from formingest.domain.model.enums import GroupKind, ResourceType
from formingest.domain.model.forms import FormResponse, FormTemplate


class Person(Record):
    ORGANIZATION_FIELD: ClassVar[str | None] = "managing_organization"
    PRACTITIONER_FIELD: ClassVar[str | None] = "general_practitioner"

    resource_type: Literal[ResourceType.PERSON] = ResourceType.PERSON
    active: bool = True
    identifiers: list[Identifier] = Field(default_factory=list[Identifier])
    managing_organization: Reference | None = None
    general_practitioner: list[Reference] = Field(default_factory=list[Reference])


class RelatedPerson(Record):
    """A person related to the subject (caregiver, household head, ...)."""

    SUBJECT_FIELD: ClassVar[str | None] = "patient"

    resource_type: Literal[ResourceType.RELATED_PERSON] = ResourceType.RELATED_PERSON
    active: bool = True
    patient: Reference | None = None
    relationship: list[Coding] = Field(default_factory=list[Coding])
    identifiers: list[Identifier] = Field(default_factory=list[Identifier])

    def has_relationship(self, code: str) -> bool:
        return any(coding.code == code for coding in self.relationship)


class Encounter(Record):
    ORGANIZATION_FIELD: ClassVar[str | None] = "service_provider"
    PRACTITIONER_FIELD: ClassVar[str | None] = "participants"
    SUBJECT_FIELD: ClassVar[str | None] = "subject"

    resource_type: Literal[ResourceType.ENCOUNTER] = ResourceType.ENCOUNTER
    subject: Reference | None = None
    service_provider: Reference | None = None
    participants: list[Reference] = Field(default_factory=list[Reference])


class Location(Record):
    ORGANIZATION_FIELD: ClassVar[str | None] = "managing_organization"

    resource_type: Literal[ResourceType.LOCATION] = ResourceType.LOCATION
    name: str | None = None
    managing_organization: Reference | None = None
    part_of: Reference | None = None


class GroupMember(BaseModel):
    entity: Reference | None = None
    # unique id pools keep the issued value on the member entry
    value: str | None = None
    excluded: bool = False


class Group(Record):
    """Collection record with a membership list and optional managing entity."""

    ORGANIZATION_FIELD: ClassVar[str | None] = "managing_entity"

    resource_type: Literal[ResourceType.GROUP] = ResourceType.GROUP
    kind: Literal[GroupKind.GENERIC] = GroupKind.GENERIC
    name: str | None = None
    active: bool = True
    member_type: ResourceType | None = None
    members: list[GroupMember] = Field(default_factory=list[GroupMember])
    managing_entity: Reference | None = None

    def has_member(self, reference: Reference) -> bool:
        return any(member.entity == reference for member in self.members)

    def add_member(self, reference: Reference) -> bool:
        """Add ``reference`` unless it points at this group or is already listed."""

        if self.id and reference == self.reference:
            return False
        if self.has_member(reference):
            return False
        self.members.append(GroupMember(entity=reference))
        return True

    def remove_member(self, reference: Reference) -> bool:
        remaining = [member for member in self.members if member.entity != reference]
        removed = len(remaining) != len(self.members)
        self.members = remaining
        return removed


class UniqueIdPool(Group):
    """Group whose members are pre-issued identifiers.

    Entries are only ever excluded, never re-included. ``next_index`` counts
    excluded entries; the pool turns inactive once it reaches the pool size.
    """

    kind: Literal[GroupKind.UNIQUE_ID_POOL] = GroupKind.UNIQUE_ID_POOL  # type: ignore[assignment]
    next_index: int = 0

    @property
    def size(self) -> int:
        return len(self.members)

    def next_available(self) -> str | None:
        for member in self.members:
            if not member.excluded:
                return member.value
        return None

    def retire(self, used_value: str) -> bool:
        """Exclude the first entry holding ``used_value``. Returns False when nothing changed."""

        for member in self.members:
            if member.value != used_value or member.excluded:
                continue
            member.excluded = True
            self.next_index += 1
            if self.next_index >= self.size:
                self.active = False
            return True
        return False


class ListEntry(BaseModel):
    item: Reference
    date: datetime | None = None
    deleted: bool = False


class ListRecord(Record):
    """Indexed list; ``code`` names the linkage the list represents."""

    SUBJECT_FIELD: ClassVar[str | None] = "subject"

    resource_type: Literal[ResourceType.LIST] = ResourceType.LIST
    code: str | None = None
    title: str | None = None
    subject: Reference | None = None
    entries: list[ListEntry] = Field(default_factory=list[ListEntry])

    def references(self, reference: Reference) -> bool:
        return any(entry.item == reference and not entry.deleted for entry in self.entries)


class GenericRecord(Record):
    """Any record type without a dedicated kind (observations, tasks, libraries...)."""

    SUBJECT_FIELD: ClassVar[str | None] = "subject"

    subject: Reference | None = None


_DEDICATED_KINDS: dict[ResourceType, str] = {
    ResourceType.PERSON: "Person",
    ResourceType.RELATED_PERSON: "RelatedPerson",
    ResourceType.ENCOUNTER: "Encounter",
    ResourceType.LOCATION: "Location",
    ResourceType.LIST: "List",
    ResourceType.FORM_TEMPLATE: "FormTemplate",
    ResourceType.FORM_RESPONSE: "FormResponse",
}


def _record_tag(value: Any) -> str:
    if isinstance(value, dict):
        raw_type = value.get("resource_type")
        raw_kind = value.get("kind", GroupKind.GENERIC)
    else:
        raw_type = getattr(value, "resource_type", None)
        raw_kind = getattr(value, "kind", GroupKind.GENERIC)
    resource_type = ResourceType(raw_type)
    if resource_type is ResourceType.GROUP:
        return "UniqueIdPool" if GroupKind(raw_kind) is GroupKind.UNIQUE_ID_POOL else "Group"
    return _DEDICATED_KINDS.get(resource_type, "Generic")


DomainRecord = Annotated[
    Annotated[Person, Tag("Person")]
    | Annotated[RelatedPerson, Tag("RelatedPerson")]
    | Annotated[Encounter, Tag("Encounter")]
    | Annotated[Location, Tag("Location")]
    | Annotated[Group, Tag("Group")]
    | Annotated[UniqueIdPool, Tag("UniqueIdPool")]
    | Annotated[ListRecord, Tag("List")]
    | Annotated[FormTemplate, Tag("FormTemplate")]
    | Annotated[FormResponse, Tag("FormResponse")]
    | Annotated[GenericRecord, Tag("Generic")],
    Discriminator(_record_tag),
]

_RECORD_ADAPTER: TypeAdapter[DomainRecord] = TypeAdapter(DomainRecord)


def record_from_document(document: dict[str, Any]) -> Record:
    """Build the record kind matching ``document['resource_type']``."""

    return _RECORD_ADAPTER.validate_python(document)


def record_to_document(record: Record) -> dict[str, Any]:
    return record.model_dump(mode="json", exclude_none=True)


def make_record(resource_type: ResourceType, **attributes: Any) -> Record:
    return record_from_document({"resource_type": resource_type, **attributes})
