"""
Base building blocks:
references, tags, record identity and the capability contract shared by all record kinds.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import ClassVar, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from formingest.domain.model.enums import ResourceType


def new_id() -> str:
    return str(uuid4())


class Reference(BaseModel):
    """Typed pointer to another record, rendered as ``<Type>/<id>``."""

    model_config = ConfigDict(frozen=True)

    reference: str
    display: str | None = None

    @classmethod
    def of(cls, resource_type: ResourceType, record_id: str) -> Reference:
        return cls(reference=f"{resource_type.value}/{record_id}")

    @classmethod
    def parse(cls, value: str, *, default_type: ResourceType | None = None) -> Reference:
        """Accept either ``Type/id`` or a bare id combined with ``default_type``."""

        if "/" in value:
            resource_type, _, record_id = value.rpartition("/")
            return cls.of(ResourceType(resource_type.rsplit("/", 1)[-1]), record_id)
        if default_type is None:
            raise ValueError(f"Reference '{value}' has no resource type")
        return cls.of(default_type, value)

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType(self.reference.split("/", 1)[0])

    @property
    def id(self) -> str:
        return self.reference.split("/", 1)[1]

    def __str__(self) -> str:
        return self.reference


class Coding(BaseModel):
    """A tag value; two codings are the same tag when system and code match."""

    model_config = ConfigDict(frozen=True)

    system: str
    code: str
    display: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.system, self.code)


class Identifier(BaseModel):
    """External (business) identifier such as a national id number."""

    model_config = ConfigDict(frozen=True)

    system: str | None = None
    value: str
    use: str | None = None


class Meta(BaseModel):
    tags: list[Coding] = Field(default_factory=list[Coding])
    last_updated: datetime | None = None
    # persistence concurrency token; None until the record has been stored
    version_id: int | None = None


class Record(BaseModel):
    """Common capabilities of every record kind.

    Kinds declare which attribute carries organization ownership, practitioner
    ownership and the subject pointer. ``None`` means the kind has no such slot.
    Unknown attributes produced by a mapping engine are kept as extras.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    ORGANIZATION_FIELD: ClassVar[str | None] = None
    PRACTITIONER_FIELD: ClassVar[str | None] = None
    SUBJECT_FIELD: ClassVar[str | None] = None

    resource_type: ResourceType
    id: str | None = None
    meta: Meta = Field(default_factory=Meta)

    @property
    def reference(self) -> Reference:
        if not self.id:
            raise ValueError(f"{self.resource_type} record has no id yet")
        return Reference.of(self.resource_type, self.id)

    @property
    def key(self) -> tuple[ResourceType, str | None]:
        return (self.resource_type, self.id)

    def identify(self, record_id: str) -> None:
        self.id = record_id

    def ensure_id(self) -> str:
        if not self.id:
            self.id = new_id()
        return self.id

    def has_tag(self, coding: Coding) -> bool:
        return any(tag.key == coding.key for tag in self.meta.tags)

    def tags_for(self, system: str) -> list[Coding]:
        return [tag for tag in self.meta.tags if tag.system == system]

    def apply_tag(self, coding: Coding) -> bool:
        """Add ``coding`` unless a tag with the same system and code exists."""

        if self.has_tag(coding):
            return False
        self.meta.tags.append(coding)
        return True

    def append_organization(self, organization: Reference) -> bool:
        return self._append_reference(self.ORGANIZATION_FIELD, organization)

    def append_practitioner(self, practitioner: Reference) -> bool:
        return self._append_reference(self.PRACTITIONER_FIELD, practitioner)

    def assign_subject(self, subject: Reference) -> bool:
        if self.SUBJECT_FIELD is None:
            return False
        setattr(self, self.SUBJECT_FIELD, subject)
        return True

    def get_subject(self) -> Reference | None:
        if self.SUBJECT_FIELD is None:
            return None
        return getattr(self, self.SUBJECT_FIELD)

    def clone(self) -> Self:
        return self.model_copy(deep=True)

    def _append_reference(self, field_name: str | None, value: Reference) -> bool:
        if field_name is None:
            return False
        current = getattr(self, field_name)
        if isinstance(current, list):
            if value in current:
                return False
            current.append(value)
            return True
        if current is not None:
            return False
        setattr(self, field_name, value)
        return True
