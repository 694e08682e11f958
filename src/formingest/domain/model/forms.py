"""Form templates, submitted responses and the ledger embedded in each response."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from enum import StrEnum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from formingest.domain.model.base import Coding, Record, Reference, new_id
from formingest.domain.model.enums import ItemType, ResourceType, ResponseStatus

LEDGER_TITLE = "GeneratedResourcesList"

AnswerValue = str | int | float | bool


class InvalidStatusTransitionError(ValueError):
    """Raised when a response status would move backwards."""


# Template ---------------------------------------------------------------------


class QuestionItem(BaseModel):
    link_id: str
    text: str | None = None
    type: ItemType = ItemType.STRING
    required: bool = False
    repeats: bool = False
    read_only: bool = False
    options: list[str] = Field(default_factory=list[str])
    items: list[QuestionItem] = Field(default_factory=list["QuestionItem"])


class RecordDefinition(BaseModel):
    """Direct field-path extraction rule: one record per definition.

    ``fields`` maps a dotted target path on the record to the answering link id;
    ``constants`` are copied verbatim.
    """

    resource_type: ResourceType
    fields: dict[str, str] = Field(default_factory=dict[str, str])
    constants: dict[str, Any] = Field(default_factory=dict[str, Any])


class ExtractionMode(StrEnum):
    NONE = "none"
    TRANSFORM = "transform"
    DEFINITION = "definition"


class ExtractionSpec(BaseModel):
    transform: str | None = None
    definitions: list[RecordDefinition] = Field(default_factory=list[RecordDefinition])

    @property
    def mode(self) -> ExtractionMode:
        if self.transform:
            return ExtractionMode.TRANSFORM
        if self.definitions:
            return ExtractionMode.DEFINITION
        return ExtractionMode.NONE


class FormTemplate(Record):
    """Read-only definition of a form."""

    resource_type: Literal[ResourceType.FORM_TEMPLATE] = ResourceType.FORM_TEMPLATE
    name: str | None = None
    items: list[QuestionItem] = Field(default_factory=list[QuestionItem])
    subject_types: list[ResourceType] = Field(default_factory=list[ResourceType])
    extraction: ExtractionSpec = Field(default_factory=ExtractionSpec)
    library_ids: list[str] = Field(default_factory=list[str])
    use_context: list[Coding] = Field(default_factory=list[Coding])
    experimental: bool = False

    @property
    def subject_type(self) -> ResourceType | None:
        return self.subject_types[0] if self.subject_types else None

    @property
    def is_extraction_candidate(self) -> bool:
        return self.extraction.mode is not ExtractionMode.NONE

    def find_item(self, link_id: str) -> QuestionItem | None:
        return _find_question(self.items, link_id)

    def iter_items(self) -> list[QuestionItem]:
        flat: list[QuestionItem] = []
        stack = list(reversed(self.items))
        while stack:
            item = stack.pop()
            flat.append(item)
            stack.extend(reversed(item.items))
        return flat


def _find_question(items: list[QuestionItem], link_id: str) -> QuestionItem | None:
    for item in items:
        if item.link_id == link_id:
            return item
        nested = _find_question(item.items, link_id)
        if nested is not None:
            return nested
    return None


# Ledger -----------------------------------------------------------------------


class LedgerEntry(BaseModel):
    resource_type: ResourceType
    resource_id: str
    date: datetime | None = None
    deleted: bool = False

    @property
    def reference(self) -> Reference:
        return Reference.of(self.resource_type, self.resource_id)


class ResourceLedger(BaseModel):
    """Records produced by one submission event of a response."""

    id: str = Field(default_factory=new_id)
    title: str = LEDGER_TITLE
    date: datetime | None = None
    entries: list[LedgerEntry] = Field(default_factory=list[LedgerEntry])

    def __len__(self) -> int:
        return len(self.entries)

    def pairs(self) -> list[tuple[ResourceType, str]]:
        return [(entry.resource_type, entry.resource_id) for entry in self.entries]

    def add(self, record: Record, *, date: datetime | None = None) -> None:
        if not record.id:
            raise ValueError("Only identified records can be ledgered")
        self.entries.append(
            LedgerEntry(resource_type=record.resource_type, resource_id=record.id, date=date)
        )


# Response ---------------------------------------------------------------------


class Answer(BaseModel):
    value: AnswerValue | None = None

    @property
    def has_value(self) -> bool:
        return self.value is not None and self.value != ""


class ResponseItem(BaseModel):
    link_id: str
    answers: list[Answer] = Field(default_factory=list[Answer])
    items: list[ResponseItem] = Field(default_factory=list["ResponseItem"])


class FormResponse(Record):
    """Answer tree for one completion of a template."""

    SUBJECT_FIELD: ClassVar[str | None] = "subject"

    resource_type: Literal[ResourceType.FORM_RESPONSE] = ResourceType.FORM_RESPONSE
    template: Reference | None = None
    status: ResponseStatus = ResponseStatus.IN_PROGRESS
    authored: datetime | None = None
    subject: Reference | None = None
    items: list[ResponseItem] = Field(default_factory=list[ResponseItem])
    ledgers: list[ResourceLedger] = Field(default_factory=list[ResourceLedger])

    @property
    def latest_ledger(self) -> ResourceLedger | None:
        return self.ledgers[-1] if self.ledgers else None

    def append_ledger(self, ledger: ResourceLedger) -> None:
        self.ledgers.append(ledger)

    def find_item(self, link_id: str) -> ResponseItem | None:
        for item in self.iter_items():
            if item.link_id == link_id:
                return item
        return None

    def iter_items(self) -> list[ResponseItem]:
        flat: list[ResponseItem] = []
        stack = list(reversed(self.items))
        while stack:
            item = stack.pop()
            flat.append(item)
            stack.extend(reversed(item.items))
        return flat

    def answer_value(self, link_id: str) -> AnswerValue | None:
        item = self.find_item(link_id)
        if item is None:
            return None
        for answer in item.answers:
            if answer.has_value:
                return answer.value
        return None

    def has_answers(self) -> bool:
        return any(answer.has_value for item in self.iter_items() for answer in item.answers)

    def mark_completed(self, authored: datetime) -> None:
        if self.status is ResponseStatus.STOPPED:
            raise InvalidStatusTransitionError("A stopped response cannot be completed")
        self.status = ResponseStatus.COMPLETED
        self.authored = authored

    def mark_stopped(self) -> None:
        if self.status is not ResponseStatus.IN_PROGRESS:
            raise InvalidStatusTransitionError(
                f"Only in-progress responses can be stopped (status={self.status})"
            )
        self.status = ResponseStatus.STOPPED

    def require_in_progress(self) -> None:
        if self.status is not ResponseStatus.IN_PROGRESS:
            raise InvalidStatusTransitionError(
                f"Response {self.id} is {self.status} and cannot return to draft"
            )
