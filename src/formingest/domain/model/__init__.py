"""Domain model for form templates, responses and the records extracted from them."""

from __future__ import annotations

from .base import Coding, Identifier, Meta, Record, Reference, new_id
from .enums import (
    ActionParameterType,
    FormType,
    GroupKind,
    ItemType,
    ResourceType,
    ResponseStatus,
)
from .forms import (
    LEDGER_TITLE,
    Answer,
    AnswerValue,
    ExtractionMode,
    ExtractionSpec,
    FormResponse,
    FormTemplate,
    InvalidStatusTransitionError,
    LedgerEntry,
    QuestionItem,
    RecordDefinition,
    ResourceLedger,
    ResponseItem,
)
from .records import (
    DomainRecord,
    Encounter,
    GenericRecord,
    Group,
    GroupMember,
    ListEntry,
    ListRecord,
    Location,
    Person,
    RelatedPerson,
    UniqueIdPool,
    make_record,
    record_from_document,
    record_to_document,
)

__all__ = [
    "LEDGER_TITLE",
    "ActionParameterType",
    "Answer",
    "AnswerValue",
    "Coding",
    "DomainRecord",
    "Encounter",
    "ExtractionMode",
    "ExtractionSpec",
    "FormResponse",
    "FormTemplate",
    "FormType",
    "GenericRecord",
    "Group",
    "GroupKind",
    "GroupMember",
    "Identifier",
    "InvalidStatusTransitionError",
    "ItemType",
    "LedgerEntry",
    "ListEntry",
    "ListRecord",
    "Location",
    "Meta",
    "Person",
    "QuestionItem",
    "Record",
    "RecordDefinition",
    "Reference",
    "RelatedPerson",
    "ResourceLedger",
    "ResourceType",
    "ResponseItem",
    "ResponseStatus",
    "UniqueIdPool",
    "make_record",
    "new_id",
    "record_from_document",
    "record_to_document",
]
