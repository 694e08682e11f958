"""Definition-based mapping engine.

A template either lists record definitions directly, or names a transform
record whose ``definitions`` attribute holds them. Each definition yields one
record built from constants plus answers written to dotted target paths.
"""

from __future__ import annotations

import copy
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

from formingest.adapters.expressions import parse_path
from formingest.domain.model import ExtractionMode, RecordDefinition, record_from_document
from formingest.domain.ports import ExpressionError, TransformNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.adapters.expressions import PathSegment
    from formingest.domain.model import FormResponse, FormTemplate, Record
    from formingest.domain.ports import MappingContext

log = getLogger(__name__)

_DEFINITIONS_ADAPTER: TypeAdapter[list[RecordDefinition]] = TypeAdapter(list[RecordDefinition])


class DefinitionMappingEngine:
    async def extract(
        self,
        template: FormTemplate,
        response: FormResponse,
        context: MappingContext,
    ) -> Sequence[Record]:
        match template.extraction.mode:
            case ExtractionMode.DEFINITION:
                definitions = template.extraction.definitions
            case ExtractionMode.TRANSFORM:
                definitions = await self._load_transform(template.extraction.transform, context)
            case _:
                return []

        records: list[Record] = []
        for definition in definitions:
            record = build_record(definition, response)
            if record is not None:
                records.append(record)
        log.debug("Extracted %s records from response %s", len(records), response.id)
        return records

    @staticmethod
    async def _load_transform(
        transform_id: str | None,
        context: MappingContext,
    ) -> list[RecordDefinition]:
        if not transform_id:
            return []
        transform = await context.resolve_transform(transform_id)
        if transform is None:
            raise TransformNotFoundError(f"Transform {transform_id} not found")
        raw = getattr(transform, "definitions", None) or []
        return _DEFINITIONS_ADAPTER.validate_python(raw)


def build_record(definition: RecordDefinition, response: FormResponse) -> Record | None:
    """Build one record; ``None`` when none of its fields were answered."""

    document: dict[str, Any] = copy.deepcopy(definition.constants)
    document["resource_type"] = definition.resource_type
    answered = 0
    for target, link_id in definition.fields.items():
        value = response.answer_value(link_id)
        if value is None:
            continue
        _assign(document, parse_path(target), value)
        answered += 1
    if definition.fields and not answered:
        log.debug("No answers for %s definition; skipped", definition.resource_type)
        return None
    return record_from_document(document)


def _assign(document: dict[str, Any], segments: list[PathSegment], value: object) -> None:
    container: Any = document
    for position, segment in enumerate(segments):
        last = position == len(segments) - 1
        if segment.index is None:
            if last:
                container[segment.name] = value
                return
            container = container.setdefault(segment.name, {})
            continue
        items = container.setdefault(segment.name, [])
        if not isinstance(items, list):
            raise ExpressionError(f"{segment.name} is not a list")
        while len(items) <= segment.index:
            items.append({})
        if last:
            items[segment.index] = value
            return
        container = items[segment.index]
