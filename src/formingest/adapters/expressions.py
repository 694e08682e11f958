"""Dotted field-path expressions evaluated against records.

Grammar: ``[Type.]segment(.segment)*`` where a segment is an attribute name
optionally followed by ``[index]``. Examples::

    name
    Person.identifiers[0].value
    relationship.code

A list reached without an index resolves to its first element.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel

from formingest.domain.model import Reference, ResourceType
from formingest.domain.ports import ExpressionError

if TYPE_CHECKING:
    from formingest.domain.model import Record

_SEGMENT: Final = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<index>\d+)\])?$")
_TYPE_NAMES: Final = frozenset(resource_type.value for resource_type in ResourceType)


@dataclass(frozen=True, slots=True)
class PathSegment:
    name: str
    index: int | None = None


def parse_path(expression: str) -> list[PathSegment]:
    """Split ``expression`` into segments; raise ``ExpressionError`` when malformed."""

    if not expression or not expression.strip():
        raise ExpressionError("empty expression")
    segments: list[PathSegment] = []
    for raw in expression.strip().split("."):
        match = _SEGMENT.match(raw)
        if match is None:
            raise ExpressionError(f"invalid path segment {raw!r} in {expression!r}")
        index = match.group("index")
        segments.append(PathSegment(match.group("name"), int(index) if index else None))
    return segments


def _strip_type_prefix(segments: list[PathSegment], record: Record) -> list[PathSegment] | None:
    head = segments[0]
    if head.index is not None or head.name not in _TYPE_NAMES:
        return segments
    if head.name != record.resource_type.value:
        return None
    return segments[1:]


def _child(value: Any, segment: PathSegment) -> Any:
    if isinstance(value, BaseModel):
        child = getattr(value, segment.name, None)
    elif isinstance(value, dict):
        child = value.get(segment.name)
    else:
        return None
    if isinstance(child, list):
        position = segment.index or 0
        return child[position] if position < len(child) else None
    if segment.index is not None:
        raise ExpressionError(f"{segment.name} is not a list")
    return child


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Reference):
        return value.reference
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (BaseModel, dict, list)):
        raise ExpressionError(f"expression resolves to a structure, not a value: {value!r}")
    return str(value)


class FieldPathEvaluator:
    """``ExpressionEvaluator`` over dotted attribute paths."""

    def extract_value(self, record: Record, expression: str) -> str | None:
        segments = _strip_type_prefix(parse_path(expression), record)
        if segments is None:
            return None
        if not segments:
            raise ExpressionError(f"expression {expression!r} names no field")
        value: Any = record
        for segment in segments:
            value = _child(value, segment)
            if value is None:
                return None
        return _as_text(value)
