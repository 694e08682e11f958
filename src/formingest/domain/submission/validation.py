"""Structural validation of a response against its template."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from formingest.domain.model import ItemType

if TYPE_CHECKING:
    from formingest.domain.model import (
        AnswerValue,
        FormResponse,
        FormTemplate,
        QuestionItem,
        ResponseItem,
    )


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    link_id: str
    message: str


@runtime_checkable
class ResponseValidator(Protocol):
    def validate(self, template: FormTemplate, response: FormResponse) -> list[ValidationIssue]:
        ...


class StructuralResponseValidator:
    """Checks answers against item definitions.

    - every answered link id exists in the template
    - required items carry at least one answer
    - non-repeating items carry at most one answer
    - answer values fit the item type
    - display and group items carry no answers
    """

    def validate(self, template: FormTemplate, response: FormResponse) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        answered: dict[str, ResponseItem] = {}
        for item in response.iter_items():
            question = template.find_item(item.link_id)
            if question is None:
                issues.append(ValidationIssue(item.link_id, "unknown item"))
                continue
            answered[item.link_id] = item
            issues.extend(_validate_answers(question, item))

        for question in template.iter_items():
            if not question.required:
                continue
            item = answered.get(question.link_id)
            if item is None or not any(answer.has_value for answer in item.answers):
                issues.append(ValidationIssue(question.link_id, "required item has no answer"))
        return issues


def _validate_answers(question: QuestionItem, item: ResponseItem) -> list[ValidationIssue]:
    values = [answer.value for answer in item.answers if answer.has_value]
    if not values:
        return []
    if question.type in (ItemType.GROUP, ItemType.DISPLAY):
        return [ValidationIssue(item.link_id, f"{question.type} items cannot be answered")]
    issues: list[ValidationIssue] = []
    if len(values) > 1 and not question.repeats:
        issues.append(ValidationIssue(item.link_id, "multiple answers for a single-answer item"))
    for value in values:
        if value is not None and not _value_fits(question, value):
            issues.append(
                ValidationIssue(item.link_id, f"answer {value!r} is not a valid {question.type}")
            )
    return issues


def _value_fits(question: QuestionItem, value: AnswerValue) -> bool:  # noqa: PLR0911
    match question.type:
        case ItemType.BOOLEAN:
            return isinstance(value, bool)
        case ItemType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        case ItemType.DECIMAL:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        case ItemType.DATE:
            return isinstance(value, str) and _is_iso_date(value)
        case ItemType.CHOICE:
            return not question.options or str(value) in question.options
        case _:
            return isinstance(value, str)


def _is_iso_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
