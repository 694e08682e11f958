"""Draft handling and record touches around a form response."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import (
    ActionParameterType,
    FormResponse,
    Reference,
    ResourceType,
)
from formingest.domain.ports import RecordNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from formingest.domain.ports import RecordRepository, UnitOfWorkFactory
    from formingest.domain.submission.config import ActionParameter

log = getLogger(__name__)


def save_draft(uow_factory: UnitOfWorkFactory, response: FormResponse) -> bool:
    """Persist ``response`` as in-progress when at least one answer carries a value."""

    response.require_in_progress()
    if not response.has_answers():
        log.debug("Draft %s has no answers; not saved", response.id)
        return False
    response.ensure_id()
    with uow_factory() as uow:
        uow.repositories.records.upsert(response)
        uow.commit()
    log.info("Saved draft %s", response.id)
    return True


def discard_draft(uow_factory: UnitOfWorkFactory, response_id: str) -> FormResponse:
    """Retract a draft: the stored in-progress response becomes stopped."""

    with uow_factory() as uow:
        record = uow.repositories.records.load(ResourceType.FORM_RESPONSE, response_id)
        if not isinstance(record, FormResponse):
            raise RecordNotFoundError(ResourceType.FORM_RESPONSE, response_id)
        record.mark_stopped()
        uow.repositories.records.upsert(record)
        uow.commit()
    log.info("Discarded draft %s", response_id)
    return record


def references_to_touch(action_params: Iterable[ActionParameter]) -> list[Reference]:
    """References named by ``UPDATE_DATE_ON_EDIT`` action parameters."""

    references: list[Reference] = []
    for param in action_params:
        if param.param_type is not ActionParameterType.UPDATE_DATE_ON_EDIT or not param.value:
            continue
        try:
            reference = Reference.parse(param.value, default_type=param.resource_type)
        except ValueError:
            log.warning("Ignoring action parameter %s: unusable value %r", param.key, param.value)
            continue
        if reference not in references:
            references.append(reference)
    return references


def touch_records(
    repository: RecordRepository,
    references: Iterable[Reference],
    *,
    at: datetime,
) -> list[Reference]:
    """Bump ``last_updated`` on each referenced record; missing ones are skipped."""

    touched: list[Reference] = []
    for reference in references:
        record = repository.get(reference.resource_type, reference.id)
        if record is None:
            log.warning("Record %s to update on edit does not exist", reference)
            continue
        record.meta.last_updated = at
        repository.upsert(record)
        touched.append(reference)
    return touched
