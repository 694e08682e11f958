"""Ledger of records produced by each submission, used to update instead of duplicate."""

from __future__ import annotations

from collections import defaultdict
from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import (
    FormResponse,
    Reference,
    ResourceLedger,
    ResourceType,
    ResponseStatus,
)
from formingest.domain.ports import RecordQuery

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from formingest.domain.model import Record
    from formingest.domain.ports import RecordRepository

log = getLogger(__name__)

type RecordsByType = dict[ResourceType, list[Record]]


def build_ledger(records: Iterable[Record], *, date: datetime) -> ResourceLedger:
    """Enumerate every record of one submission event."""

    ledger = ResourceLedger(date=date)
    for record in records:
        ledger.add(record, date=date)
    return ledger


def search_latest_response(
    repository: RecordRepository,
    *,
    subject: Reference,
    template_id: str,
) -> FormResponse | None:
    """Return the most recently updated completed response for subject and template."""

    candidates = repository.search(
        RecordQuery(
            resource_type=ResourceType.FORM_RESPONSE,
            subject=subject,
            fields={
                "template": str(Reference.of(ResourceType.FORM_TEMPLATE, template_id)),
                "status": ResponseStatus.COMPLETED.value,
            },
        )
    )
    responses = [candidate for candidate in candidates if isinstance(candidate, FormResponse)]
    if not responses:
        return None
    return max(responses, key=_response_sort_key)


def _response_sort_key(response: FormResponse) -> tuple[float, float]:
    updated = response.meta.last_updated
    authored = response.authored
    return (
        updated.timestamp() if updated else 0.0,
        authored.timestamp() if authored else 0.0,
    )


def find_prior_ledger(
    repository: RecordRepository,
    response: FormResponse,
    *,
    template_id: str,
) -> ResourceLedger | None:
    """Locate the ledger of the previous submission of this response.

    The response itself carries it when it is being re-submitted; otherwise the
    latest completed response for the same subject and template is used.
    """

    if response.latest_ledger is not None:
        return response.latest_ledger
    if response.id:
        stored = repository.get(ResourceType.FORM_RESPONSE, response.id)
        if isinstance(stored, FormResponse) and stored.latest_ledger is not None:
            return stored.latest_ledger
    if response.subject is None:
        return None
    previous = search_latest_response(
        repository, subject=response.subject, template_id=template_id
    )
    if previous is None:
        return None
    return previous.latest_ledger


def load_ledger_records(repository: RecordRepository, ledger: ResourceLedger) -> RecordsByType:
    """Load every still-existing record named by ``ledger``, grouped by type."""

    by_type: defaultdict[ResourceType, list[Record]] = defaultdict(list)
    for entry in ledger.entries:
        if entry.deleted:
            continue
        record = repository.get(entry.resource_type, entry.resource_id)
        if record is None:
            log.debug("Ledgered record %s no longer exists", entry.reference)
            continue
        by_type[entry.resource_type].append(record)
    return dict(by_type)
