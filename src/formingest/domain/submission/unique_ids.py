"""Retirement of issued values from unique id pools."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import ResourceType, UniqueIdPool
from formingest.domain.ports import ConcurrentUpdateError

if TYPE_CHECKING:
    from formingest.domain.ports import RecordRepository, UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_RETIRE_ATTEMPTS = 3


def retire_in_pool(repository: RecordRepository, pool_id: str, used_value: str) -> bool:
    """Exclude ``used_value`` from the pool within the caller's transaction."""

    record = repository.get(ResourceType.GROUP, pool_id)
    if not isinstance(record, UniqueIdPool):
        log.warning("Unique id pool %s not found; value %s not retired", pool_id, used_value)
        return False
    if not record.retire(used_value):
        log.debug("Value %s already retired from pool %s", used_value, pool_id)
        return False
    repository.upsert(record)
    if not record.active:
        log.info("Unique id pool %s exhausted", pool_id)
    return True


def retire_unique_id(
    uow_factory: UnitOfWorkFactory,
    pool_id: str,
    used_value: str,
    *,
    attempts: int = DEFAULT_RETIRE_ATTEMPTS,
) -> bool:
    """Retire ``used_value`` in its own transaction, retrying on concurrent updates."""

    for attempt in range(1, attempts + 1):
        try:
            with uow_factory() as uow:
                changed = retire_in_pool(uow.repositories.records, pool_id, used_value)
                uow.commit()
        except ConcurrentUpdateError:
            log.info(
                "Pool %s changed concurrently (attempt %s/%s)", pool_id, attempt, attempts
            )
            continue
        return changed
    raise ConcurrentUpdateError(
        f"Could not retire {used_value!r} from pool {pool_id} after {attempts} attempts"
    )
