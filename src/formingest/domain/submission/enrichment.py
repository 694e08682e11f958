"""Ownership and location metadata stamped onto every submitted record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from formingest.domain.model import Coding, ListRecord, Reference, ResourceType
from formingest.domain.ports import RecordQuery

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from formingest.domain.model import Record
    from formingest.domain.ports import RecordRepository

log = getLogger(__name__)

ORGANIZATION_TAG_SYSTEM: Final[str] = "https://formingest.dev/tags/organization"
PRACTITIONER_TAG_SYSTEM: Final[str] = "https://formingest.dev/tags/practitioner"
RELATED_LOCATION_TAG_SYSTEM: Final[str] = "https://formingest.dev/tags/related-entity-location"

# guards against cyclic linkage lists
MAX_LINKAGE_DEPTH: Final[int] = 5


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class OwnershipContext:
    """Who owns the records produced on this device/session."""

    organization_ids: tuple[str, ...] = ()
    practitioner_id: str | None = None


@dataclass(slots=True)
class MetadataEnricher:
    clock: Callable[[], datetime] = field(default=_utc_now)

    def enrich[TRecord: Record](
        self,
        record: TRecord,
        *,
        organization_ids: Sequence[str] = (),
        practitioner_id: str | None = None,
        related_location_tags: Sequence[Coding] = (),
    ) -> TRecord:
        """Return an enriched copy of ``record``; the input is left untouched."""

        enriched = record.clone()
        for organization_id in organization_ids:
            enriched.apply_tag(Coding(system=ORGANIZATION_TAG_SYSTEM, code=organization_id))
        if organization_ids:
            enriched.append_organization(
                Reference.of(ResourceType.ORGANIZATION, organization_ids[0])
            )
        if practitioner_id:
            enriched.apply_tag(Coding(system=PRACTITIONER_TAG_SYSTEM, code=practitioner_id))
            enriched.append_practitioner(Reference.of(ResourceType.PRACTITIONER, practitioner_id))
        for tag in related_location_tags:
            enriched.apply_tag(tag)
        enriched.meta.last_updated = self.clock()
        enriched.ensure_id()
        return enriched


def location_tag(location_id: str) -> Coding:
    return Coding(system=RELATED_LOCATION_TAG_SYSTEM, code=location_id)


def resolve_related_location_tags(
    repository: RecordRepository,
    *,
    subject: Record | None,
    group: Record | None = None,
    linkage_code: str | None = None,
) -> list[Coding]:
    """Find the location tags records of this submission should inherit.

    1. a location subject yields a tag built from its own id
    2. otherwise existing related-location tags on the subject or group are reused
    3. otherwise lists indexed by ``linkage_code`` are followed to a location
    """

    if subject is not None and subject.resource_type is ResourceType.LOCATION and subject.id:
        return [location_tag(subject.id)]

    existing: list[Coding] = []
    for candidate in (subject, group):
        if candidate is None:
            continue
        for tag in candidate.tags_for(RELATED_LOCATION_TAG_SYSTEM):
            if tag not in existing:
                existing.append(tag)
    if existing:
        return existing

    if linkage_code is None:
        return []
    for candidate in (subject, group):
        if candidate is None or not candidate.id:
            continue
        tags = _follow_linkage(repository, candidate.reference, linkage_code, depth=0)
        if tags:
            return tags
    return []


def _follow_linkage(
    repository: RecordRepository,
    reference: Reference,
    linkage_code: str,
    *,
    depth: int,
) -> list[Coding]:
    if depth >= MAX_LINKAGE_DEPTH:
        log.warning("Linkage lookup for %s stopped at depth %s", reference, depth)
        return []
    lists = repository.search(
        RecordQuery(resource_type=ResourceType.LIST, fields={"code": linkage_code})
    )
    for linkage in lists:
        if not isinstance(linkage, ListRecord) or not linkage.references(reference):
            continue
        target = linkage.subject
        if target is None:
            continue
        if target.resource_type is ResourceType.LOCATION:
            return [location_tag(target.id)]
        linked = repository.get(target.resource_type, target.id)
        if linked is None:
            continue
        tags = linked.tags_for(RELATED_LOCATION_TAG_SYSTEM)
        if tags:
            return tags
        tags = _follow_linkage(repository, target, linkage_code, depth=depth + 1)
        if tags:
            return tags
    return []
