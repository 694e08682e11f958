"""Opportunistic group membership and management updates.

Every operation loads the group fresh from the repository and quietly does
nothing when its preconditions are not met.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from formingest.domain.model import Group, RelatedPerson, ResourceType

if TYPE_CHECKING:
    from formingest.domain.model import Record, Reference
    from formingest.domain.ports import RecordRepository

log = getLogger(__name__)

MEMBER_ELIGIBLE_TYPES: Final[frozenset[ResourceType]] = frozenset(
    {
        ResourceType.CARE_TEAM,
        ResourceType.DEVICE,
        ResourceType.GROUP,
        ResourceType.HEALTHCARE_SERVICE,
        ResourceType.LOCATION,
        ResourceType.ORGANIZATION,
        ResourceType.PERSON,
        ResourceType.PRACTITIONER,
        ResourceType.PRACTITIONER_ROLE,
        ResourceType.SPECIMEN,
    }
)


@dataclass(slots=True)
class GroupMembershipManager:
    repository: RecordRepository

    def update_managing_entity(
        self,
        record: Record,
        group_id: str,
        relationship_code: str | None,
    ) -> bool:
        """Make ``record`` the managing entity of the group when its relationship matches."""

        if relationship_code is None or not record.id:
            return False
        if not isinstance(record, RelatedPerson) or not record.has_relationship(relationship_code):
            return False
        group = self._load_group(group_id)
        if group is None:
            return False
        if group.managing_entity == record.reference:
            return False
        group.managing_entity = record.reference
        self.repository.upsert(group)
        log.debug("Group %s now managed by %s", group_id, record.reference)
        return True

    def add_member(self, record: Record, member_type: ResourceType, group_id: str) -> bool:
        if not record.id:
            return False
        if record.resource_type is not member_type:
            return False
        if member_type not in MEMBER_ELIGIBLE_TYPES:
            return False
        group = self._load_group(group_id)
        if group is None:
            return False
        if not group.add_member(record.reference):
            return False
        self.repository.upsert(group)
        log.debug("Added %s to group %s", record.reference, group_id)
        return True

    def remove_group(self, group_id: str, *, deactivate_members: bool = True) -> bool:
        """Soft-delete a group: clear its members, drop its manager and deactivate it."""

        group = self._load_group(group_id)
        if group is None:
            return False
        if deactivate_members:
            for member in group.members:
                if member.entity is not None:
                    deactivate_record(self.repository, member.entity)
        group.members = []
        group.managing_entity = None
        group.active = False
        self.repository.upsert(group)
        log.info("Removed group %s", group_id)
        return True

    def remove_member(
        self,
        member: Reference,
        group_id: str | None = None,
        *,
        deactivate: bool = True,
    ) -> bool:
        """Take ``member`` out of a group, optionally deactivating the member record."""

        changed = deactivate_record(self.repository, member) if deactivate else False
        if group_id is None:
            return changed
        group = self._load_group(group_id)
        if group is None:
            return changed
        removed = group.remove_member(member)
        if group.managing_entity == member:
            group.managing_entity = None
            removed = True
        if removed:
            self.repository.upsert(group)
            log.info("Removed %s from group %s", member, group_id)
        return changed or removed

    def remove_resource(self, reference: Reference) -> bool:
        return deactivate_record(self.repository, reference)

    def _load_group(self, group_id: str) -> Group | None:
        record = self.repository.get(ResourceType.GROUP, group_id)
        if record is None:
            log.debug("Group %s does not exist", group_id)
            return None
        if not isinstance(record, Group):
            return None
        return record


def deactivate_record(repository: RecordRepository, reference: Reference) -> bool:
    """Mark a record inactive; records without an active flag are deleted."""

    record = repository.get(reference.resource_type, reference.id)
    if record is None:
        return False
    if getattr(record, "active", None) is None:
        repository.delete(reference.resource_type, reference.id)
        log.info("Deleted %s", reference)
        return True
    if record.active is False:  # type: ignore[attr-defined]
        return False
    record.active = False  # type: ignore[attr-defined]
    repository.upsert(record)
    log.info("Deactivated %s", reference)
    return True
