"""Per-form submission configuration."""

from __future__ import annotations

from collections.abc import Mapping  # noqa: TC003
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter

from formingest.domain.model import ActionParameterType, FormType, ResourceType


@dataclass(frozen=True, slots=True)
class GroupResourceConfig:
    """Group the extracted records should join, and optional removal flags."""

    group_id: str
    member_type: ResourceType = ResourceType.PERSON
    management_relationship_code: str | None = None
    remove_group: bool = False
    remove_member: bool = False
    deactivate_members: bool = True


@dataclass(frozen=True, slots=True)
class UniqueIdAssignmentConfig:
    """Retire the value answered for ``link_id`` from the pool ``pool_id``."""

    link_id: str
    pool_id: str


@dataclass(frozen=True, slots=True)
class SubmissionConfig:
    id: str
    type: FormType = FormType.DEFAULT
    resource_identifier: str | None = None
    resource_type: ResourceType | None = None
    persist_valid_only: bool = True
    identity_expressions: Mapping[ResourceType, str] = field(
        default_factory=dict[ResourceType, str]
    )
    plan_templates: tuple[str, ...] = ()
    library_ids: tuple[str, ...] = ()
    group_resource: GroupResourceConfig | None = None
    unique_id_assignment: UniqueIdAssignmentConfig | None = None
    set_organization_details: bool = True
    set_practitioner_details: bool = True
    related_location_linkage_code: str | None = None
    remove_resource: bool = False

    @property
    def is_editable(self) -> bool:
        return self.type.is_editable


@dataclass(frozen=True, slots=True)
class ActionParameter:
    """Key/value parameter handed over by the screen that launched the form."""

    key: str
    value: str
    param_type: ActionParameterType = ActionParameterType.PARAM_DATA
    resource_type: ResourceType | None = None


_CONFIG_ADAPTER: TypeAdapter[SubmissionConfig] = TypeAdapter(SubmissionConfig)
_ACTION_PARAMS_ADAPTER: TypeAdapter[list[ActionParameter]] = TypeAdapter(list[ActionParameter])


def parse_submission_config(raw: Mapping[str, Any]) -> SubmissionConfig:
    """Validate a JSON-like mapping into a ``SubmissionConfig``."""

    return _CONFIG_ADAPTER.validate_python(raw)


def parse_action_parameters(raw: list[Mapping[str, Any]]) -> list[ActionParameter]:
    return _ACTION_PARAMS_ADAPTER.validate_python(raw)
