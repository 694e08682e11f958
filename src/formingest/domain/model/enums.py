"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ResourceType(StrEnum):
    """Type tag carried by every stored record and used in references."""

    PERSON = "Person"
    RELATED_PERSON = "RelatedPerson"
    ENCOUNTER = "Encounter"
    OBSERVATION = "Observation"
    CONDITION = "Condition"
    LOCATION = "Location"
    ORGANIZATION = "Organization"
    PRACTITIONER = "Practitioner"
    PRACTITIONER_ROLE = "PractitionerRole"
    CARE_TEAM = "CareTeam"
    DEVICE = "Device"
    HEALTHCARE_SERVICE = "HealthcareService"
    SPECIMEN = "Specimen"
    GROUP = "Group"
    LIST = "List"
    CARE_PLAN = "CarePlan"
    TASK = "Task"
    LIBRARY = "Library"
    TRANSFORM = "Transform"
    FORM_TEMPLATE = "FormTemplate"
    FORM_RESPONSE = "FormResponse"


class GroupKind(StrEnum):
    GENERIC = "generic"
    UNIQUE_ID_POOL = "unique-id-pool"


class ResponseStatus(StrEnum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    STOPPED = "stopped"


class ItemType(StrEnum):
    GROUP = "group"
    DISPLAY = "display"
    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    CHOICE = "choice"
    REFERENCE = "reference"


class FormType(StrEnum):
    """How a form was opened; drives edit-in-place semantics."""

    DEFAULT = "default"
    EDIT = "edit"
    READ_ONLY = "read_only"

    @property
    def is_editable(self) -> bool:
        return self is FormType.EDIT

    @property
    def is_read_only(self) -> bool:
        return self is FormType.READ_ONLY


class ActionParameterType(StrEnum):
    PARAM_DATA = "param_data"
    PREPOPULATE = "prepopulate"
    UPDATE_DATE_ON_EDIT = "update_date_on_edit"
    POPULATION_RESOURCE = "population_resource"
