"""Form response submission pipeline."""

from __future__ import annotations

from .computation import ComputationRunner
from .config import (
    ActionParameter,
    GroupResourceConfig,
    SubmissionConfig,
    UniqueIdAssignmentConfig,
    parse_action_parameters,
    parse_submission_config,
)
from .enrichment import (
    ORGANIZATION_TAG_SYSTEM,
    PRACTITIONER_TAG_SYSTEM,
    RELATED_LOCATION_TAG_SYSTEM,
    MetadataEnricher,
    OwnershipContext,
    resolve_related_location_tags,
)
from .errors import (
    ComputationFailed,
    ExtractionFailed,
    PersistenceFailed,
    PlanGenerationFailed,
    ReconciliationError,
    SubmissionError,
    ValidationFailed,
)
from .groups import MEMBER_ELIGIBLE_TYPES, GroupMembershipManager
from .ledger import build_ledger, find_prior_ledger, load_ledger_records, search_latest_response
from .orchestrator import SubmissionOrchestrator
from .outcomes import (
    Completed,
    EngineFailure,
    NotConfigured,
    StepStatus,
    SubmissionResult,
    SubmissionWarning,
    WarningKind,
)
from .plans import PlanOrchestrator
from .reconcile import ReconciliationResult, Reconciler
from .responses import discard_draft, save_draft, touch_records
from .unique_ids import retire_in_pool, retire_unique_id
from .validation import ResponseValidator, StructuralResponseValidator, ValidationIssue

__all__ = [
    "MEMBER_ELIGIBLE_TYPES",
    "ORGANIZATION_TAG_SYSTEM",
    "PRACTITIONER_TAG_SYSTEM",
    "RELATED_LOCATION_TAG_SYSTEM",
    "ActionParameter",
    "Completed",
    "ComputationFailed",
    "ComputationRunner",
    "EngineFailure",
    "ExtractionFailed",
    "GroupMembershipManager",
    "GroupResourceConfig",
    "MetadataEnricher",
    "NotConfigured",
    "OwnershipContext",
    "PersistenceFailed",
    "PlanGenerationFailed",
    "PlanOrchestrator",
    "ReconciliationError",
    "ReconciliationResult",
    "Reconciler",
    "ResponseValidator",
    "StepStatus",
    "StructuralResponseValidator",
    "SubmissionConfig",
    "SubmissionError",
    "SubmissionOrchestrator",
    "SubmissionResult",
    "SubmissionWarning",
    "UniqueIdAssignmentConfig",
    "ValidationFailed",
    "ValidationIssue",
    "WarningKind",
    "build_ledger",
    "discard_draft",
    "find_prior_ledger",
    "load_ledger_records",
    "parse_action_parameters",
    "parse_submission_config",
    "resolve_related_location_tags",
    "retire_in_pool",
    "retire_unique_id",
    "save_draft",
    "search_latest_response",
    "touch_records",
]
