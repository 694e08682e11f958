"""Ownership of records created on this installation."""

from __future__ import annotations

from typing import Final

from formingest.domain.submission.enrichment import OwnershipContext

from .env import optional_env_var, require_env_vars, split_list
from .errors import ConfigurationError

ORGANIZATION_IDS_VAR: Final[str] = "FORMINGEST_ORGANIZATION_IDS"
PRACTITIONER_ID_VAR: Final[str] = "FORMINGEST_PRACTITIONER_ID"


def get_ownership_context() -> OwnershipContext:
    """Organizations (comma separated, first is primary) and the acting practitioner."""

    values = require_env_vars((ORGANIZATION_IDS_VAR,))
    organization_ids = split_list(values[ORGANIZATION_IDS_VAR])
    if not organization_ids:
        raise ConfigurationError(f"{ORGANIZATION_IDS_VAR} lists no organization ids")
    return OwnershipContext(
        organization_ids=organization_ids,
        practitioner_id=optional_env_var(PRACTITIONER_ID_VAR),
    )
