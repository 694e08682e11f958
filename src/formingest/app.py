"""Application entry points wiring adapters into the submission pipeline."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from formingest.adapters.expressions import FieldPathEvaluator
from formingest.adapters.mapping import DefinitionMappingEngine
from formingest.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySubmissionUnitOfWork,
    is_started,
    startup,
)
from formingest.common.logging import configure_logging
from formingest.config import get_ownership_context
from formingest.domain.submission import SubmissionOrchestrator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.domain.model import FormResponse, FormTemplate
    from formingest.domain.ports import (
        LibraryEvaluator,
        MappingEngine,
        PlanGenerator,
        UnitOfWorkFactory,
    )
    from formingest.domain.submission import (
        ActionParameter,
        OwnershipContext,
        SubmissionConfig,
        SubmissionResult,
    )

log = getLogger(__name__)


def bootstrap(*, database_uri: str | None = None) -> None:
    """Load ``.env``, configure logging and start the persistence adapter once."""

    load_dotenv()
    configure_logging()
    if not is_started():
        startup(database_uri=database_uri)


def build_orchestrator(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    mapping_engine: MappingEngine | None = None,
    library_evaluator: LibraryEvaluator | None = None,
    plan_generator: PlanGenerator | None = None,
    ownership: OwnershipContext | None = None,
) -> SubmissionOrchestrator:
    """Assemble an orchestrator with the bundled adapters as defaults."""

    return SubmissionOrchestrator(
        uow_factory=unit_of_work_factory or SqlAlchemySubmissionUnitOfWork,
        mapping_engine=mapping_engine or DefinitionMappingEngine(),
        expression_evaluator=FieldPathEvaluator(),
        library_evaluator=library_evaluator,
        plan_generator=plan_generator,
        ownership=ownership or get_ownership_context(),
    )


def submit_form(
    template: FormTemplate,
    response: FormResponse,
    config: SubmissionConfig,
    action_params: Sequence[ActionParameter] = (),
    *,
    orchestrator: SubmissionOrchestrator | None = None,
) -> SubmissionResult:
    """Synchronous convenience wrapper around ``SubmissionOrchestrator.submit``."""

    if orchestrator is None:
        bootstrap()
        orchestrator = build_orchestrator()
    log.info("Submitting response %s with form %s", response.id, config.id)
    result = asyncio.run(orchestrator.submit(template, response, config, action_params))
    for warning in result.warnings:
        log.warning("%s warning for %s: %s", warning.kind, warning.context, warning.message)
    return result
