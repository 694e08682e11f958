"""Best-effort plan generation for each configured plan template."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.submission.errors import PlanGenerationFailed
from formingest.domain.submission.outcomes import Completed, EngineFailure, NotConfigured

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.domain.model import Record, Reference
    from formingest.domain.ports import PlanGenerator, UnitOfWorkFactory
    from formingest.domain.submission.config import SubmissionConfig
    from formingest.domain.submission.outcomes import OutcomesByKey, StepOutcome

log = getLogger(__name__)


@dataclass(slots=True)
class PlanOrchestrator:
    generator: PlanGenerator | None
    uow_factory: UnitOfWorkFactory

    async def run(
        self,
        subject: Reference | None,
        bundle: Sequence[Record],
        config: SubmissionConfig,
    ) -> OutcomesByKey:
        plan_ids = list(dict.fromkeys(config.plan_templates))
        if not plan_ids:
            return {}
        outcomes = await asyncio.gather(
            *(self._run_plan(plan_id, subject, bundle) for plan_id in plan_ids)
        )
        return dict(zip(plan_ids, outcomes, strict=True))

    async def _run_plan(
        self,
        plan_id: str,
        subject: Reference | None,
        bundle: Sequence[Record],
    ) -> StepOutcome:
        if self.generator is None:
            return NotConfigured(reason="no plan generator available")
        if subject is None:
            return NotConfigured(reason="response has no subject")
        try:
            plan = await self.generator.generate(plan_id, subject, bundle)
            if plan is None:
                return Completed()
            plan = plan.clone()
            plan.ensure_id()
            with self.uow_factory() as uow:
                uow.repositories.records.upsert(plan)
                uow.commit()
        except Exception as exc:  # noqa: BLE001
            log.exception("Plan template %s failed for %s", plan_id, subject)
            failure = PlanGenerationFailed(f"plan template {plan_id}: {exc}")
            failure.__cause__ = exc
            return EngineFailure(error=failure)
        log.info("Plan %s generated from %s for %s", plan.reference, plan_id, subject)
        return Completed(produced=(plan.reference,))
