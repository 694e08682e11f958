"""Best-effort evaluation of computation libraries after a submission commits."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import Record, ResourceType
from formingest.domain.submission.errors import ComputationFailed
from formingest.domain.submission.outcomes import Completed, EngineFailure, NotConfigured

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formingest.domain.model import FormTemplate, Reference
    from formingest.domain.ports import LibraryEvaluator, OutputParameter, UnitOfWorkFactory
    from formingest.domain.submission.config import SubmissionConfig
    from formingest.domain.submission.outcomes import OutcomesByKey, StepOutcome

log = getLogger(__name__)


def library_ids_for(template: FormTemplate, config: SubmissionConfig) -> list[str]:
    """Template libraries first, then configured ones, without duplicates."""

    ids: list[str] = []
    for library_id in (*template.library_ids, *config.library_ids):
        if library_id not in ids:
            ids.append(library_id)
    return ids


@dataclass(slots=True)
class ComputationRunner:
    evaluator: LibraryEvaluator | None
    uow_factory: UnitOfWorkFactory

    async def run(
        self,
        subject: Reference | None,
        bundle: Sequence[Record],
        template: FormTemplate,
        config: SubmissionConfig,
    ) -> OutcomesByKey:
        """Evaluate every library independently; one outcome per library id."""

        library_ids = library_ids_for(template, config)
        if not library_ids:
            return {}
        outcomes = await asyncio.gather(
            *(self._run_library(library_id, subject, bundle) for library_id in library_ids)
        )
        report = dict(zip(library_ids, outcomes, strict=True))
        failures = [key for key, outcome in report.items() if isinstance(outcome, EngineFailure)]
        if failures:
            log.warning("Computation failed for libraries: %s", ", ".join(failures))
        return report

    async def _run_library(
        self,
        library_id: str,
        subject: Reference | None,
        bundle: Sequence[Record],
    ) -> StepOutcome:
        if self.evaluator is None:
            return NotConfigured(reason="no library evaluator available")
        try:
            with self.uow_factory() as uow:
                library = uow.repositories.records.get(ResourceType.LIBRARY, library_id)
            if library is None:
                log.info("Library %s not found; skipping", library_id)
                return NotConfigured(reason=f"library {library_id} not found")
            outputs = await self.evaluator.evaluate(library, subject, bundle)
            produced = self._persist_artifacts(outputs)
        except Exception as exc:  # noqa: BLE001
            log.exception("Library %s failed for subject %s", library_id, subject)
            failure = ComputationFailed(f"library {library_id}: {exc}")
            failure.__cause__ = exc
            return EngineFailure(error=failure)
        return Completed(produced=produced)

    def _persist_artifacts(self, outputs: Sequence[OutputParameter]) -> tuple[Reference, ...]:
        artifacts: list[Record] = []
        for output in outputs:
            if not output.output_artifact:
                continue
            if not isinstance(output.value, Record):
                log.debug("Output %s is not a record; not persisted", output.name)
                continue
            artifact = output.value.clone()
            artifact.ensure_id()
            artifacts.append(artifact)
        if not artifacts:
            return ()
        with self.uow_factory() as uow:
            for artifact in artifacts:
                uow.repositories.records.upsert(artifact)
            uow.commit()
        return tuple(artifact.reference for artifact in artifacts)
