"""Submission of a completed form response.

``submit`` runs these steps, strictly in order:

1. validate the response against its template
2. stamp response metadata (authored time, status, template, subject)
3. extract candidate records through the mapping engine
4. reconcile candidates with the previous submission (editable forms)
5. enrich records and the response, wire the subject
6. apply group membership side effects (written after the records in step 8)
7. append a fresh ledger to the response
8. persist everything in one transaction
9. post-commit: plans, computations, configured soft deletions
10. report generated references, the saved response, warnings and outcomes

Only validation and persistence failures raise; everything else is reported on
the ``SubmissionResult``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from formingest.domain.model import (
    FormResponse,
    Reference,
    ResourceType,
    ResponseStatus,
)
from formingest.domain.ports import (
    MappingContext,
    PersistenceError,
    TransformNotFoundError,
)
from formingest.domain.submission.computation import ComputationRunner
from formingest.domain.submission.enrichment import (
    MetadataEnricher,
    OwnershipContext,
    resolve_related_location_tags,
)
from formingest.domain.submission.errors import (
    ExtractionFailed,
    PersistenceFailed,
    ValidationFailed,
)
from formingest.domain.submission.groups import GroupMembershipManager
from formingest.domain.submission.ledger import (
    build_ledger,
    find_prior_ledger,
    load_ledger_records,
    search_latest_response,
)
from formingest.domain.submission.outcomes import (
    Completed,
    EngineFailure,
    NotConfigured,
    SubmissionResult,
    SubmissionWarning,
    WarningKind,
)
from formingest.domain.submission.plans import PlanOrchestrator
from formingest.domain.submission.reconcile import Reconciler
from formingest.domain.submission.responses import (
    discard_draft,
    references_to_touch,
    save_draft,
    touch_records,
)
from formingest.domain.submission.unique_ids import retire_in_pool
from formingest.domain.submission.validation import StructuralResponseValidator

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from formingest.domain.model import FormTemplate, Record
    from formingest.domain.ports import (
        ExpressionEvaluator,
        LibraryEvaluator,
        MappingEngine,
        PlanGenerator,
        RecordRepository,
        UnitOfWorkFactory,
    )
    from formingest.domain.submission.config import ActionParameter, SubmissionConfig
    from formingest.domain.submission.outcomes import OutcomesByKey, StepOutcome
    from formingest.domain.submission.validation import ResponseValidator

log = getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _context(record: Record) -> str:
    return f"{record.resource_type}/{record.id}"


@dataclass(slots=True)
class _Extraction:
    records: list[Record]
    outcome: StepOutcome


@dataclass(slots=True)
class SubmissionOrchestrator:
    """Turns a completed response into persisted records."""

    uow_factory: UnitOfWorkFactory
    mapping_engine: MappingEngine
    expression_evaluator: ExpressionEvaluator
    library_evaluator: LibraryEvaluator | None = None
    plan_generator: PlanGenerator | None = None
    validator: ResponseValidator = field(default_factory=StructuralResponseValidator)
    ownership: OwnershipContext = field(default_factory=OwnershipContext)
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def submit(
        self,
        template: FormTemplate,
        response: FormResponse,
        config: SubmissionConfig,
        action_params: Sequence[ActionParameter] = (),
    ) -> SubmissionResult:
        response = response.clone()
        warnings: list[SubmissionWarning] = []

        self._validate(template, response, config, warnings)
        now = self.clock()
        subject_type = self._stamp_response(template, response, config, now)

        extraction = await self._extract(template, response, warnings)

        try:
            with self.uow_factory() as uow:
                repository = uow.repositories.records
                records = extraction.records
                if config.is_editable:
                    records = self._reconcile(
                        repository, template, response, config, records, subject_type, warnings
                    )
                for record in records:
                    record.ensure_id()
                self._wire_subject(response, records, subject_type, editable=config.is_editable)
                records, response = self._enrich(repository, response, records, config)

                ledger = build_ledger(records, date=now)
                response.append_ledger(ledger)

                if template.experimental:
                    log.warning(
                        "Template %s is experimental; response %s not saved",
                        template.id,
                        response.id,
                    )
                    warnings.append(
                        SubmissionWarning(
                            WarningKind.EXPERIMENTAL,
                            _context(template),
                            "experimental template, nothing was saved",
                        )
                    )
                    persisted = False
                else:
                    self._persist(repository, response, records, config, action_params, now)
                    uow.commit()
                    persisted = True
        except PersistenceError as exc:
            log.exception("Submission of response %s rolled back", response.id)
            raise PersistenceFailed(f"Could not save response {response.id}: {exc}") from exc

        generated = [entry.reference for entry in ledger.entries]
        if isinstance(extraction.outcome, Completed):
            extraction.outcome = Completed(produced=tuple(generated))
        result = SubmissionResult(
            generated=generated,
            response=response,
            persisted=persisted,
            extraction=extraction.outcome,
            warnings=warnings,
        )
        log.info(
            "Submitted response %s for %s with %s records",
            response.id,
            response.subject,
            len(generated),
        )
        if persisted:
            await self._after_commit(template, response, records, config, result)
        return result

    async def save_draft(self, response: FormResponse) -> bool:
        return save_draft(self.uow_factory, response)

    async def discard_draft(self, response_id: str) -> FormResponse:
        return discard_draft(self.uow_factory, response_id)

    async def search_latest_response(
        self, subject: Reference, template_id: str
    ) -> FormResponse | None:
        with self.uow_factory() as uow:
            return search_latest_response(
                uow.repositories.records, subject=subject, template_id=template_id
            )

    # steps ---------------------------------------------------------------------

    def _validate(
        self,
        template: FormTemplate,
        response: FormResponse,
        config: SubmissionConfig,
        warnings: list[SubmissionWarning],
    ) -> None:
        if config.type.is_read_only:
            raise ValidationFailed(f"Form {config.id} is read-only")
        if response.status is ResponseStatus.STOPPED:
            raise ValidationFailed(f"Response {response.id} was stopped and cannot be submitted")
        if response.status is ResponseStatus.COMPLETED and not config.is_editable:
            raise ValidationFailed(
                f"Response {response.id} is already completed and form {config.id} is not editable"
            )

        issues = self.validator.validate(template, response)
        if not issues:
            return
        summary = "; ".join(f"{issue.link_id}: {issue.message}" for issue in issues)
        if config.persist_valid_only:
            raise ValidationFailed(f"Response {response.id} is invalid: {summary}", issues=issues)
        log.warning("Saving invalid response %s: %s", response.id, summary)
        warnings.append(
            SubmissionWarning(WarningKind.VALIDATION, _context(response), summary)
        )

    def _stamp_response(
        self,
        template: FormTemplate,
        response: FormResponse,
        config: SubmissionConfig,
        now: datetime,
    ) -> ResourceType | None:
        response.mark_completed(now)
        if template.id:
            response.template = template.reference
        for tag in template.use_context:
            response.apply_tag(tag)

        subject_type = config.resource_type or template.subject_type
        if config.resource_identifier and subject_type is not None:
            response.subject = Reference.parse(
                config.resource_identifier, default_type=subject_type
            )
        elif (
            response.subject is None
            and subject_type is ResourceType.ORGANIZATION
            and self.ownership.organization_ids
        ):
            response.subject = Reference.of(
                ResourceType.ORGANIZATION, self.ownership.organization_ids[0]
            )
        return subject_type

    async def _extract(
        self,
        template: FormTemplate,
        response: FormResponse,
        warnings: list[SubmissionWarning],
    ) -> _Extraction:
        if not template.is_extraction_candidate:
            outcome = NotConfigured(reason="template defines no extraction")
            return _Extraction(records=[], outcome=outcome)
        context = MappingContext(resolve_transform=self._resolve_transform)
        try:
            candidates = await self.mapping_engine.extract(template, response, context)
        except TransformNotFoundError as exc:
            log.warning("Transform for template %s not found: %s", template.id, exc)
            warnings.append(
                SubmissionWarning(WarningKind.EXTRACTION, _context(template), str(exc))
            )
            return _Extraction(records=[], outcome=NotConfigured(reason=str(exc)))
        except Exception as exc:  # noqa: BLE001
            log.exception("Extraction failed for response %s", response.id)
            failure = ExtractionFailed(f"Extraction failed for template {template.id}: {exc}")
            failure.__cause__ = exc
            warnings.append(
                SubmissionWarning(WarningKind.EXTRACTION, _context(template), str(failure))
            )
            return _Extraction(records=[], outcome=EngineFailure(error=failure))
        records = [candidate.clone() for candidate in candidates]
        return _Extraction(records=records, outcome=Completed())

    async def _resolve_transform(self, transform_id: str) -> Record | None:
        with self.uow_factory() as uow:
            return uow.repositories.records.get(ResourceType.TRANSFORM, transform_id)

    def _reconcile(
        self,
        repository: RecordRepository,
        template: FormTemplate,
        response: FormResponse,
        config: SubmissionConfig,
        candidates: list[Record],
        subject_type: ResourceType | None,
        warnings: list[SubmissionWarning],
    ) -> list[Record]:
        prior_ledger = find_prior_ledger(repository, response, template_id=template.id or config.id)
        prior_records = load_ledger_records(repository, prior_ledger) if prior_ledger else {}
        result = Reconciler(self.expression_evaluator).reconcile(
            candidates,
            prior_records,
            config.identity_expressions,
            subject=response.subject,
            subject_type=subject_type,
            editable=True,
        )
        for error in result.errors:
            warnings.append(
                SubmissionWarning(WarningKind.RECONCILIATION, _context(response), str(error))
            )
        if result.matched:
            log.debug("Re-identified records: %s", result.matched)
        return result.records

    def _wire_subject(
        self,
        response: FormResponse,
        records: list[Record],
        subject_type: ResourceType | None,
        *,
        editable: bool,
    ) -> None:
        if response.subject is None and subject_type is not None:
            for record in records:
                if record.resource_type is subject_type:
                    response.subject = record.reference
                    break
        subject = response.subject
        if subject is None:
            return
        for record in records:
            if record.key == (subject.resource_type, subject.id):
                continue
            current = record.get_subject()
            if current is None:
                record.assign_subject(subject)
            elif editable and current != subject and current.resource_type is subject.resource_type:
                # the candidate pointed at the freshly generated subject id
                record.assign_subject(subject)

    def _enrich(
        self,
        repository: RecordRepository,
        response: FormResponse,
        records: list[Record],
        config: SubmissionConfig,
    ) -> tuple[list[Record], FormResponse]:
        subject_record = self._find_subject_record(repository, response, records)
        group = None
        if config.group_resource is not None:
            group = repository.get(ResourceType.GROUP, config.group_resource.group_id)
        location_tags = resolve_related_location_tags(
            repository,
            subject=subject_record,
            group=group,
            linkage_code=config.related_location_linkage_code,
        )
        enricher = MetadataEnricher(clock=self.clock)
        ownership = self.ownership
        organization_ids = ownership.organization_ids if config.set_organization_details else ()
        practitioner_id = ownership.practitioner_id if config.set_practitioner_details else None
        enriched = [
            enricher.enrich(
                record,
                organization_ids=organization_ids,
                practitioner_id=practitioner_id,
                related_location_tags=location_tags,
            )
            for record in records
        ]
        enriched_response = enricher.enrich(
            response,
            organization_ids=organization_ids,
            practitioner_id=practitioner_id,
            related_location_tags=location_tags,
        )
        return enriched, enriched_response

    @staticmethod
    def _find_subject_record(
        repository: RecordRepository,
        response: FormResponse,
        records: list[Record],
    ) -> Record | None:
        if response.subject is None:
            return None
        for record in records:
            if record.key == (response.subject.resource_type, response.subject.id):
                return record
        return repository.get(response.subject.resource_type, response.subject.id)

    @staticmethod
    def _update_groups(
        repository: RecordRepository,
        records: list[Record],
        config: SubmissionConfig,
    ) -> None:
        group_config = config.group_resource
        if group_config is None:
            return
        manager = GroupMembershipManager(repository)
        for record in records:
            manager.update_managing_entity(
                record, group_config.group_id, group_config.management_relationship_code
            )
            manager.add_member(record, group_config.member_type, group_config.group_id)

    def _persist(
        self,
        repository: RecordRepository,
        response: FormResponse,
        records: list[Record],
        config: SubmissionConfig,
        action_params: Sequence[ActionParameter],
        now: datetime,
    ) -> None:
        for record in records:
            repository.upsert(record)
        # after the records so an extracted copy of the group cannot overwrite membership
        self._update_groups(repository, records, config)

        assignment = config.unique_id_assignment
        if assignment is not None:
            used_value = response.answer_value(assignment.link_id)
            if used_value is None:
                log.debug("No answer for unique id item %s", assignment.link_id)
            else:
                retire_in_pool(repository, assignment.pool_id, str(used_value))

        if config.is_editable:
            touch_records(repository, references_to_touch(action_params), at=now)

        repository.upsert(response)

    async def _after_commit(
        self,
        template: FormTemplate,
        response: FormResponse,
        records: list[Record],
        config: SubmissionConfig,
        result: SubmissionResult,
    ) -> None:
        bundle: list[Record] = [*records, response]
        plans = PlanOrchestrator(self.plan_generator, self.uow_factory)
        computations = ComputationRunner(self.library_evaluator, self.uow_factory)
        plan_report, computation_report = await asyncio.gather(
            plans.run(response.subject, bundle, config),
            computations.run(response.subject, bundle, template, config),
            return_exceptions=True,
        )
        for report in (plan_report, computation_report):
            if isinstance(report, BaseException) and not isinstance(report, Exception):
                log.warning("Follow-up work for response %s cancelled after commit", response.id)
                raise report
        result.plans = self._absorb(plan_report, WarningKind.PLAN_GENERATION, result)
        result.computations = self._absorb(
            computation_report, WarningKind.COMPUTATION, result
        )

        for plan_id, outcome in result.plans.items():
            if isinstance(outcome, EngineFailure):
                result.warnings.append(
                    SubmissionWarning(WarningKind.PLAN_GENERATION, plan_id, outcome.reason)
                )
        for library_id, outcome in result.computations.items():
            if isinstance(outcome, EngineFailure):
                result.warnings.append(
                    SubmissionWarning(WarningKind.COMPUTATION, library_id, outcome.reason)
                )

        self._soft_delete(response, config, result)

    @staticmethod
    def _absorb(
        report: OutcomesByKey | BaseException,
        kind: WarningKind,
        result: SubmissionResult,
    ) -> OutcomesByKey:
        if not isinstance(report, BaseException):
            return report
        log.error("%s step failed after commit", kind, exc_info=report)
        result.warnings.append(SubmissionWarning(kind, _context(result.response), str(report)))
        return {}

    def _soft_delete(
        self,
        response: FormResponse,
        config: SubmissionConfig,
        result: SubmissionResult,
    ) -> None:
        group_config = config.group_resource
        subject = response.subject
        steps: list[tuple[str, Callable[[GroupMembershipManager], bool]]] = []
        if group_config is not None and group_config.remove_group:
            steps.append(
                (
                    f"{ResourceType.GROUP}/{group_config.group_id}",
                    partial(
                        GroupMembershipManager.remove_group,
                        group_id=group_config.group_id,
                        deactivate_members=group_config.deactivate_members,
                    ),
                )
            )
        if subject is not None and group_config is not None and group_config.remove_member:
            steps.append(
                (
                    str(subject),
                    partial(
                        GroupMembershipManager.remove_member,
                        member=subject,
                        group_id=group_config.group_id,
                    ),
                )
            )
        if subject is not None and config.remove_resource:
            steps.append(
                (str(subject), partial(GroupMembershipManager.remove_resource, reference=subject))
            )

        for context, step in steps:
            try:
                with self.uow_factory() as uow:
                    step(GroupMembershipManager(uow.repositories.records))
                    uow.commit()
            except Exception as exc:  # noqa: BLE001
                log.exception("Soft deletion of %s failed", context)
                result.warnings.append(SubmissionWarning(WarningKind.CLEANUP, context, str(exc)))
