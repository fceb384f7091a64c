"""
Module: formflow_kernel.services.entry_workflow_service
Responsibility: The entry state machine.  Starts entries on a version's
    initial stage and advances them along transitions until a terminal
    transition completes them.
Architecture position: Kernel > Services.  Flush-only; the caller owns the
    transaction.

States per entry: each non-terminal stage of its version, plus complete.

Invariants enforced:
    - Entries are only created against a published version.  An entry
      already running keeps advancing on its version after a newer one is
      published.
    - A transition is only taken from the stage the entry is on (the
      initial stage for a new entry).
    - A complete entry never changes again.
    - Later-stage submissions lock the entry row and re-check completion
      under the lock, so concurrent submissions of one entry serialise.
    - A rejected submission persists nothing.
    - Actions run after the new entry state has been flushed, in order.

Failure modes:
    - FormVersionNotFoundError / EntryNotFoundError / TransitionNotFoundError
      / FieldNotFoundError for unknown ids.
    - VersionNotPublishedError, EntryAlreadyCompleteError,
      InvalidTransitionError, ReadOnlyFieldError, MissingInitialStageError.
    - StageAccessDeniedError when the caller fails the stage access check.
    - Rule violations are RETURNED in SubmissionResult, not raised.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from formflow_kernel.domain.collaborators import ActionExecutor, Caller
from formflow_kernel.domain.dtos import (
    EntryView,
    FieldRuleViolation,
    FormVersionView,
    StageView,
    SubmissionResult,
    TransitionView,
)
from formflow_kernel.domain.field_values import (
    FieldValueNormalizers,
    default_field_value_normalizers,
)
from formflow_kernel.domain.references import parse_uuid
from formflow_kernel.domain.submission import NO_ELIGIBLE_TRANSITION_RULE, SubmissionValidator
from formflow_kernel.exceptions import (
    EntryAlreadyCompleteError,
    FieldNotFoundError,
    InvalidTransitionError,
    MissingInitialStageError,
    ReadOnlyFieldError,
    StageAccessDeniedError,
    StageNotFoundError,
    TransitionNotFoundError,
    VersionNotPublishedError,
)
from formflow_kernel.logging_config import LogContext, get_logger
from formflow_kernel.models.entry import Entry, EntryValue
from formflow_kernel.models.form import FormVersion
from formflow_kernel.selectors.entry_selector import EntrySelector, entry_snapshot, entry_to_view
from formflow_kernel.selectors.form_version_selector import FormVersionSelector, version_to_view
from formflow_kernel.services.base import BaseService
from formflow_kernel.services.stage_access_service import StageAccessService

logger = get_logger("services.entry_workflow")

DEFAULT_PUBLIC_IDENTIFIER_BYTES = 24


def coerce_field_values(field_values: Any) -> dict[str, Any]:
    """
    Accept ``{field_id: value}`` or ``[{"field_id": ..., "value": ...}, ...]``
    and return a dict keyed by canonical field id text.

    Raises:
        FieldNotFoundError: For a key that is not a well-formed id.
    """
    if field_values is None:
        return {}
    if isinstance(field_values, Mapping):
        pairs = list(field_values.items())
    else:
        pairs = []
        for item in field_values:
            if not isinstance(item, Mapping) or "field_id" not in item:
                raise FieldNotFoundError(item)
            pairs.append((item["field_id"], item.get("value")))

    values: dict[str, Any] = {}
    for key, value in pairs:
        uid = parse_uuid(key)
        if uid is None:
            raise FieldNotFoundError(key)
        values[str(uid)] = value
    return values


class EntryWorkflowService(BaseService):
    """Creates and advances entries."""

    def __init__(
        self,
        session: Session,
        access: StageAccessService | None = None,
        action_executor: ActionExecutor | None = None,
        validator: SubmissionValidator | None = None,
        normalizers: FieldValueNormalizers | None = None,
        public_identifier_bytes: int = DEFAULT_PUBLIC_IDENTIFIER_BYTES,
    ):
        super().__init__(session)
        self._access = access or StageAccessService(session)
        self._executor = action_executor
        self._validator = validator or SubmissionValidator()
        self._normalizers = normalizers or default_field_value_normalizers()
        self._identifier_bytes = public_identifier_bytes
        self._versions = FormVersionSelector(session)
        self._entries = EntrySelector(session)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit_initial(
        self,
        version_id: Any,
        field_values: Any,
        transition_id: Any = None,
        caller: Caller | None = None,
    ) -> SubmissionResult:
        """
        Start a new entry on the version's initial stage and take a transition.

        With ``transition_id`` None, the first outgoing transition (declared
        order) whose condition holds is taken.
        """
        start = time.monotonic()
        version = self._published_version(version_id)
        view = version_to_view(version)
        stage = view.initial_stage
        if stage is None:
            raise MissingInitialStageError(version.id)
        self._require_access(stage, caller, None)

        submitted = self._prepare_values(view, stage, field_values)
        outcome = self._evaluate(view, stage, transition_id, submitted, submitted)
        if isinstance(outcome, SubmissionResult):
            return outcome
        transition = outcome

        entry = Entry(
            id=uuid4(),
            form_version_id=version.id,
            current_stage_id=stage.id,
            is_complete=False,
            public_identifier=secrets.token_urlsafe(self._identifier_bytes),
            created_by_user_id=caller.user_id if caller is not None else None,
        )
        self.session.add(entry)
        return self._apply(entry, stage, transition, submitted, caller, start)

    def submit_later_stage(
        self,
        public_identifier: str,
        field_values: Any,
        transition_id: Any = None,
        caller: Caller | None = None,
    ) -> SubmissionResult:
        """
        Submit the entry's current stage and take a transition from it.

        Validation sees the entry's stored values merged with the submitted
        ones.
        """
        start = time.monotonic()
        entry = self._entries.get_model(public_identifier, for_update=True)
        if entry.is_complete:
            raise EntryAlreadyCompleteError(entry.public_identifier)

        with LogContext.bind(entry_id=entry.id):
            version = self._versions.get_model(entry.form_version_id)
            if version.published_at is None:
                raise VersionNotPublishedError(version.id, version.status)
            view = version_to_view(version)
            stage = view.stage(entry.current_stage_id) if entry.current_stage_id else None
            if stage is None:
                raise StageNotFoundError(entry.current_stage_id)
            self._require_access(stage, caller, entry)

            submitted = self._prepare_values(view, stage, field_values)
            merged = {**entry.values_by_field(), **submitted}
            outcome = self._evaluate(view, stage, transition_id, submitted, merged)
            if isinstance(outcome, SubmissionResult):
                return outcome
            return self._apply(entry, stage, outcome, submitted, caller, start)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry(self, public_identifier: str, caller: Caller | None = None) -> EntryView:
        """
        Entry with every stage's stored values.

        Raises:
            EntryNotFoundError: If the entry does not exist.
            StageAccessDeniedError: If the caller may not open the entry's
                current stage.
        """
        entry = self._entries.get_model(public_identifier)
        view = self._versions.get_view(entry.form_version_id)
        stage = view.stage(entry.current_stage_id) if entry.current_stage_id else None
        if stage is None or not self._access.can_access_stage(stage, caller, entry):
            raise StageAccessDeniedError(
                entry.current_stage_id, caller.user_id if caller is not None else None
            )
        return entry_to_view(entry, view)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _published_version(self, version_id: Any) -> FormVersion:
        version = self._versions.get_model(version_id)
        if not version.is_published:
            raise VersionNotPublishedError(version.id, version.status)
        return version

    def _require_access(self, stage: StageView, caller: Caller | None, entry: Entry | None) -> None:
        if not self._access.can_access_stage(stage, caller, entry):
            raise StageAccessDeniedError(stage.id, caller.user_id if caller is not None else None)

    def _prepare_values(
        self, view: FormVersionView, stage: StageView, field_values: Any
    ) -> dict[str, Any]:
        """Check every submitted field belongs to the acting stage and normalise by kind."""
        submitted = coerce_field_values(field_values)
        stage_fields = {str(f.id): f for f in stage.fields}
        version_fields = {str(f.id) for s in view.stages for f in s.fields}
        prepared: dict[str, Any] = {}
        for field_id, value in submitted.items():
            f = stage_fields.get(field_id)
            if f is None:
                if field_id in version_fields:
                    raise ReadOnlyFieldError(field_id, stage.id)
                raise FieldNotFoundError(field_id, view.id)
            prepared[field_id] = self._normalizers.normalize(f.field_kind, value)
        return prepared

    def _evaluate(
        self,
        view: FormVersionView,
        stage: StageView,
        transition_id: Any,
        submitted: dict[str, Any],
        merged: dict[str, Any],
    ) -> TransitionView | SubmissionResult:
        """Pick the transition and validate; a rejected SubmissionResult on failure."""
        if transition_id is not None:
            transition = self._explicit_transition(view, stage, transition_id)
        else:
            outgoing = [t for t in view.transitions if t.from_stage_id == stage.id]
            transition = self._validator.select_transition(outgoing, merged)

        errors = self._validator.validate(stage, merged, transition)
        if transition is None:
            errors.append(
                FieldRuleViolation(
                    field_id=None,
                    rule_code=NO_ELIGIBLE_TRANSITION_RULE,
                    message="No transition is available for this submission.",
                )
            )
        if errors:
            logger.info(
                "entry_submission_rejected",
                extra={
                    "stage_id": str(stage.id),
                    "error_count": len(errors),
                    "rule_codes": sorted({e.rule_code for e in errors}),
                    "submitted_fields": len(submitted),
                },
            )
            return SubmissionResult.rejected(errors)
        return transition

    def _explicit_transition(
        self, view: FormVersionView, stage: StageView, transition_id: Any
    ) -> TransitionView:
        uid = parse_uuid(transition_id)
        transition = next((t for t in view.transitions if t.id == uid), None)
        if transition is None:
            raise TransitionNotFoundError(transition_id, view.id)
        if transition.from_stage_id != stage.id:
            raise InvalidTransitionError(transition.id, transition.from_stage_id, stage.id)
        return transition

    def _apply(
        self,
        entry: Entry,
        stage: StageView,
        transition: TransitionView,
        submitted: dict[str, Any],
        caller: Caller | None,
        start: float,
    ) -> SubmissionResult:
        stored = {str(v.field_id): v for v in entry.values}
        for field_id, value in submitted.items():
            row = stored.get(field_id)
            if row is None:
                entry.values.append(
                    EntryValue(id=uuid4(), field_id=parse_uuid(field_id), value=value)
                )
            else:
                row.value = value

        from_stage_id = entry.current_stage_id
        if transition.to_complete:
            entry.is_complete = True
        elif transition.to_stage_id is not None:
            entry.current_stage_id = transition.to_stage_id
        self.session.flush()

        action_results = []
        if transition.actions and self._executor is not None:
            action_results = self._executor.execute(transition, entry_snapshot(entry), caller)

        logger.info(
            "entry_submitted",
            extra={
                "entry_id": str(entry.id),
                "form_version_id": str(entry.form_version_id),
                "transition_id": str(transition.id),
                "from_stage_id": str(from_stage_id) if from_stage_id else None,
                "to_stage_id": str(entry.current_stage_id) if entry.current_stage_id else None,
                "is_complete": entry.is_complete,
                "action_count": len(action_results),
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return SubmissionResult(
            success=True,
            entry_id=entry.id,
            public_identifier=entry.public_identifier,
            current_stage_id=entry.current_stage_id,
            is_complete=entry.is_complete,
            transition_id=transition.id,
            action_results=tuple(action_results),
        )
