"""
formflow_services.form_workflow_service -- Transaction-owning facade.

Responsibility:
    The public surface of the workflow-forms kernel.  Each operation runs
    one kernel call inside one transaction: commit on success, rollback and
    re-raise on any exception (when ``auto_commit=True``).

Architecture position:
    Services.  Sits above the kernel services built by FormflowOrchestrator.
    Transport layers (HTTP handlers, CLIs) call this and nothing below it.

Invariants enforced:
    - Transaction boundaries: no partial graph and no partial entry state is
      ever committed.
    - A rejected submission commits nothing.
    - Every operation binds LogContext (form, version or entry ids) so the
      structured logs emitted underneath carry them.
    - End-user reads are localized through the TranslationProvider; operator
      reads (get_version, list_versions) are not.

Failure modes:
    - Every kernel exception propagates unchanged after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from formflow_kernel.domain.collaborators import Caller
from formflow_kernel.domain.dtos import (
    EntryView,
    FormSummary,
    FormVersionSummary,
    FormVersionView,
    StageStructureView,
    SubmissionResult,
)
from formflow_kernel.exceptions import StageAccessDeniedError, VersionNotPublishedError
from formflow_kernel.logging_config import LogContext, get_logger
from formflow_kernel.selectors.form_version_selector import form_summary
from formflow_services.orchestrator import FormflowOrchestrator
from formflow_services.translation import Localizer

logger = get_logger("services.form_workflow")

T = TypeVar("T")


class FormWorkflowService:
    """Operations exposed to callers of the workflow-forms kernel.

    Contract:
        Receives a Session (and optionally a pre-built orchestrator).  With
        ``auto_commit=True`` each mutating call commits on success and rolls
        back on failure; with ``auto_commit=False`` the caller owns the
        transaction and the facade only flushes.
    """

    def __init__(
        self,
        session: Session,
        orchestrator: FormflowOrchestrator | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._orchestrator = orchestrator or FormflowOrchestrator(session)
        self._auto_commit = auto_commit

    @classmethod
    def from_orchestrator(
        cls, orchestrator: FormflowOrchestrator, auto_commit: bool = True
    ) -> FormWorkflowService:
        return cls(orchestrator.session, orchestrator, auto_commit=auto_commit)

    @property
    def orchestrator(self) -> FormflowOrchestrator:
        return self._orchestrator

    # ------------------------------------------------------------------
    # Operator side: forms and versions
    # ------------------------------------------------------------------

    def create_form(self, name: str, category: str | None = None) -> FormSummary:
        return self._transaction(
            "create_form", lambda: self._orchestrator.forms.create_form(name, category)
        )

    def create_version(self, form_id: Any, copy_from_current: bool) -> FormVersionView:
        """Blank skeleton, or a re-mapped copy of the form's latest version."""
        with LogContext.bind(form_id=form_id):
            return self._transaction(
                "create_version",
                lambda: self._orchestrator.form_versions.create_version(
                    form_id, copy_from_current
                ),
            )

    def rewrite_draft(
        self,
        version_id: Any,
        payload: Any,
        expected_revision: int | None = None,
    ) -> FormVersionView:
        """Replace a draft's whole graph; see FormVersionService.rewrite_draft."""
        with LogContext.bind(form_version_id=version_id):
            return self._transaction(
                "rewrite_draft",
                lambda: self._orchestrator.form_versions.rewrite_draft(
                    version_id, payload, expected_revision
                ),
            )

    def publish_draft(self, version_id: Any) -> FormVersionView:
        with LogContext.bind(form_version_id=version_id):
            return self._transaction(
                "publish_draft",
                lambda: self._orchestrator.form_versions.publish_draft(version_id),
            )

    def get_version(self, version_id: Any) -> FormVersionView:
        return self._orchestrator.versions.get_view(version_id)

    def list_versions(self, form_id: Any) -> list[FormVersionSummary]:
        return self._orchestrator.versions.list_versions(form_id)

    # ------------------------------------------------------------------
    # End-user side
    # ------------------------------------------------------------------

    def list_accessible_forms(
        self, caller: Caller | None, language_id: Any = None
    ) -> list[FormSummary]:
        """Forms whose latest published version the caller may start."""
        localizer = self._localizer(language_id)
        allowed = set(self._orchestrator.access.accessible_form_ids(caller))
        return [
            localizer.form_summary(form_summary(form, version))
            for form, version in self._orchestrator.versions.latest_published_versions()
            if form.id in allowed
        ]

    def get_initial_stage_structure(
        self,
        version_id: Any,
        caller: Caller | None,
        language_id: Any = None,
    ) -> StageStructureView:
        """
        The initial stage of a published version and its outgoing transitions.

        Raises:
            FormVersionNotFoundError: If the version does not exist.
            VersionNotPublishedError: If the version is a draft.
            StageAccessDeniedError: If the caller may not open the stage.
        """
        versions = self._orchestrator.versions
        version = versions.get_model(version_id)
        if not version.is_published:
            raise VersionNotPublishedError(version.id, version.status)
        view = versions.get_view(version.id)
        stage = view.initial_stage
        if stage is None or not self._orchestrator.access.can_access_stage(stage, caller):
            raise StageAccessDeniedError(
                stage.id if stage is not None else None,
                caller.user_id if caller is not None else None,
            )
        localizer = self._localizer(language_id)
        form = versions.get_form(view.form_id)
        return StageStructureView(
            form_id=form.id,
            form_name=localizer.form_name(form.id, form.name),
            form_version_id=view.id,
            stage=localizer.stage(stage),
            transitions=tuple(
                localizer.transition(t) for t in view.transitions if t.from_stage_id == stage.id
            ),
        )

    def submit_initial(
        self,
        version_id: Any,
        field_values: Any,
        transition_id: Any = None,
        caller: Caller | None = None,
    ) -> SubmissionResult:
        with LogContext.bind(
            form_version_id=version_id,
            actor_id=caller.user_id if caller is not None else None,
        ):
            return self._submission(
                "submit_initial",
                lambda: self._orchestrator.entry_workflow.submit_initial(
                    version_id, field_values, transition_id, caller
                ),
            )

    def get_entry(
        self,
        public_identifier: str,
        caller: Caller | None,
        language_id: Any = None,
    ) -> EntryView:
        entry = self._orchestrator.entry_workflow.get_entry(public_identifier, caller)
        return self._localizer(language_id).entry(entry)

    def submit_later_stage(
        self,
        public_identifier: str,
        field_values: Any,
        transition_id: Any = None,
        caller: Caller | None = None,
    ) -> SubmissionResult:
        with LogContext.bind(actor_id=caller.user_id if caller is not None else None):
            return self._submission(
                "submit_later_stage",
                lambda: self._orchestrator.entry_workflow.submit_later_stage(
                    public_identifier, field_values, transition_id, caller
                ),
            )

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    def _localizer(self, language_id: Any) -> Localizer:
        if language_id is None:
            language_id = self._orchestrator.default_language_id
        return Localizer(self._orchestrator.translation_provider, language_id)

    def _transaction(self, operation: str, fn: Callable[[], T]) -> T:
        t0 = time.monotonic()
        try:
            result = fn()
            if self._auto_commit:
                self._session.commit()
            else:
                self._session.flush()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            logger.error(
                "operation_failed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
                exc_info=True,
            )
            raise
        return result

    def _submission(self, operation: str, fn: Callable[[], SubmissionResult]) -> SubmissionResult:
        t0 = time.monotonic()
        try:
            result = fn()
            if self._auto_commit:
                if result.success:
                    self._session.commit()
                else:
                    self._session.rollback()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            logger.error(
                "operation_failed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
                exc_info=True,
            )
            raise
        return result
