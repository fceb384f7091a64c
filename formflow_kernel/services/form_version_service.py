"""
Module: formflow_kernel.services.form_version_service
Responsibility: Lifecycle of form versions: creating blank or copied
    drafts, rewriting a draft's whole graph from a client payload, and
    publishing.
Architecture position: Kernel > Services.  Flush-only; the caller owns the
    transaction.

Invariants enforced:
    - A version's graph is mutable only while it is a draft.
    - Draft rewrites are replace-all: the old stage and transition subgraphs
      are deleted and the payload's graph, built in memory by
      DraftGraphBuilder, is inserted in one savepoint.  Any failure rolls the
      savepoint back and leaves the previous graph exactly as it was.
    - Rewrites lock the version row (SELECT ... FOR UPDATE) and, when the
      caller presents ``expected_revision``, reject a stale token.  Each
      successful rewrite increments ``revision``.
    - version_number = max(existing) + 1 per form.

Failure modes:
    - FormNotFoundError / FormVersionNotFoundError for unknown ids.
    - NoSourceVersionError when copying from a form with no versions.
    - VersionNotDraftError when rewriting or publishing a non-draft.
    - DraftRevisionConflictError on a stale expected_revision.
    - DraftPayloadError for a malformed payload.
    - CatalogEntryNotFoundError for unknown field types, input rules or actions.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from formflow_kernel.domain.clock import Clock, SystemClock
from formflow_kernel.domain.draft_builder import DraftGraph, DraftGraphBuilder
from formflow_kernel.domain.draft_payload import parse_draft_payload
from formflow_kernel.domain.dtos import FormVersionView
from formflow_kernel.domain.references import parse_uuid
from formflow_kernel.exceptions import (
    DraftRevisionConflictError,
    FormVersionNotFoundError,
    MissingInitialStageError,
    NoSourceVersionError,
    VersionNotDraftError,
)
from formflow_kernel.logging_config import get_logger
from formflow_kernel.models.form import Form, FormVersion, VersionStatus
from formflow_kernel.models.stage import Field, FieldRule, Section, Stage, StageAccessRule
from formflow_kernel.models.transition import StageTransition, StageTransitionAction
from formflow_kernel.selectors.catalog_selector import CatalogSelector
from formflow_kernel.selectors.form_version_selector import FormVersionSelector, version_to_view
from formflow_kernel.services.base import BaseService

logger = get_logger("services.form_version")

BLANK_STAGE_NAME = "initial stage"
BLANK_SECTION_NAME = "Section 1"


class PublishDemotionScope(str, Enum):
    """Which sibling versions are set back to draft when a version is published."""

    # Every other version of the form.
    ALL_OTHERS = "all_others"
    # Only versions that are currently published.
    PREVIOUS_PUBLISHED = "previous_published"


class FormVersionService(BaseService):
    """Creates, rewrites and publishes form versions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        builder: DraftGraphBuilder | None = None,
        publish_demotion_scope: PublishDemotionScope | str = PublishDemotionScope.ALL_OTHERS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._builder = builder or DraftGraphBuilder()
        self._demotion_scope = PublishDemotionScope(publish_demotion_scope)
        self._versions = FormVersionSelector(session)
        self._catalog = CatalogSelector(session)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_version(self, form_id: Any, copy_from_current: bool) -> FormVersionView:
        """
        Create the next draft version of a form.

        Args:
            form_id: The form to version.
            copy_from_current: If True, copy the full graph of the latest
                version, re-mapping every internal id (including ids embedded
                in conditions and props).  If False, create a blank skeleton:
                one initial stage with one empty section.

        Returns:
            FormVersionView of the new draft.

        Raises:
            FormNotFoundError: If the form does not exist.
            NoSourceVersionError: If copying and the form has no version yet.
        """
        form = self._lock_form(form_id)
        source = self._versions.latest_version(form.id)
        if copy_from_current and source is None:
            raise NoSourceVersionError(form.id)

        version = FormVersion(
            id=uuid4(),
            form_id=form.id,
            version_number=self._versions.max_version_number(form.id) + 1,
            status=VersionStatus.DRAFT.value,
            revision=0,
        )
        self.session.add(version)
        self.session.flush()

        if copy_from_current:
            payload = parse_draft_payload(version_to_view(source).to_payload())
            self._persist_graph(version, self._builder.build(payload))
        else:
            stage = Stage(
                id=uuid4(),
                name=BLANK_STAGE_NAME,
                is_initial=True,
                position=0,
                visibility_condition=None,
            )
            stage.sections.append(
                Section(id=uuid4(), name=BLANK_SECTION_NAME, order=0, visibility_condition=None)
            )
            version.stages.append(stage)
        self.session.flush()

        logger.info(
            "form_version_created",
            extra={
                "form_id": str(form.id),
                "form_version_id": str(version.id),
                "version_number": version.version_number,
                "copied_from": str(source.id) if copy_from_current else None,
            },
        )
        return self._reload_view(version)

    # ------------------------------------------------------------------
    # Rewrite
    # ------------------------------------------------------------------

    def rewrite_draft(
        self,
        version_id: Any,
        payload: Any,
        expected_revision: int | None = None,
    ) -> FormVersionView:
        """
        Replace a draft's entire graph with the structure in ``payload``.

        Callers resend the complete structure on every edit, carrying the
        ids from the previous response for anything they want preserved by
        reference.

        Args:
            version_id: The draft to rewrite.
            payload: Draft structure (see formflow_kernel.domain.draft_payload).
            expected_revision: Optional optimistic token from the caller's
                last read of the draft.

        Returns:
            FormVersionView of the rewritten draft.
        """
        start = time.monotonic()
        version = self._lock_version(version_id)
        if not version.is_draft:
            raise VersionNotDraftError(version.id, version.status)
        if expected_revision is not None and expected_revision != version.revision:
            raise DraftRevisionConflictError(version.id, expected_revision, version.revision)

        logger.info(
            "draft_rewrite_started",
            extra={"form_version_id": str(version.id), "revision": version.revision},
        )

        parsed = parse_draft_payload(payload)
        self._catalog.require_all(
            field_type_ids=parsed.field_type_ids(),
            input_rule_ids=parsed.input_rule_ids(),
            action_ids=parsed.action_ids(),
        )
        graph = self._builder.build(parsed)

        with self.session.begin_nested():
            version.stages.clear()
            version.transitions.clear()
            self.session.flush()
            self._persist_graph(version, graph)
            version.revision += 1
            self.session.flush()

        logger.info(
            "draft_rewrite_completed",
            extra={
                "form_version_id": str(version.id),
                "revision": version.revision,
                "stage_count": len(graph.stages),
                "transition_count": len(graph.transitions),
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return self._reload_view(version)

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish_draft(self, version_id: Any) -> FormVersionView:
        """
        Publish a draft and demote its siblings to draft.

        Raises:
            VersionNotDraftError: If the version is not a draft.
            MissingInitialStageError: If the draft has no initial stage.
        """
        version = self._lock_version(version_id)
        if not version.is_draft:
            raise VersionNotDraftError(version.id, version.status)
        if version.initial_stage is None:
            raise MissingInitialStageError(version.id)

        stmt = select(FormVersion).where(
            FormVersion.form_id == version.form_id,
            FormVersion.id != version.id,
        )
        if self._demotion_scope is PublishDemotionScope.PREVIOUS_PUBLISHED:
            stmt = stmt.where(FormVersion.status == VersionStatus.PUBLISHED.value)
        demoted = []
        for sibling in self.session.scalars(stmt):
            if sibling.status != VersionStatus.DRAFT.value:
                demoted.append(str(sibling.id))
            sibling.status = VersionStatus.DRAFT.value

        version.status = VersionStatus.PUBLISHED.value
        version.published_at = self._clock.now()
        self.session.flush()

        logger.info(
            "form_version_published",
            extra={
                "form_version_id": str(version.id),
                "version_number": version.version_number,
                "demoted_version_ids": demoted,
                "demotion_scope": self._demotion_scope.value,
            },
        )
        return version_to_view(version)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_form(self, form_id: Any) -> Form:
        form = self._versions.get_form(form_id)
        # Serialises version numbering per form.
        self.session.execute(select(Form.id).where(Form.id == form.id).with_for_update())
        return form

    def _lock_version(self, version_id: Any) -> FormVersion:
        uid = parse_uuid(version_id)
        version = None
        if uid is not None:
            stmt = select(FormVersion).where(FormVersion.id == uid).with_for_update()
            version = self.session.scalars(stmt).first()
        if version is None:
            raise FormVersionNotFoundError(version_id)
        return version

    def _persist_graph(self, version: FormVersion, graph: DraftGraph) -> None:
        for built in graph.stages:
            stage = Stage(
                id=built.id,
                name=built.name,
                is_initial=built.is_initial,
                position=built.position,
                visibility_condition=built.visibility_condition,
            )
            for b_section in built.sections:
                section = Section(
                    id=b_section.id,
                    name=b_section.name,
                    order=b_section.order,
                    visibility_condition=b_section.visibility_condition,
                )
                for b_field in b_section.fields:
                    field = Field(
                        id=b_field.id,
                        field_type_id=b_field.field_type_id,
                        label=b_field.label,
                        helper_text=b_field.helper_text,
                        placeholder=b_field.placeholder,
                        default_value=b_field.default_value,
                        position=b_field.position,
                        visibility_condition=b_field.visibility_condition,
                    )
                    field.rules = [
                        FieldRule(
                            id=r.id,
                            input_rule_id=r.input_rule_id,
                            position=r.position,
                            rule_props=r.rule_props,
                            rule_condition=r.rule_condition,
                        )
                        for r in b_field.rules
                    ]
                    section.fields.append(field)
                stage.sections.append(section)
            if built.access_rule is not None:
                rule = built.access_rule
                stage.access_rule = StageAccessRule(
                    id=uuid4(),
                    allowed_users=rule.allowed_users,
                    allowed_roles=rule.allowed_roles,
                    allowed_permissions=rule.allowed_permissions,
                    allow_authenticated_users=rule.allow_authenticated_users,
                    email_field_id=rule.email_field_id,
                )
            version.stages.append(stage)

        # Stages must exist before transitions point at them.
        self.session.flush()

        for built in graph.transitions:
            transition = StageTransition(
                id=built.id,
                from_stage_id=built.from_stage_id,
                to_stage_id=built.to_stage_id,
                to_complete=built.to_complete,
                label=built.label,
                position=built.position,
                condition=built.condition,
            )
            transition.actions = [
                StageTransitionAction(
                    id=a.id,
                    action_id=a.action_id,
                    position=a.position,
                    action_props=a.action_props,
                )
                for a in built.actions
            ]
            version.transitions.append(transition)

    def _reload_view(self, version: FormVersion) -> FormVersionView:
        self.session.flush()
        self.session.expire(version, ["stages", "transitions"])
        return version_to_view(version)
