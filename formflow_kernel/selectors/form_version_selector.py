"""
Read side for form versions.

Converts a FormVersion aggregate into FormVersionView DTOs and answers the
version lookups the workflow services need.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from formflow_kernel.domain.dtos import (
    AccessRuleView,
    FieldRuleView,
    FieldView,
    FormSummary,
    FormVersionSummary,
    FormVersionView,
    SectionView,
    StageView,
    TransitionActionView,
    TransitionView,
)
from formflow_kernel.domain.references import parse_uuid
from formflow_kernel.exceptions import FormNotFoundError, FormVersionNotFoundError
from formflow_kernel.models.form import Form, FormVersion, VersionStatus
from formflow_kernel.models.stage import Stage
from formflow_kernel.models.transition import StageTransition
from formflow_kernel.selectors.base import BaseSelector


def stage_to_view(stage: Stage) -> StageView:
    rule = stage.access_rule
    return StageView(
        id=stage.id,
        name=stage.name,
        is_initial=stage.is_initial,
        visibility_condition=stage.visibility_condition,
        access_rule=None
        if rule is None
        else AccessRuleView(
            allowed_users=tuple(str(u) for u in rule.allowed_users or ()),
            allowed_roles=tuple(str(r) for r in rule.allowed_roles or ()),
            allowed_permissions=tuple(str(p) for p in rule.allowed_permissions or ()),
            allow_authenticated_users=rule.allow_authenticated_users,
            email_field_id=rule.email_field_id,
        ),
        sections=tuple(
            SectionView(
                id=section.id,
                name=section.name,
                order=section.order,
                visibility_condition=section.visibility_condition,
                fields=tuple(
                    FieldView(
                        id=f.id,
                        field_type_id=f.field_type_id,
                        field_kind=f.field_type.kind,
                        label=f.label,
                        placeholder=f.placeholder,
                        helper_text=f.helper_text,
                        default_value=f.default_value,
                        visibility_condition=f.visibility_condition,
                        rules=tuple(
                            FieldRuleView(
                                id=r.id,
                                input_rule_id=r.input_rule_id,
                                input_rule_code=r.input_rule.code,
                                rule_props=r.rule_props,
                                rule_condition=r.rule_condition,
                            )
                            for r in f.rules
                        ),
                    )
                    for f in section.fields
                ),
            )
            for section in stage.sections
        ),
    )


def transition_to_view(transition: StageTransition) -> TransitionView:
    return TransitionView(
        id=transition.id,
        from_stage_id=transition.from_stage_id,
        to_stage_id=transition.to_stage_id,
        to_complete=transition.to_complete,
        label=transition.label,
        condition=transition.condition,
        actions=tuple(
            TransitionActionView(
                id=a.id,
                action_id=a.action_id,
                action_code=a.action.code,
                action_props=a.action_props,
            )
            for a in transition.actions
        ),
    )


def version_to_view(version: FormVersion) -> FormVersionView:
    return FormVersionView(
        id=version.id,
        form_id=version.form_id,
        version_number=version.version_number,
        status=version.status,
        published_at=version.published_at,
        revision=version.revision,
        stages=tuple(stage_to_view(s) for s in version.stages),
        transitions=tuple(transition_to_view(t) for t in version.transitions),
    )


def version_to_summary(version: FormVersion) -> FormVersionSummary:
    return FormVersionSummary(
        id=version.id,
        form_id=version.form_id,
        version_number=version.version_number,
        status=version.status,
        published_at=version.published_at,
    )


class FormVersionSelector(BaseSelector):
    """Read-only queries over forms and form versions."""

    def get_model(self, version_id: Any) -> FormVersion:
        version = None
        uid = parse_uuid(version_id)
        if uid is not None:
            version = self.session.get(FormVersion, uid)
        if version is None:
            raise FormVersionNotFoundError(version_id)
        return version

    def get_view(self, version_id: Any) -> FormVersionView:
        """
        Full graph of a version.

        Raises:
            FormVersionNotFoundError: If the version does not exist.
        """
        return version_to_view(self.get_model(version_id))

    def get_form(self, form_id: Any) -> Form:
        form = None
        uid = parse_uuid(form_id)
        if uid is not None:
            form = self.session.get(Form, uid)
        if form is None:
            raise FormNotFoundError(form_id)
        return form

    def list_versions(self, form_id: Any) -> list[FormVersionSummary]:
        """All versions of a form, newest first."""
        form = self.get_form(form_id)
        stmt = (
            select(FormVersion)
            .where(FormVersion.form_id == form.id)
            .order_by(FormVersion.version_number.desc())
        )
        return [version_to_summary(v) for v in self.session.scalars(stmt)]

    def latest_version(self, form_id: UUID) -> FormVersion | None:
        stmt = (
            select(FormVersion)
            .where(FormVersion.form_id == form_id)
            .order_by(FormVersion.version_number.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def max_version_number(self, form_id: UUID) -> int:
        stmt = select(func.max(FormVersion.version_number)).where(
            FormVersion.form_id == form_id
        )
        return self.session.scalar(stmt) or 0

    def latest_published_versions(self) -> list[tuple[Form, FormVersion]]:
        """
        For every non-archived form, its highest-numbered published version.

        Forms without a published version are omitted.
        """
        latest = (
            select(
                FormVersion.form_id.label("form_id"),
                func.max(FormVersion.version_number).label("version_number"),
            )
            .where(FormVersion.status == VersionStatus.PUBLISHED.value)
            .group_by(FormVersion.form_id)
            .subquery()
        )
        stmt = (
            select(Form, FormVersion)
            .join(FormVersion, FormVersion.form_id == Form.id)
            .join(
                latest,
                (latest.c.form_id == FormVersion.form_id)
                & (latest.c.version_number == FormVersion.version_number),
            )
            .where(Form.is_archived.is_(False))
            .order_by(Form.name)
        )
        return [(form, version) for form, version in self.session.execute(stmt)]


def form_summary(form: Form, version: FormVersion | None = None) -> FormSummary:
    return FormSummary(
        id=form.id,
        name=form.name,
        category=form.category,
        is_archived=form.is_archived,
        published_version_id=version.id if version is not None else None,
        published_version_number=version.version_number if version is not None else None,
    )
