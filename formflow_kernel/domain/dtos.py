"""
Data transfer objects returned by kernel services and selectors.

All DTOs are frozen dataclasses built from ORM rows at the layer boundary;
callers never receive ORM instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from formflow_kernel.exceptions import SubmissionValidationError


def _id(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Form structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRuleView:
    id: UUID
    input_rule_id: UUID
    input_rule_code: str
    rule_props: Any
    rule_condition: Any


@dataclass(frozen=True)
class FieldView:
    id: UUID
    field_type_id: UUID
    field_kind: str
    label: str
    placeholder: str | None
    helper_text: str | None
    default_value: str | None
    visibility_condition: Any
    rules: tuple[FieldRuleView, ...] = ()


@dataclass(frozen=True)
class SectionView:
    id: UUID
    name: str
    order: int
    visibility_condition: Any
    fields: tuple[FieldView, ...] = ()


@dataclass(frozen=True)
class AccessRuleView:
    allowed_users: tuple[str, ...]
    allowed_roles: tuple[str, ...]
    allowed_permissions: tuple[str, ...]
    allow_authenticated_users: bool
    email_field_id: UUID | None


@dataclass(frozen=True)
class StageView:
    id: UUID
    name: str
    is_initial: bool
    visibility_condition: Any
    sections: tuple[SectionView, ...] = ()
    access_rule: AccessRuleView | None = None

    @property
    def fields(self) -> tuple[FieldView, ...]:
        return tuple(f for section in self.sections for f in section.fields)


@dataclass(frozen=True)
class TransitionActionView:
    id: UUID
    action_id: UUID
    action_code: str
    action_props: Any


@dataclass(frozen=True)
class TransitionView:
    id: UUID
    from_stage_id: UUID | None
    to_stage_id: UUID | None
    to_complete: bool
    label: str
    condition: Any
    actions: tuple[TransitionActionView, ...] = ()


@dataclass(frozen=True)
class FormVersionView:
    """Full graph of one form version."""

    id: UUID
    form_id: UUID
    version_number: int
    status: str
    published_at: datetime | None
    revision: int
    stages: tuple[StageView, ...] = ()
    transitions: tuple[TransitionView, ...] = ()

    @property
    def initial_stage(self) -> StageView | None:
        return next((s for s in self.stages if s.is_initial), None)

    def stage(self, stage_id: UUID) -> StageView | None:
        return next((s for s in self.stages if s.id == stage_id), None)

    def to_payload(self) -> dict[str, Any]:
        """
        Render the graph in draft payload form, real ids as tokens.

        Resending this payload to the draft rewriter reproduces the graph
        with fresh ids, and every embedded reference re-mapped.
        """
        return {
            "stages": [
                {
                    "id": str(s.id),
                    "name": s.name,
                    "is_initial": s.is_initial,
                    "visibility_condition": s.visibility_condition,
                    "access_rule": None
                    if s.access_rule is None
                    else {
                        "allowed_users": list(s.access_rule.allowed_users),
                        "allowed_roles": list(s.access_rule.allowed_roles),
                        "allowed_permissions": list(s.access_rule.allowed_permissions),
                        "allow_authenticated_users": s.access_rule.allow_authenticated_users,
                        "email_field_id": _id(s.access_rule.email_field_id),
                    },
                    "sections": [
                        {
                            "id": str(sec.id),
                            "name": sec.name,
                            "order": sec.order,
                            "visibility_condition": sec.visibility_condition,
                            "fields": [
                                {
                                    "id": str(f.id),
                                    "field_type_id": str(f.field_type_id),
                                    "label": f.label,
                                    "helper_text": f.helper_text,
                                    "placeholder": f.placeholder,
                                    "default_value": f.default_value,
                                    "visibility_condition": f.visibility_condition,
                                    "rules": [
                                        {
                                            "id": str(r.id),
                                            "input_rule_id": str(r.input_rule_id),
                                            "rule_props": r.rule_props,
                                            "rule_condition": r.rule_condition,
                                        }
                                        for r in f.rules
                                    ],
                                }
                                for f in sec.fields
                            ],
                        }
                        for sec in s.sections
                    ],
                }
                for s in self.stages
            ],
            "stage_transitions": [
                {
                    "id": str(t.id),
                    "from_stage_id": _id(t.from_stage_id),
                    "to_stage_id": _id(t.to_stage_id),
                    "to_complete": t.to_complete,
                    "label": t.label,
                    "condition": t.condition,
                    "actions": [
                        {
                            "id": str(a.id),
                            "action_id": str(a.action_id),
                            "action_props": a.action_props,
                        }
                        for a in t.actions
                    ],
                }
                for t in self.transitions
            ],
        }


@dataclass(frozen=True)
class FormVersionSummary:
    id: UUID
    form_id: UUID
    version_number: int
    status: str
    published_at: datetime | None


@dataclass(frozen=True)
class FormSummary:
    """A form as listed to end users, with the version they should open."""

    id: UUID
    name: str
    category: str | None
    is_archived: bool
    published_version_id: UUID | None = None
    published_version_number: int | None = None


@dataclass(frozen=True)
class StageStructureView:
    """What an end user sees when opening a form: its initial stage."""

    form_id: UUID
    form_name: str
    form_version_id: UUID
    stage: StageView
    transitions: tuple[TransitionView, ...]


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntryStageView:
    stage: StageView
    values: dict[str, Any]
    is_editable: bool
    is_current: bool


@dataclass(frozen=True)
class EntryView:
    id: UUID
    public_identifier: str
    form_version_id: UUID
    current_stage_id: UUID | None
    is_complete: bool
    stages: tuple[EntryStageView, ...]
    available_transitions: tuple[TransitionView, ...]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def values(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for s in self.stages:
            merged.update(s.values)
        return merged


@dataclass(frozen=True)
class EntrySnapshot:
    """Entry state handed to the action executor after a transition."""

    id: UUID
    public_identifier: str
    form_version_id: UUID
    current_stage_id: UUID | None
    is_complete: bool
    values: dict[str, Any] = field(default_factory=dict)
    created_by_user_id: str | None = None


@dataclass(frozen=True)
class FieldRuleViolation:
    field_id: UUID | None
    rule_code: str
    message: str


@dataclass(frozen=True)
class ActionResult:
    action_id: UUID
    action_code: str
    success: bool
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of a stage submission.

    On rejection ``success`` is False, ``errors`` lists every violation and
    nothing was persisted.
    """

    success: bool
    errors: tuple[FieldRuleViolation, ...] = ()
    entry_id: UUID | None = None
    public_identifier: str | None = None
    current_stage_id: UUID | None = None
    is_complete: bool = False
    transition_id: UUID | None = None
    action_results: tuple[ActionResult, ...] = ()

    @classmethod
    def rejected(cls, errors: list[FieldRuleViolation]) -> "SubmissionResult":
        return cls(success=False, errors=tuple(errors))

    def raise_for_errors(self) -> "SubmissionResult":
        if not self.success:
            raise SubmissionValidationError(self.errors)
        return self
