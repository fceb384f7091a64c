"""
Draft payload parsing.

Turns the client's draft structure (plain dicts, as decoded from the wire)
into frozen payload objects, collecting every structural problem before
failing.  Tokens (``id`` keys) are kept verbatim: they may be placeholders
or ids carried over from an earlier save, and are only interpreted by the
draft graph builder.

Wire shape::

    {
      "stages": [{
        "id", "name", "is_initial", "visibility_condition",
        "access_rule": {"allowed_users", "allowed_roles", "allowed_permissions",
                        "allow_authenticated_users", "email_field_id"},
        "sections": [{
          "id", "name", "order", "visibility_conditions",
          "fields": [{
            "id", "field_type_id", "label", "helper_text", "placeholder",
            "default_value", "visibility_conditions",
            "rules": [{"input_rule_id", "rule_props", "rule_condition"}]
          }]
        }]
      }],
      "stage_transitions": [{
        "id", "from_stage_id", "to_stage_id", "to_complete", "label", "condition",
        "actions": [{"action_id", "action_props"}]
      }]
    }

``visibility_condition`` and ``visibility_conditions`` are accepted
interchangeably on stages, sections and fields.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from formflow_kernel.exceptions import DraftPayloadError


@dataclass(frozen=True)
class RulePayload:
    token: Any
    input_rule_id: UUID
    rule_props: Any
    rule_condition: Any


@dataclass(frozen=True)
class FieldPayload:
    token: Any
    field_type_id: UUID
    label: str
    helper_text: str | None
    placeholder: str | None
    default_value: str | None
    visibility_condition: Any
    rules: tuple[RulePayload, ...]


@dataclass(frozen=True)
class SectionPayload:
    token: Any
    name: str
    order: int
    visibility_condition: Any
    fields: tuple[FieldPayload, ...]


@dataclass(frozen=True)
class AccessRulePayload:
    allowed_users: tuple[str, ...]
    allowed_roles: tuple[str, ...]
    allowed_permissions: tuple[str, ...]
    allow_authenticated_users: bool
    email_field_id: Any


@dataclass(frozen=True)
class StagePayload:
    token: Any
    name: str
    is_initial: bool
    visibility_condition: Any
    access_rule: AccessRulePayload | None
    sections: tuple[SectionPayload, ...]


@dataclass(frozen=True)
class ActionPayload:
    action_id: UUID
    action_props: Any


@dataclass(frozen=True)
class TransitionPayload:
    token: Any
    from_stage_id: Any
    to_stage_id: Any
    to_complete: bool
    label: str
    condition: Any
    actions: tuple[ActionPayload, ...]


@dataclass(frozen=True)
class DraftPayload:
    """A complete, structurally valid draft structure."""

    stages: tuple[StagePayload, ...]
    transitions: tuple[TransitionPayload, ...]

    def field_type_ids(self) -> set[UUID]:
        return {f.field_type_id for s in self.stages for sec in s.sections for f in sec.fields}

    def input_rule_ids(self) -> set[UUID]:
        return {
            r.input_rule_id
            for s in self.stages
            for sec in s.sections
            for f in sec.fields
            for r in f.rules
        }

    def action_ids(self) -> set[UUID]:
        return {a.action_id for t in self.transitions for a in t.actions}


class _Parser:
    def __init__(self) -> None:
        self.errors: list[str] = []

    def error(self, path: str, message: str) -> None:
        self.errors.append(f"{path}: {message}")

    def items(self, data: Mapping[str, Any], key: str, path: str, *, required: bool) -> list[Any]:
        raw = data.get(key)
        if raw is None:
            if required:
                self.error(f"{path}.{key}", "is required")
            return []
        if not isinstance(raw, (list, tuple)):
            self.error(f"{path}.{key}", "must be a list")
            return []
        out = []
        for index, item in enumerate(raw):
            if isinstance(item, Mapping):
                out.append(item)
            else:
                self.error(f"{path}.{key}[{index}]", "must be an object")
        return out

    def text(self, data: Mapping[str, Any], key: str, path: str, *, required: bool) -> str | None:
        value = data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.error(f"{path}.{key}", "is required")
            return None
        if not isinstance(value, str):
            self.error(f"{path}.{key}", "must be text")
            return None
        if len(value) > 255 and key in ("name", "label", "placeholder"):
            self.error(f"{path}.{key}", "must be at most 255 characters")
        return value

    def catalog_id(self, data: Mapping[str, Any], key: str, path: str) -> UUID | None:
        value = data.get(key)
        if value is None:
            self.error(f"{path}.{key}", "is required")
            return None
        try:
            return value if isinstance(value, UUID) else UUID(str(value))
        except ValueError:
            self.error(f"{path}.{key}", f"is not a valid id: {value!r}")
            return None

    def flag(self, data: Mapping[str, Any], key: str, path: str) -> bool:
        value = data.get(key, False)
        if value is None:
            return False
        if not isinstance(value, bool):
            self.error(f"{path}.{key}", "must be a boolean")
            return False
        return value

    def id_list(self, data: Mapping[str, Any], key: str, path: str) -> tuple[str, ...]:
        value = data.get(key)
        if isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else None
            except ValueError:
                self.error(f"{path}.{key}", "is not valid JSON")
                return ()
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            self.error(f"{path}.{key}", "must be a list of ids")
            return ()
        return tuple(str(v) for v in value if v is not None)


def _visibility(data: Mapping[str, Any]) -> Any:
    if data.get("visibility_condition") is not None:
        return data["visibility_condition"]
    return data.get("visibility_conditions")


def parse_draft_payload(data: Any) -> DraftPayload:
    """
    Parse a draft structure.

    Raises:
        DraftPayloadError: listing every structural problem found, including
            a stage count with anything other than exactly one initial stage.
    """
    if not isinstance(data, Mapping):
        raise DraftPayloadError(["payload must be an object"])

    p = _Parser()
    stages: list[StagePayload] = []
    for s_index, s_data in enumerate(p.items(data, "stages", "payload", required=True)):
        s_path = f"stages[{s_index}]"
        sections: list[SectionPayload] = []
        for sec_index, sec_data in enumerate(p.items(s_data, "sections", s_path, required=False)):
            sec_path = f"{s_path}.sections[{sec_index}]"
            fields: list[FieldPayload] = []
            for f_index, f_data in enumerate(p.items(sec_data, "fields", sec_path, required=False)):
                f_path = f"{sec_path}.fields[{f_index}]"
                rules = tuple(
                    RulePayload(
                        token=r_data.get("id"),
                        input_rule_id=p.catalog_id(r_data, "input_rule_id", f"{f_path}.rules[{r_index}]"),
                        rule_props=r_data.get("rule_props"),
                        rule_condition=r_data.get("rule_condition"),
                    )
                    for r_index, r_data in enumerate(p.items(f_data, "rules", f_path, required=False))
                )
                default_value = f_data.get("default_value")
                fields.append(
                    FieldPayload(
                        token=f_data.get("id"),
                        field_type_id=p.catalog_id(f_data, "field_type_id", f_path),
                        label=p.text(f_data, "label", f_path, required=True) or "",
                        helper_text=p.text(f_data, "helper_text", f_path, required=False),
                        placeholder=p.text(f_data, "placeholder", f_path, required=False),
                        default_value=str(default_value) if default_value is not None else None,
                        visibility_condition=_visibility(f_data),
                        rules=rules,
                    )
                )
            order = sec_data.get("order", sec_index)
            if isinstance(order, bool) or not isinstance(order, int):
                p.error(f"{sec_path}.order", "must be an integer")
                order = sec_index
            sections.append(
                SectionPayload(
                    token=sec_data.get("id"),
                    name=p.text(sec_data, "name", sec_path, required=False) or f"Section {sec_index + 1}",
                    order=order,
                    visibility_condition=_visibility(sec_data),
                    fields=tuple(fields),
                )
            )

        access_rule = None
        rule_data = s_data.get("access_rule")
        if rule_data is not None:
            r_path = f"{s_path}.access_rule"
            if not isinstance(rule_data, Mapping):
                p.error(r_path, "must be an object")
            else:
                access_rule = AccessRulePayload(
                    allowed_users=p.id_list(rule_data, "allowed_users", r_path),
                    allowed_roles=p.id_list(rule_data, "allowed_roles", r_path),
                    allowed_permissions=p.id_list(rule_data, "allowed_permissions", r_path),
                    allow_authenticated_users=p.flag(rule_data, "allow_authenticated_users", r_path),
                    email_field_id=rule_data.get("email_field_id"),
                )

        stages.append(
            StagePayload(
                token=s_data.get("id"),
                name=p.text(s_data, "name", s_path, required=True) or "",
                is_initial=p.flag(s_data, "is_initial", s_path),
                visibility_condition=_visibility(s_data),
                access_rule=access_rule,
                sections=tuple(sections),
            )
        )

    initial_count = sum(1 for s in stages if s.is_initial)
    if initial_count != 1:
        p.error("stages", f"exactly one stage must be initial, found {initial_count}")

    transitions: list[TransitionPayload] = []
    for t_index, t_data in enumerate(p.items(data, "stage_transitions", "payload", required=False)):
        t_path = f"stage_transitions[{t_index}]"
        actions = tuple(
            ActionPayload(
                action_id=p.catalog_id(a_data, "action_id", f"{t_path}.actions[{a_index}]"),
                action_props=a_data.get("action_props"),
            )
            for a_index, a_data in enumerate(p.items(t_data, "actions", t_path, required=False))
        )
        transitions.append(
            TransitionPayload(
                token=t_data.get("id"),
                from_stage_id=t_data.get("from_stage_id"),
                to_stage_id=t_data.get("to_stage_id"),
                to_complete=p.flag(t_data, "to_complete", t_path),
                label=p.text(t_data, "label", t_path, required=True) or "",
                condition=t_data.get("condition"),
                actions=actions,
            )
        )

    if p.errors:
        raise DraftPayloadError(p.errors)
    return DraftPayload(stages=tuple(stages), transitions=tuple(transitions))
