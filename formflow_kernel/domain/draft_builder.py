"""
Draft graph builder -- the six-pass replace-all of a form version's graph.

Responsibility:
    Builds the complete replacement graph for a draft in memory, assigning
    real ids up front and resolving every cross-reference, so the service
    layer can persist it as one batch.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Passes (each layer's real ids are needed to resolve the next layer's
embedded references, and conditions may point at entities declared later
in payload order):
    1. stages, visibility deferred; stage map recorded
    2. sections then fields per stage, visibility deferred; section and
       field maps recorded
    3. field rules, props and condition deferred
    4. access rules; email_field_id resolved through the field map
    5. deferred stage / section / field visibility and rule condition /
       props resolved through the maps built so far
    6. transitions: endpoints resolved through the stage map and the
       transition map recorded for every transition, then conditions and
       action props resolved against the complete maps

Transition endpoints that do not map are nulled whatever their form: every
stage of the version is recreated by the rewrite, so an id outside the map
cannot name a stage of this version.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from formflow_kernel.domain.draft_payload import DraftPayload
from formflow_kernel.domain.references import (
    DEFAULT_KEY_ROLES,
    IdMaps,
    KeyRoleRegistry,
    ReferenceResolver,
    ReferenceRole,
)


@dataclass
class BuiltRule:
    id: UUID
    input_rule_id: UUID
    position: int
    rule_props: Any = None
    rule_condition: Any = None


@dataclass
class BuiltField:
    id: UUID
    field_type_id: UUID
    label: str
    helper_text: str | None
    placeholder: str | None
    default_value: str | None
    position: int
    visibility_condition: Any = None
    rules: list[BuiltRule] = field(default_factory=list)


@dataclass
class BuiltSection:
    id: UUID
    name: str
    order: int
    visibility_condition: Any = None
    fields: list[BuiltField] = field(default_factory=list)


@dataclass
class BuiltAccessRule:
    allowed_users: list[str]
    allowed_roles: list[str]
    allowed_permissions: list[str]
    allow_authenticated_users: bool
    email_field_id: UUID | None


@dataclass
class BuiltStage:
    id: UUID
    name: str
    is_initial: bool
    position: int
    visibility_condition: Any = None
    sections: list[BuiltSection] = field(default_factory=list)
    access_rule: BuiltAccessRule | None = None


@dataclass
class BuiltAction:
    id: UUID
    action_id: UUID
    position: int
    action_props: Any = None


@dataclass
class BuiltTransition:
    id: UUID
    from_stage_id: UUID | None
    to_stage_id: UUID | None
    to_complete: bool
    label: str
    position: int
    condition: Any = None
    actions: list[BuiltAction] = field(default_factory=list)


@dataclass
class DraftGraph:
    """A fully resolved replacement graph, ready to persist."""

    stages: list[BuiltStage]
    transitions: list[BuiltTransition]
    id_maps: IdMaps


class DraftGraphBuilder:
    """Runs the six passes over a parsed DraftPayload."""

    def __init__(
        self,
        id_factory: Callable[[], UUID] = uuid4,
        key_roles: KeyRoleRegistry = DEFAULT_KEY_ROLES,
    ):
        self._new_id = id_factory
        self._key_roles = key_roles

    def build(self, payload: DraftPayload) -> DraftGraph:
        maps = IdMaps()
        resolver = ReferenceResolver(maps, self._key_roles)

        stages = self._create_stages(payload, maps)
        self._create_sections_and_fields(payload, stages, maps)
        self._create_field_rules(payload, stages)
        self._create_access_rules(payload, stages, resolver)
        self._resolve_deferred(payload, stages, resolver)
        transitions = self._create_transitions(payload, maps, resolver)

        return DraftGraph(stages=stages, transitions=transitions, id_maps=maps)

    # Pass 1
    def _create_stages(self, payload: DraftPayload, maps: IdMaps) -> list[BuiltStage]:
        stages = []
        for position, s in enumerate(payload.stages):
            stage = BuiltStage(
                id=self._new_id(),
                name=s.name,
                is_initial=s.is_initial,
                position=position,
            )
            maps.record(ReferenceRole.STAGE, s.token, stage.id)
            stages.append(stage)
        return stages

    # Pass 2
    def _create_sections_and_fields(
        self, payload: DraftPayload, stages: list[BuiltStage], maps: IdMaps
    ) -> None:
        for s, stage in zip(payload.stages, stages):
            for sec in s.sections:
                section = BuiltSection(id=self._new_id(), name=sec.name, order=sec.order)
                maps.record(ReferenceRole.SECTION, sec.token, section.id)
                for position, f in enumerate(sec.fields):
                    built = BuiltField(
                        id=self._new_id(),
                        field_type_id=f.field_type_id,
                        label=f.label,
                        helper_text=f.helper_text,
                        placeholder=f.placeholder,
                        default_value=f.default_value,
                        position=position,
                    )
                    maps.record(ReferenceRole.FIELD, f.token, built.id)
                    section.fields.append(built)
                stage.sections.append(section)

    # Pass 3
    def _create_field_rules(self, payload: DraftPayload, stages: list[BuiltStage]) -> None:
        for s, stage in zip(payload.stages, stages):
            for sec, section in zip(s.sections, stage.sections):
                for f, built in zip(sec.fields, section.fields):
                    built.rules = [
                        BuiltRule(id=self._new_id(), input_rule_id=r.input_rule_id, position=i)
                        for i, r in enumerate(f.rules)
                    ]

    # Pass 4
    def _create_access_rules(
        self, payload: DraftPayload, stages: list[BuiltStage], resolver: ReferenceResolver
    ) -> None:
        for s, stage in zip(payload.stages, stages):
            rule = s.access_rule
            if rule is None:
                continue
            stage.access_rule = BuiltAccessRule(
                allowed_users=list(rule.allowed_users),
                allowed_roles=list(rule.allowed_roles),
                allowed_permissions=list(rule.allowed_permissions),
                allow_authenticated_users=rule.allow_authenticated_users,
                email_field_id=resolver.resolve_id(ReferenceRole.FIELD, rule.email_field_id),
            )

    # Pass 5
    def _resolve_deferred(
        self, payload: DraftPayload, stages: list[BuiltStage], resolver: ReferenceResolver
    ) -> None:
        for s, stage in zip(payload.stages, stages):
            stage.visibility_condition = resolver.resolve(s.visibility_condition)
            for sec, section in zip(s.sections, stage.sections):
                section.visibility_condition = resolver.resolve(sec.visibility_condition)
                for f, built in zip(sec.fields, section.fields):
                    built.visibility_condition = resolver.resolve(f.visibility_condition)
                    for r, rule in zip(f.rules, built.rules):
                        rule.rule_condition = resolver.resolve(r.rule_condition)
                        rule.rule_props = resolver.resolve(r.rule_props)

    # Pass 6
    def _create_transitions(
        self, payload: DraftPayload, maps: IdMaps, resolver: ReferenceResolver
    ) -> list[BuiltTransition]:
        transitions = []
        for position, t in enumerate(payload.transitions):
            transition = BuiltTransition(
                id=self._new_id(),
                from_stage_id=maps.lookup(ReferenceRole.STAGE, t.from_stage_id),
                to_stage_id=maps.lookup(ReferenceRole.STAGE, t.to_stage_id),
                to_complete=t.to_complete,
                label=t.label,
                position=position,
            )
            maps.record(ReferenceRole.TRANSITION, t.token, transition.id)
            transitions.append(transition)

        for t, transition in zip(payload.transitions, transitions):
            transition.condition = resolver.resolve(t.condition)
            transition.actions = [
                BuiltAction(
                    id=self._new_id(),
                    action_id=a.action_id,
                    position=i,
                    action_props=resolver.resolve(a.action_props),
                )
                for i, a in enumerate(t.actions)
            ]
        return transitions
