"""
Reference resolution for condition and props blobs.

Responsibility:
    Rewrites identifiers embedded anywhere inside nested condition / props
    data, given four identifier maps (stage, section, field, transition).
    Each map takes a caller-supplied token (a client placeholder or an id
    carried over from a previous save) to the newly assigned real id.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Resolution rules:
    - Keys are classified once into a ReferenceRole by KeyRoleRegistry; a
      role-keyed scalar is looked up in that role's map only, a role-keyed
      list element-wise, a role-keyed mapping is walked.
    - Text holding a JSON object or array is decoded, walked and re-encoded,
      so the caller gets text back where it stored text.
    - Scalars with no role key are tried against the field, stage, section
      and transition maps in that order; first hit wins, a miss is left.
    - Under a role key: mapped -> new id; unmapped placeholder -> None (or
      left, when ``null_unresolved=False``); unmapped real id -> left.

A token is a placeholder when it is not a well-formed UUID: real ids in this
system are always UUIDs, client placeholders ("FAKE_3", "temp_ab12", "4")
never are.

Invariants:
    - Input is never mutated; a new structure of the same shape is returned.
    - New ids are emitted as their canonical text form.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID


class ReferenceRole(str, Enum):
    """Kind of entity an embedded identifier points to."""

    STAGE = "stage"
    SECTION = "section"
    FIELD = "field"
    TRANSITION = "transition"


# Lookup order for scalars that carry no role key.
UNKEYED_RESOLUTION_ORDER: tuple[ReferenceRole, ...] = (
    ReferenceRole.FIELD,
    ReferenceRole.STAGE,
    ReferenceRole.SECTION,
    ReferenceRole.TRANSITION,
)


class KeyRoleRegistry:
    """
    Maps a key name to the ReferenceRole it carries, if any.

    Exact names are checked first, then substring markers in registration
    order.  Results are cached per key name.
    """

    def __init__(
        self,
        markers: list[tuple[str, ReferenceRole]],
        exact_names: Mapping[str, ReferenceRole] | None = None,
    ):
        self._markers = list(markers)
        self._exact = dict(exact_names or {})
        self._cache: dict[str, ReferenceRole | None] = {}

    def role_for(self, key: Any) -> ReferenceRole | None:
        if not isinstance(key, str):
            return None
        try:
            return self._cache[key]
        except KeyError:
            pass
        role = self._exact.get(key)
        if role is None:
            for marker, marker_role in self._markers:
                if marker in key:
                    role = marker_role
                    break
        self._cache[key] = role
        return role


DEFAULT_KEY_ROLES = KeyRoleRegistry(
    markers=[
        ("stage_id", ReferenceRole.STAGE),
        ("section_id", ReferenceRole.SECTION),
        ("transition_id", ReferenceRole.TRANSITION),
        ("field_id", ReferenceRole.FIELD),
    ],
    exact_names={
        "compare_field": ReferenceRole.FIELD,
        "field": ReferenceRole.FIELD,
        "target_field_id": ReferenceRole.FIELD,
    },
)


def token_key(value: Any) -> str | None:
    """Normalise a candidate identifier to its map key, or None if it cannot be one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, UUID)):
        return str(value)
    return None


def is_placeholder(token: Any) -> bool:
    """True when the token is not a well-formed UUID."""
    key = token_key(token)
    if key is None:
        return False
    try:
        UUID(key)
    except ValueError:
        return True
    return False


def parse_uuid(value: Any) -> UUID | None:
    """Return ``value`` as a UUID, or None when it is not one."""
    if isinstance(value, UUID):
        return value
    key = token_key(value)
    if key is None:
        return None
    try:
        return UUID(key)
    except ValueError:
        return None


def _decode_structured(text: str) -> dict | list | None:
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        decoded = json.loads(stripped)
    except ValueError:
        return None
    if isinstance(decoded, (dict, list)):
        return decoded
    return None


@dataclass
class IdMaps:
    """The four token -> new id maps built up by the draft rewriter."""

    stages: dict[str, UUID] = field(default_factory=dict)
    sections: dict[str, UUID] = field(default_factory=dict)
    fields: dict[str, UUID] = field(default_factory=dict)
    transitions: dict[str, UUID] = field(default_factory=dict)

    def for_role(self, role: ReferenceRole) -> dict[str, UUID]:
        if role is ReferenceRole.STAGE:
            return self.stages
        if role is ReferenceRole.SECTION:
            return self.sections
        if role is ReferenceRole.FIELD:
            return self.fields
        return self.transitions

    def record(self, role: ReferenceRole, token: Any, new_id: UUID) -> None:
        key = token_key(token)
        if key is not None:
            self.for_role(role)[key] = new_id

    def lookup(self, role: ReferenceRole, token: Any) -> UUID | None:
        key = token_key(token)
        if key is None:
            return None
        return self.for_role(role).get(key)


class ReferenceResolver:
    """Rewrites embedded identifiers through a set of IdMaps."""

    def __init__(self, id_maps: IdMaps, key_roles: KeyRoleRegistry = DEFAULT_KEY_ROLES):
        self._maps = id_maps
        self._key_roles = key_roles

    def resolve(self, value: Any, *, null_unresolved: bool = True) -> Any:
        """Return a copy of ``value`` with every resolvable identifier replaced."""
        return self._walk(value, None, null_unresolved)

    def resolve_id(self, role: ReferenceRole, token: Any) -> UUID | None:
        """
        Resolve a single id column value (e.g. an access rule's email field).

        Mapped -> new id; placeholder or unusable -> None; unmapped real
        id -> kept.
        """
        hit = self._maps.lookup(role, token)
        if hit is not None:
            return hit
        if token_key(token) is None or is_placeholder(token):
            return None
        return UUID(str(token))

    def _walk(self, value: Any, role: ReferenceRole | None, null_unresolved: bool) -> Any:
        if isinstance(value, Mapping):
            # The role of a mapping's children comes from their own keys.
            return {
                key: self._walk(item, self._key_roles.role_for(key), null_unresolved)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self._walk(item, role, null_unresolved) for item in value)
        if isinstance(value, str):
            decoded = _decode_structured(value)
            if decoded is not None:
                return json.dumps(self._walk(decoded, role, null_unresolved))
        if role is not None:
            return self._resolve_keyed(role, value, null_unresolved)
        return self._resolve_unkeyed(value)

    def _resolve_keyed(self, role: ReferenceRole, value: Any, null_unresolved: bool) -> Any:
        hit = self._maps.lookup(role, value)
        if hit is not None:
            return str(hit)
        if null_unresolved and is_placeholder(value):
            return None
        return value

    def _resolve_unkeyed(self, value: Any) -> Any:
        key = token_key(value)
        if key is None:
            return value
        for role in UNKEYED_RESOLUTION_ORDER:
            hit = self._maps.for_role(role).get(key)
            if hit is not None:
                return str(hit)
        return value
