"""
Reference resolution inside condition and props blobs.

The resolver is pure: tests build IdMaps by hand and check that placeholder
tokens are replaced, nulled or left according to the key they sit under.
"""

import copy
import json
import string
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from formflow_kernel.domain.references import (
    DEFAULT_KEY_ROLES,
    IdMaps,
    KeyRoleRegistry,
    ReferenceResolver,
    ReferenceRole,
    is_placeholder,
    parse_uuid,
    token_key,
)


def _maps(**by_role) -> IdMaps:
    maps = IdMaps()
    for role_name, pairs in by_role.items():
        role = ReferenceRole(role_name)
        for token, new_id in pairs.items():
            maps.record(role, token, new_id)
    return maps


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TestTokens:

    def test_placeholders_are_anything_but_uuids(self):
        assert is_placeholder("FAKE_3") is True
        assert is_placeholder("temp_ab12") is True
        assert is_placeholder("4") is True
        assert is_placeholder(4) is True
        assert is_placeholder(str(uuid4())) is False
        assert is_placeholder(uuid4()) is False

    def test_booleans_and_none_are_never_tokens(self):
        assert token_key(True) is None
        assert token_key(None) is None
        assert token_key(1.5) is None
        assert is_placeholder(False) is False

    def test_integer_and_text_tokens_share_a_key(self):
        assert token_key(7) == token_key("7") == "7"

    def test_parse_uuid(self):
        uid = uuid4()
        assert parse_uuid(uid) is uid
        assert parse_uuid(str(uid)) == uid
        assert parse_uuid("FAKE_1") is None
        assert parse_uuid(None) is None


class TestKeyRoleRegistry:

    def test_substring_markers(self):
        assert DEFAULT_KEY_ROLES.role_for("from_stage_id") is ReferenceRole.STAGE
        assert DEFAULT_KEY_ROLES.role_for("target_section_id") is ReferenceRole.SECTION
        assert DEFAULT_KEY_ROLES.role_for("next_transition_id") is ReferenceRole.TRANSITION
        assert DEFAULT_KEY_ROLES.role_for("email_field_id") is ReferenceRole.FIELD
        assert DEFAULT_KEY_ROLES.role_for("allowed_field_ids") is ReferenceRole.FIELD

    def test_legacy_exact_names(self):
        assert DEFAULT_KEY_ROLES.role_for("field") is ReferenceRole.FIELD
        assert DEFAULT_KEY_ROLES.role_for("compare_field") is ReferenceRole.FIELD
        assert DEFAULT_KEY_ROLES.role_for("target_field_id") is ReferenceRole.FIELD

    def test_literal_keys_carry_no_role(self):
        assert DEFAULT_KEY_ROLES.role_for("comparevalue") is None
        assert DEFAULT_KEY_ROLES.role_for("operator") is None
        assert DEFAULT_KEY_ROLES.role_for("fields") is None
        assert DEFAULT_KEY_ROLES.role_for(3) is None

    def test_custom_registry_checks_markers_in_order(self):
        registry = KeyRoleRegistry(
            markers=[("stage", ReferenceRole.STAGE), ("stage_field", ReferenceRole.FIELD)]
        )
        assert registry.role_for("stage_field") is ReferenceRole.STAGE
        assert registry.role_for("field") is None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestKeyedResolution:

    def test_mapped_placeholder_is_replaced(self):
        new_field = uuid4()
        resolver = ReferenceResolver(_maps(field={"FAKE_1": new_field}))
        result = resolver.resolve({"field": "FAKE_1", "operator": "is_not_empty"})
        assert result == {"field": str(new_field), "operator": "is_not_empty"}

    def test_key_role_limits_the_lookup(self):
        new_stage = uuid4()
        resolver = ReferenceResolver(_maps(stage={"FAKE_1": new_stage}))
        # "FAKE_1" is only a stage token; under a field key it is unmapped.
        assert resolver.resolve({"field": "FAKE_1"}) == {"field": None}
        assert resolver.resolve({"to_stage_id": "FAKE_1"}) == {"to_stage_id": str(new_stage)}

    def test_unmapped_placeholder_is_nulled(self):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve({"stage_id": "FAKE_9"}) == {"stage_id": None}

    def test_unmapped_placeholder_kept_when_not_nulling(self):
        resolver = ReferenceResolver(IdMaps())
        result = resolver.resolve({"stage_id": "FAKE_9"}, null_unresolved=False)
        assert result == {"stage_id": "FAKE_9"}

    def test_unmapped_real_id_is_left(self):
        existing = str(uuid4())
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve({"field_id": existing}) == {"field_id": existing}

    def test_real_id_carried_from_previous_save_is_remapped(self):
        old_id, new_id = uuid4(), uuid4()
        resolver = ReferenceResolver(_maps(field={str(old_id): new_id}))
        assert resolver.resolve({"field": str(old_id)}) == {"field": str(new_id)}

    def test_integer_token(self):
        new_field = uuid4()
        resolver = ReferenceResolver(_maps(field={4: new_field}))
        assert resolver.resolve({"field": 4}) == {"field": str(new_field)}
        assert resolver.resolve({"field": "4"}) == {"field": str(new_field)}

    def test_role_keyed_list_resolves_each_element(self):
        a = uuid4()
        resolver = ReferenceResolver(_maps(field={"FAKE_a": a}))
        result = resolver.resolve({"allowed_field_ids": ["FAKE_a", "FAKE_b"]})
        assert result == {"allowed_field_ids": [str(a), None]}

    def test_role_keyed_mapping_is_walked_by_its_own_keys(self):
        stage = uuid4()
        resolver = ReferenceResolver(_maps(stage={"FAKE_s": stage}))
        result = resolver.resolve({"stage_id": {"label": "done", "next_stage_id": "FAKE_s"}})
        assert result == {"stage_id": {"label": "done", "next_stage_id": str(stage)}}

    def test_booleans_under_role_keys_are_untouched(self):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve({"field": True}) == {"field": True}


class TestUnkeyedResolution:

    def test_field_map_wins_over_stage_map(self):
        field_id, stage_id = uuid4(), uuid4()
        resolver = ReferenceResolver(
            _maps(field={"1": field_id}, stage={"1": stage_id})
        )
        assert resolver.resolve({"target": "1"}) == {"target": str(field_id)}

    def test_falls_through_to_transition_map(self):
        transition = uuid4()
        resolver = ReferenceResolver(_maps(transition={"FAKE_t": transition}))
        assert resolver.resolve(["FAKE_t", "other"]) == [str(transition), "other"]

    def test_unmapped_literal_is_left(self):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve({"note": "FAKE_x"}) == {"note": "FAKE_x"}

    def test_comparevalue_is_a_literal(self):
        resolver = ReferenceResolver(IdMaps())
        node = {"field": None, "operator": "equals", "comparevalue": "approve"}
        assert resolver.resolve(node) == node
        assert resolver.resolve({"comparevalue": "FAKE_7"}) == {"comparevalue": "FAKE_7"}


class TestJsonText:

    def test_json_object_text_comes_back_as_text(self):
        new_field = uuid4()
        resolver = ReferenceResolver(_maps(field={"FAKE_1": new_field}))
        stored = json.dumps({"field": "FAKE_1", "operator": "is_not_empty"})

        result = resolver.resolve(stored)

        assert isinstance(result, str)
        assert json.loads(result) == {"field": str(new_field), "operator": "is_not_empty"}

    def test_json_array_text_under_role_key(self):
        a = uuid4()
        resolver = ReferenceResolver(_maps(field={"FAKE_a": a}))
        result = resolver.resolve({"field_ids": '["FAKE_a"]'})
        assert json.loads(result["field_ids"]) == [str(a)]

    def test_non_json_text_is_a_scalar(self):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve("{not json") == "{not json"
        assert resolver.resolve('"quoted"') == '"quoted"'


class TestResolveId:

    def test_mapped(self):
        new_id = uuid4()
        resolver = ReferenceResolver(_maps(field={"FAKE_1": new_id}))
        assert resolver.resolve_id(ReferenceRole.FIELD, "FAKE_1") == new_id

    def test_unmapped_placeholder_is_none(self):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve_id(ReferenceRole.FIELD, "FAKE_1") is None
        assert resolver.resolve_id(ReferenceRole.FIELD, None) is None

    def test_unmapped_real_id_is_kept(self):
        existing = uuid4()
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve_id(ReferenceRole.FIELD, str(existing)) == existing


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

_KEYS = st.sampled_from(
    ["field", "compare_field", "comparevalue", "stage_id", "from_stage_id",
     "section_id", "transition_id", "field_ids", "operator", "note", "conditions"]
)
_TOKENS = st.sampled_from(["FAKE_1", "FAKE_2", "FAKE_3", "7", "temp_ab"])
_SCALARS = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-5, max_value=20),
    st.text(alphabet=string.ascii_letters + "_- ", max_size=8),
    _TOKENS,
    st.uuids().map(str),
)
_BLOBS = st.recursive(
    _SCALARS,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(_KEYS, children, max_size=4),
    ),
    max_leaves=20,
)


def _shape(value):
    if isinstance(value, dict):
        return {k: _shape(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_shape(v) for v in value]
    return "leaf"


def _resolver() -> ReferenceResolver:
    return ReferenceResolver(
        _maps(
            field={"FAKE_1": uuid4()},
            stage={"FAKE_2": uuid4(), "7": uuid4()},
            transition={"FAKE_3": uuid4()},
        )
    )


class TestResolverProperties:

    @given(blob=_BLOBS)
    @settings(max_examples=200)
    def test_never_mutates_input(self, blob):
        before = copy.deepcopy(blob)
        _resolver().resolve(blob)
        assert blob == before

    @given(blob=_BLOBS)
    @settings(max_examples=200)
    def test_preserves_shape(self, blob):
        assert _shape(_resolver().resolve(blob)) == _shape(blob)

    @given(blob=_BLOBS)
    @settings(max_examples=200)
    def test_empty_maps_without_nulling_is_identity(self, blob):
        resolver = ReferenceResolver(IdMaps())
        assert resolver.resolve(blob, null_unresolved=False) == blob

    @given(blob=_BLOBS)
    @settings(max_examples=200)
    def test_mapped_placeholders_never_survive(self, blob):
        # Every token here is mapped under some role; unkeyed leaves try all
        # maps, keyed leaves are mapped or nulled.
        resolver = ReferenceResolver(
            _maps(
                field={"FAKE_1": uuid4(), "FAKE_2": uuid4(), "FAKE_3": uuid4(),
                       "7": uuid4(), "temp_ab": uuid4()},
                stage={"FAKE_1": uuid4(), "FAKE_2": uuid4(), "FAKE_3": uuid4(),
                       "7": uuid4(), "temp_ab": uuid4()},
                section={"FAKE_1": uuid4(), "FAKE_2": uuid4(), "FAKE_3": uuid4(),
                         "7": uuid4(), "temp_ab": uuid4()},
                transition={"FAKE_1": uuid4(), "FAKE_2": uuid4(), "FAKE_3": uuid4(),
                            "7": uuid4(), "temp_ab": uuid4()},
            )
        )
        text = json.dumps(resolver.resolve(blob))
        for token in ("FAKE_1", "FAKE_2", "FAKE_3", "temp_ab"):
            assert f'"{token}"' not in text
