"""Tests for input rule validators (formflow_kernel/domain/input_rules.py)."""

import pytest

from formflow_kernel.domain.input_rules import default_input_rule_registry, normalize_props

RULES = default_input_rule_registry()


def check(code, value, props=None):
    return RULES.get(code)(value, normalize_props(props))


def test_built_in_codes():
    assert RULES.codes() == {
        "required",
        "email",
        "min_length",
        "max_length",
        "numeric",
        "min_value",
        "max_value",
        "regex",
        "in_list",
    }
    assert RULES.get("nope") is None


@pytest.mark.parametrize("value", [None, "", "   ", [], False])
def test_required_rejects_empty(value):
    assert check("required", value) == "This field is required."


@pytest.mark.parametrize("value", ["x", 0, True, ["a"]])
def test_required_accepts_values(value):
    assert check("required", value) is None


@pytest.mark.parametrize(
    "code, props",
    [
        ("email", None),
        ("min_length", {"value": 3}),
        ("max_length", {"value": 3}),
        ("numeric", None),
        ("min_value", {"value": 1}),
        ("max_value", {"value": 1}),
        ("regex", {"pattern": "[a-z]+"}),
        ("in_list", {"options": ["a"]}),
    ],
)
def test_only_required_rejects_blank(code, props):
    assert check(code, "", props) is None
    assert check(code, None, props) is None


class TestEmail:

    def test_valid(self):
        assert check("email", " alice@example.com ") is None

    @pytest.mark.parametrize("value", ["alice", "alice@", "a b@example.com", "a@b"])
    def test_invalid(self, value):
        assert check("email", value) == "Enter a valid email address."


class TestLength:

    def test_min_length(self):
        assert check("min_length", "ab", {"value": 3}) == "Must be at least 3 characters."
        assert check("min_length", "abc", {"value": 3}) is None

    def test_max_length(self):
        assert check("max_length", "abcd", {"max_length": 3}) == "Must be at most 3 characters."
        assert check("max_length", "abc", {"max_length": 3}) is None

    def test_list_length_counts_items(self):
        assert check("min_length", ["a", "b"], {"value": 3}) == "Must be at least 3 characters."

    def test_missing_limit_passes(self):
        assert check("min_length", "a", {}) is None


class TestNumbers:

    def test_numeric(self):
        assert check("numeric", "12.5") is None
        assert check("numeric", "12,5") == "Must be a number."

    def test_min_value(self):
        assert check("min_value", "0.5", {"value": 1}) == "Must be at least 1."
        assert check("min_value", "1", {"value": 1}) is None

    def test_max_value(self):
        assert check("max_value", 101, {"max": "100"}) == "Must be at most 100."
        assert check("max_value", "99.99", {"max": "100"}) is None

    def test_non_numeric_value_fails_bounds(self):
        assert check("min_value", "abc", {"value": 1}) == "Must be at least 1."


class TestRegex:

    def test_full_match_required(self):
        assert check("regex", "abc", {"pattern": "[a-z]+"}) is None
        assert check("regex", "abc1", {"pattern": "[a-z]+"}) == "Invalid format."

    def test_invalid_pattern_passes(self):
        assert check("regex", "abc", {"pattern": "[unclosed"}) is None


class TestInList:

    def test_single_value(self):
        props = {"options": ["approve", "reject"]}
        assert check("in_list", "approve", props) is None
        assert check("in_list", "maybe", props) == "Select a valid option."

    def test_multiple_values(self):
        props = {"values": ["a", "b", "c"]}
        assert check("in_list", ["a", "c"], props) is None
        assert check("in_list", ["a", "z"], props) == "Select a valid option."

    def test_numbers_compare_as_text(self):
        assert check("in_list", 2, {"options": [1, 2, 3]}) is None


def test_custom_message_overrides_default():
    props = {"value": 5, "message": "Too short!"}
    assert check("min_length", "abc", props) == "Too short!"
    assert check("required", "", {"message": "Please fill in"}) == "Please fill in"


class TestNormalizeProps:

    def test_mapping(self):
        assert normalize_props({"value": 1}) == {"value": 1}

    def test_json_text(self):
        assert normalize_props('{"value": 1}') == {"value": 1}

    @pytest.mark.parametrize("props", [None, "", "not json", "[1, 2]", 5])
    def test_unusable_props_are_empty(self, props):
        assert normalize_props(props) == {}
