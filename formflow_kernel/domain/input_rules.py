"""
Input rule constraints keyed by catalog code.

Each InputRule row in the catalog carries a ``code``; the validator for that
code lives here.  A validator receives the submitted value and the field
rule's resolved ``rule_props`` and returns a message when the value violates
the constraint, else None.

Only ``required`` rejects empty values; every other rule passes an empty
value so optional fields can be left blank.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any

from formflow_kernel.domain.conditions import as_decimal, as_text, is_empty_value

RuleValidator = Callable[[Any, Mapping[str, Any]], "str | None"]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_props(props: Any) -> dict[str, Any]:
    """Rule props may arrive as a mapping, JSON text or nothing."""
    if props is None:
        return {}
    if isinstance(props, str):
        if not props.strip():
            return {}
        try:
            props = json.loads(props)
        except ValueError:
            return {}
    return dict(props) if isinstance(props, Mapping) else {}


def _prop(props: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if props.get(name) is not None:
            return props[name]
    return None


def _length(value: Any) -> int:
    if isinstance(value, (list, tuple)):
        return len(value)
    return len(as_text(value))


def _required(value: Any, props: Mapping[str, Any]) -> str | None:
    if is_empty_value(value) or value is False:
        return props.get("message") or "This field is required."
    return None


def _email(value: Any, props: Mapping[str, Any]) -> str | None:
    if is_empty_value(value):
        return None
    if not _EMAIL_RE.match(as_text(value).strip()):
        return props.get("message") or "Enter a valid email address."
    return None


def _min_length(value: Any, props: Mapping[str, Any]) -> str | None:
    limit = as_decimal(_prop(props, "value", "min_length", "min", "length"))
    if is_empty_value(value) or limit is None:
        return None
    if _length(value) < limit:
        return props.get("message") or f"Must be at least {limit} characters."
    return None


def _max_length(value: Any, props: Mapping[str, Any]) -> str | None:
    limit = as_decimal(_prop(props, "value", "max_length", "max", "length"))
    if is_empty_value(value) or limit is None:
        return None
    if _length(value) > limit:
        return props.get("message") or f"Must be at most {limit} characters."
    return None


def _numeric(value: Any, props: Mapping[str, Any]) -> str | None:
    if is_empty_value(value):
        return None
    if as_decimal(value) is None:
        return props.get("message") or "Must be a number."
    return None


def _min_value(value: Any, props: Mapping[str, Any]) -> str | None:
    limit = as_decimal(_prop(props, "value", "min_value", "min"))
    if is_empty_value(value) or limit is None:
        return None
    number = as_decimal(value)
    if number is None or number < limit:
        return props.get("message") or f"Must be at least {limit}."
    return None


def _max_value(value: Any, props: Mapping[str, Any]) -> str | None:
    limit = as_decimal(_prop(props, "value", "max_value", "max"))
    if is_empty_value(value) or limit is None:
        return None
    number = as_decimal(value)
    if number is None or number > limit:
        return props.get("message") or f"Must be at most {limit}."
    return None


def _regex(value: Any, props: Mapping[str, Any]) -> str | None:
    pattern = _prop(props, "pattern", "regex", "value")
    if is_empty_value(value) or not pattern:
        return None
    try:
        matched = re.fullmatch(str(pattern), as_text(value)) is not None
    except re.error:
        return None
    if not matched:
        return props.get("message") or "Invalid format."
    return None


def _in_list(value: Any, props: Mapping[str, Any]) -> str | None:
    options = _prop(props, "options", "values", "value")
    if is_empty_value(value) or not isinstance(options, (list, tuple)):
        return None
    allowed = {as_text(option) for option in options}
    chosen = value if isinstance(value, (list, tuple)) else [value]
    if any(as_text(item) not in allowed for item in chosen):
        return props.get("message") or "Select a valid option."
    return None


class InputRuleRegistry:
    """Validators keyed by input-rule code."""

    def __init__(self) -> None:
        self._validators: dict[str, RuleValidator] = {}

    def register(self, code: str, validator: RuleValidator) -> None:
        self._validators[code] = validator

    def get(self, code: str) -> RuleValidator | None:
        return self._validators.get(code)

    def codes(self) -> frozenset[str]:
        return frozenset(self._validators)


def default_input_rule_registry() -> InputRuleRegistry:
    """Return an InputRuleRegistry with the built-in rules registered."""
    reg = InputRuleRegistry()
    reg.register("required", _required)
    reg.register("email", _email)
    reg.register("min_length", _min_length)
    reg.register("max_length", _max_length)
    reg.register("numeric", _numeric)
    reg.register("min_value", _min_value)
    reg.register("max_value", _max_value)
    reg.register("regex", _regex)
    reg.register("in_list", _in_list)
    return reg
