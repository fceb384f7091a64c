"""
Condition evaluation over submitted field values.

Responsibility:
    Decides section / field / stage visibility, field-rule applicability and
    transition eligibility from a flat ``{field_id: value}`` map.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O apart from logging.

Grammar:
    Condition   := None | "" | {}                     (always true)
                 | <JSON text of a Condition>
                 | [Condition, ...]                    (implicit AND)
                 | Combinator | Leaf
    Combinator  := {"op": "AND" | "OR", "conditions": [Condition, ...]}
                   ("logic" is accepted in place of "op"; default AND)
    Leaf        := {"field": <field id>, "operator": <name>,
                    "comparevalue": <literal>}
                 | {"field": <field id>, "operator": <name>,
                    "compare_field": <field id>}

Missing values:
    An absent or None left-hand value makes ``is_empty`` true and every other
    operator false.  A ``compare_field`` whose value is missing makes every
    binary operator false.

Failure modes:
    Never raises.  Unknown operators and malformed nodes are logged and
    evaluate to False.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from formflow_kernel.logging_config import get_logger

logger = get_logger("domain.conditions")

_MISSING = object()


def is_empty_value(value: Any) -> bool:
    """None, blank text and empty collections count as empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def as_decimal(value: Any) -> Decimal | None:
    """Coerce a value to a finite Decimal, or None if it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    return result if result.is_finite() else None


def as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _compare(left: Any, right: Any) -> int:
    """Three-way compare: numeric when both sides are numeric, else text."""
    left_num, right_num = as_decimal(left), as_decimal(right)
    if left_num is not None and right_num is not None:
        return (left_num > right_num) - (left_num < right_num)
    left_text, right_text = as_text(left), as_text(right)
    return (left_text > right_text) - (left_text < right_text)


def _as_members(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    return [value]


def _equals(left: Any, right: Any) -> bool:
    if isinstance(left, (list, tuple)) or isinstance(right, (list, tuple)):
        return [as_text(v) for v in _as_members(left)] == [
            as_text(v) for v in _as_members(right)
        ]
    return _compare(left, right) == 0


def _contains(left: Any, right: Any) -> bool:
    if isinstance(left, (list, tuple, set)):
        return any(_equals(item, right) for item in left)
    return as_text(right) in as_text(left)


def _in(left: Any, right: Any) -> bool:
    members = _as_members(right)
    if isinstance(left, (list, tuple, set)):
        return any(_equals(item, m) for item in left for m in members)
    return any(_equals(left, m) for m in members)


@dataclass(frozen=True)
class Operator:
    """A comparison operator; unary operators ignore the right-hand side."""

    name: str
    fn: Callable[..., bool]
    unary: bool = False


class OperatorRegistry:
    """Operators available to leaf comparisons, keyed by name."""

    def __init__(self) -> None:
        self._operators: dict[str, Operator] = {}

    def register(self, name: str, fn: Callable[..., bool], *, unary: bool = False) -> None:
        self._operators[name] = Operator(name=name, fn=fn, unary=unary)

    def get(self, name: str) -> Operator | None:
        return self._operators.get(name)

    def names(self) -> frozenset[str]:
        return frozenset(self._operators)


def default_operator_registry() -> OperatorRegistry:
    """Return an OperatorRegistry with the built-in operators registered."""
    reg = OperatorRegistry()
    reg.register("equals", _equals)
    reg.register("not_equals", lambda a, b: not _equals(a, b))
    reg.register("contains", _contains)
    reg.register("not_contains", lambda a, b: not _contains(a, b))
    reg.register("greater_than", lambda a, b: _compare(a, b) > 0)
    reg.register("less_than", lambda a, b: _compare(a, b) < 0)
    reg.register("greater_or_equal", lambda a, b: _compare(a, b) >= 0)
    reg.register("less_or_equal", lambda a, b: _compare(a, b) <= 0)
    reg.register("in", _in)
    reg.register("not_in", lambda a, b: not _in(a, b))
    reg.register("is_empty", lambda a: is_empty_value(a), unary=True)
    reg.register("is_not_empty", lambda a: not is_empty_value(a), unary=True)
    return reg


class ConditionEvaluator:
    """Evaluates condition trees against ``{field_id: value}`` maps."""

    def __init__(self, operators: OperatorRegistry | None = None):
        self._operators = operators or default_operator_registry()

    def evaluate(self, condition: Any, values: Mapping[str, Any]) -> bool:
        """Return True when ``condition`` holds for ``values``."""
        lookup = {str(k): v for k, v in values.items()}
        return self._eval(condition, lookup)

    def _eval(self, node: Any, values: Mapping[str, Any]) -> bool:
        if node is None:
            return True
        if isinstance(node, str):
            if not node.strip():
                return True
            try:
                node = json.loads(node)
            except ValueError:
                logger.warning("condition_malformed", extra={"reason": "invalid_json"})
                return False
            return self._eval(node, values)
        if isinstance(node, (list, tuple)):
            return all(self._eval(child, values) for child in node)
        if not isinstance(node, Mapping):
            logger.warning(
                "condition_malformed",
                extra={"reason": "unexpected_node", "node_type": type(node).__name__},
            )
            return False
        if not node:
            return True
        if "conditions" in node:
            return self._eval_combinator(node, values)
        if "operator" in node:
            return self._eval_leaf(node, values)
        logger.warning(
            "condition_malformed",
            extra={"reason": "unknown_node", "keys": sorted(str(k) for k in node)},
        )
        return False

    def _eval_combinator(self, node: Mapping[str, Any], values: Mapping[str, Any]) -> bool:
        children = node.get("conditions") or []
        if not isinstance(children, (list, tuple)):
            logger.warning("condition_malformed", extra={"reason": "conditions_not_list"})
            return False
        op = str(node.get("op") or node.get("logic") or "AND").upper()
        if op == "AND":
            return all(self._eval(child, values) for child in children)
        if op == "OR":
            return any(self._eval(child, values) for child in children)
        logger.warning("condition_unknown_combinator", extra={"op": op})
        return False

    def _eval_leaf(self, node: Mapping[str, Any], values: Mapping[str, Any]) -> bool:
        name = node.get("operator")
        operator = self._operators.get(name) if isinstance(name, str) else None
        if operator is None:
            logger.warning("condition_unknown_operator", extra={"operator": name})
            return False

        field_ref = node.get("field")
        left = values.get(str(field_ref), _MISSING) if field_ref is not None else _MISSING
        if left is _MISSING or left is None:
            return operator.name == "is_empty"

        if operator.unary:
            return operator.fn(left)

        if "compare_field" in node and node.get("compare_field") is not None:
            right = values.get(str(node["compare_field"]))
            if right is None:
                return False
        else:
            right = node.get("comparevalue")

        return operator.fn(left, right)
