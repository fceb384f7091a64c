"""
Field kinds and value normalisation.

A field type's ``kind`` selects how a submitted value is stored.  Kinds not
registered here are stored as submitted.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from formflow_kernel.domain.conditions import as_decimal


class FieldKind(str, Enum):
    """Behavioural kind of a field type."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    DATE = "date"
    CHECKBOX = "checkbox"
    SELECT = "select"
    MULTI_SELECT = "multi_select"


Normalizer = Callable[[Any], Any]

_TRUE_TEXT = frozenset({"1", "true", "yes", "on"})


def _text(value: Any) -> Any:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _email(value: Any) -> Any:
    text = _text(value)
    return text.strip() if text is not None else None


def _number(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = as_decimal(value)
    # Unparseable input is kept so validation can report it.
    return format(number.normalize(), "f") if number is not None else value


def _checkbox(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TEXT
    return bool(value)


def _multi_select(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value]
    return [str(value)]


class FieldValueNormalizers:
    """Value normalisers keyed by field kind."""

    def __init__(self) -> None:
        self._normalizers: dict[str, Normalizer] = {}

    def register(self, kind: FieldKind | str, normalizer: Normalizer) -> None:
        self._normalizers[FieldKind(kind).value] = normalizer

    def normalize(self, kind: str | None, value: Any) -> Any:
        fn = self._normalizers.get(kind or "")
        return fn(value) if fn is not None else value


def default_field_value_normalizers() -> FieldValueNormalizers:
    reg = FieldValueNormalizers()
    reg.register(FieldKind.TEXT, _text)
    reg.register(FieldKind.TEXTAREA, _text)
    reg.register(FieldKind.EMAIL, _email)
    reg.register(FieldKind.NUMBER, _number)
    reg.register(FieldKind.CHECKBOX, _checkbox)
    reg.register(FieldKind.MULTI_SELECT, _multi_select)
    return reg
