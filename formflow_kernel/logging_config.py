"""
Structured JSON logging for the formflow kernel.

Every record is emitted as one JSON object per line.  Request-scoped
identifiers (who is acting, on which form version or entry) are carried in
``LogContext`` and merged into every record written while they are bound,
so services log plain event names with a small ``extra`` payload:

    logger.info("entry_submitted", extra={"transition_id": str(t.id)})

Exceptions logged with ``exc_info`` are flattened into ``exc_*`` fields,
including the ``code`` and public attributes of ``FormflowError``
subclasses.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

ROOT_LOGGER_NAME = "formflow"

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "form_id",
    "form_version_id",
    "entry_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("formflow_log_context", default=_EMPTY)


def _known(fields: Mapping[str, Any]) -> dict[str, str]:
    """Stringify the recognised, non-None context fields."""
    return {k: str(v) for k, v in fields.items() if k in CONTEXT_FIELDS and v is not None}


class LogContext:
    """
    Request-scoped identifiers merged into every log record.

    Values live in a single ContextVar holding an immutable mapping, so
    threads and asyncio tasks each see their own context.  Unknown field
    names and None values are ignored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        updates = _known(fields)
        if updates:
            _context.set(MappingProxyType({**_context.get(), **updates}))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """Overlay fields for the duration of a ``with`` block."""
        updates = _known(fields)
        if not updates:
            yield LogContext
            return
        token = _context.set(MappingProxyType({**_context.get(), **updates}))
        try:
            yield LogContext
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(str(v) for v in obj)
    if isinstance(obj, Mapping):
        return dict(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload.update(_exception_fields(exc))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger named ``formflow.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_setup_lock = threading.Lock()
_is_configured = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``formflow`` logger.

    Only the first call has an effect until ``reset_logging()``.  Records do
    not propagate to the root logger.
    """
    global _is_configured
    with _setup_lock:
        if _is_configured:
            return
        _is_configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and forget configuration; used by the test suite."""
    global _is_configured
    with _setup_lock:
        _is_configured = False
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
