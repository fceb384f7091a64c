"""
formflow_services.action_executor -- Dispatches transition actions.

Actions are declared on transitions by catalog id; the catalog row carries a
``code``.  RegistryActionExecutor holds the handler per code and is called by
the entry workflow after the entry's new state has been flushed.  Side
effects themselves (mail, webhooks) belong to the host application, which
registers handlers for its codes.

A handler receives ``(props, entry, caller)`` and returns a dict of result
data (or None).  An unknown code yields a failed ActionResult and a warning;
a handler that raises yields a failed result and an error log with the
traceback.  Neither aborts the submission.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from formflow_kernel.domain.collaborators import Caller
from formflow_kernel.domain.dtos import ActionResult, EntrySnapshot, TransitionView
from formflow_kernel.domain.input_rules import normalize_props
from formflow_kernel.logging_config import get_logger

logger = get_logger("services.action_executor")

ActionHandler = Callable[[dict[str, Any], EntrySnapshot, "Caller | None"], "dict[str, Any] | None"]


def _audit_log(
    props: dict[str, Any], entry: EntrySnapshot, caller: Caller | None
) -> dict[str, Any]:
    logger.info(
        "entry_transition_audited",
        extra={
            "entry_id": str(entry.id),
            "user_id": caller.user_id if caller is not None else None,
            "is_complete": entry.is_complete,
            "note": props.get("note"),
        },
    )
    return {"audited": True}


class RegistryActionExecutor:
    """Runs transition actions through handlers registered by action code."""

    def __init__(self) -> None:
        self._handlers: dict[str, ActionHandler] = {}

    def register(self, code: str, handler: ActionHandler) -> None:
        """Register a handler for an action code."""
        self._handlers[code] = handler

    def codes(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def execute(
        self,
        transition: TransitionView,
        entry: EntrySnapshot,
        caller: Caller | None,
    ) -> list[ActionResult]:
        return [
            self._run(a.action_id, a.action_code, a.action_props, entry, caller)
            for a in transition.actions
        ]

    def _run(
        self,
        action_id: Any,
        code: str,
        props: Any,
        entry: EntrySnapshot,
        caller: Caller | None,
    ) -> ActionResult:
        handler = self._handlers.get(code)
        if handler is None:
            logger.warning(
                "action_no_handler",
                extra={"action_code": code, "entry_id": str(entry.id)},
            )
            return ActionResult(
                action_id=action_id,
                action_code=code,
                success=False,
                message=f"No handler registered for action '{code}'.",
            )
        try:
            data = handler(normalize_props(props), entry, caller)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "action_execution_error",
                extra={"action_code": code, "entry_id": str(entry.id)},
                exc_info=True,
            )
            return ActionResult(
                action_id=action_id, action_code=code, success=False, message=str(e)
            )
        return ActionResult(action_id=action_id, action_code=code, success=True, data=data or {})


def default_action_executor() -> RegistryActionExecutor:
    """Return a RegistryActionExecutor with built-in handlers registered."""
    ex = RegistryActionExecutor()
    ex.register("audit_log", _audit_log)
    return ex
