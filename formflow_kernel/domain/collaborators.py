"""
Collaborator interfaces the kernel calls out to.

The kernel never authenticates, never stores translations and never runs
action side effects itself.  It reaches those concerns only through the
protocols below; default implementations live in ``formflow_services``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from formflow_kernel.domain.dtos import ActionResult, EntrySnapshot, TransitionView


@dataclass(frozen=True)
class Caller:
    """An authenticated end user, as asserted by the host application."""

    user_id: str
    email: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_id", str(self.user_id))


@dataclass(frozen=True)
class LocalizedText:
    """Translated display strings for one entity.  ``None`` keeps the stored text."""

    label: str | None = None
    helper_text: str | None = None
    placeholder: str | None = None
    default_value: str | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Role and permission lookups for an external user id."""

    def roles_for(self, user_id: str) -> Sequence[str]:
        ...

    def permissions_for(self, user_id: str) -> Sequence[str]:
        ...


@runtime_checkable
class ActionExecutor(Protocol):
    """Runs a transition's actions after the entry state has been flushed."""

    def execute(
        self,
        transition: TransitionView,
        entry: EntrySnapshot,
        caller: Caller | None,
    ) -> list[ActionResult]:
        """Execute ``transition.actions`` in order and report one result each."""
        ...


@runtime_checkable
class TranslationProvider(Protocol):
    """Looks up translated text for a form, stage, section, field or transition."""

    def localize(self, entity_id: Any, language_id: Any) -> LocalizedText | None:
        ...
