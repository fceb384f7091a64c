"""
Module: formflow_kernel.services.stage_access_service
Responsibility: Decide whether a caller may view or act on a stage.
Architecture position: Kernel > Services.  Read-only; never flushes.

Decision order for ``can_access_stage``:
    1. No access rule on the stage -> deny.
    2. Initial stage whose rule names no users, roles or permissions, binds
       no email field and does not require authentication -> allow anyone,
       guests included.
    3. Guest caller -> deny.
    4. ``allow_authenticated_users`` -> allow.
    5. Caller id in ``allowed_users`` -> allow.
    6. Any of the caller's roles in ``allowed_roles`` -> allow.
    7. Any of the caller's permissions in ``allowed_permissions`` -> allow.
    8. With an entry: the entry's value for ``email_field_id`` (an email
       field) equals the caller's email, trimmed and case-insensitive -> allow.
    9. Deny.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from formflow_kernel.domain.collaborators import Caller, IdentityProvider
from formflow_kernel.domain.dtos import StageView
from formflow_kernel.domain.field_values import FieldKind
from formflow_kernel.logging_config import get_logger
from formflow_kernel.models.entry import Entry
from formflow_kernel.selectors.form_version_selector import FormVersionSelector, stage_to_view
from formflow_kernel.services.base import BaseService

logger = get_logger("services.stage_access")


class _NoIdentity:
    def roles_for(self, user_id: str) -> tuple[str, ...]:
        return ()

    def permissions_for(self, user_id: str) -> tuple[str, ...]:
        return ()


def _normalize_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    return text or None


class StageAccessService(BaseService):
    """Access checks for stages, entries and form listings."""

    def __init__(self, session: Session, identity_provider: IdentityProvider | None = None):
        super().__init__(session)
        self._identity = identity_provider or _NoIdentity()
        self._versions = FormVersionSelector(session)

    def can_access_stage(
        self,
        stage: StageView,
        caller: Caller | None,
        entry_values: Mapping[str, Any] | Entry | None = None,
    ) -> bool:
        """
        Check access to ``stage``.

        Args:
            stage: The stage being opened or submitted.
            caller: The authenticated caller, or None for a guest.
            entry_values: The entry being acted on (an Entry row or its
                values keyed by field id text), if any.  Only consulted for
                the email binding.
        """
        rule = stage.access_rule
        if rule is None:
            return self._deny(stage, caller, "no_access_rule")

        if (
            stage.is_initial
            and not rule.allowed_users
            and not rule.allowed_roles
            and not rule.allowed_permissions
            and rule.email_field_id is None
            and not rule.allow_authenticated_users
        ):
            return True

        if caller is None:
            return self._deny(stage, caller, "guest")

        if rule.allow_authenticated_users:
            return True
        if caller.user_id in rule.allowed_users:
            return True
        if rule.allowed_roles:
            roles = {str(r) for r in self._identity.roles_for(caller.user_id)}
            if roles & set(rule.allowed_roles):
                return True
        if rule.allowed_permissions:
            permissions = {str(p) for p in self._identity.permissions_for(caller.user_id)}
            if permissions & set(rule.allowed_permissions):
                return True
        if entry_values is not None and self._email_matches(
            stage, rule.email_field_id, caller, entry_values
        ):
            return True

        return self._deny(stage, caller, "not_permitted")

    def can_access_entry(self, entry: Entry, caller: Caller | None) -> bool:
        """Access to an entry is access to its current stage, with the entry."""
        if entry.current_stage_id is None:
            return False
        view = self._versions.get_view(entry.form_version_id)
        stage = view.stage(entry.current_stage_id)
        if stage is None:
            return False
        return self.can_access_stage(stage, caller, entry)

    def accessible_form_ids(self, caller: Caller | None) -> list[UUID]:
        """
        Forms (not archived) whose latest published version's initial stage
        the caller may open, in form name order.
        """
        accessible = []
        for form, version in self._versions.latest_published_versions():
            initial = version.initial_stage
            if initial is not None and self.can_access_stage(stage_to_view(initial), caller):
                accessible.append(form.id)
        return accessible

    def _email_matches(
        self,
        stage: StageView,
        email_field_id: UUID | None,
        caller: Caller,
        entry_values: Mapping[str, Any] | Entry,
    ) -> bool:
        if email_field_id is None:
            return False
        caller_email = _normalize_email(caller.email)
        if caller_email is None:
            return False
        if self._field_kind(stage, email_field_id, entry_values) != FieldKind.EMAIL.value:
            return False
        values = (
            entry_values.values_by_field() if isinstance(entry_values, Entry) else entry_values
        )
        return _normalize_email(values.get(str(email_field_id))) == caller_email

    def _field_kind(
        self,
        stage: StageView,
        field_id: UUID,
        entry_values: Mapping[str, Any] | Entry,
    ) -> str | None:
        # The bound field usually sits on an earlier stage of the same version.
        for f in stage.fields:
            if f.id == field_id:
                return f.field_kind
        if isinstance(entry_values, Entry):
            view = self._versions.get_view(entry_values.form_version_id)
            for s in view.stages:
                for f in s.fields:
                    if f.id == field_id:
                        return f.field_kind
        return None

    def _deny(self, stage: StageView, caller: Caller | None, reason: str) -> bool:
        logger.info(
            "stage_access_denied",
            extra={
                "stage_id": str(stage.id),
                "user_id": caller.user_id if caller is not None else None,
                "reason": reason,
            },
        )
        return False
