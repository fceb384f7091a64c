"""
formflow_services.identity -- Default IdentityProvider.

Authentication is the host application's job; it hands the kernel a
``Caller`` and an IdentityProvider that knows each user's roles and
permissions.  ``StaticIdentityProvider`` is a dict-backed implementation for
scripts, tests and deployments whose role data is loaded up front.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from formflow_kernel.domain.collaborators import Caller, IdentityProvider


class StaticIdentityProvider:
    """Roles and permissions held in memory, keyed by user id text."""

    def __init__(
        self,
        roles: Mapping[str, Iterable[str]] | None = None,
        permissions: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._roles = {str(k): tuple(str(r) for r in v) for k, v in (roles or {}).items()}
        self._permissions = {
            str(k): tuple(str(p) for p in v) for k, v in (permissions or {}).items()
        }

    def roles_for(self, user_id: str) -> tuple[str, ...]:
        return self._roles.get(str(user_id), ())

    def permissions_for(self, user_id: str) -> tuple[str, ...]:
        return self._permissions.get(str(user_id), ())

    def grant_role(self, user_id: str, role: str) -> None:
        key = str(user_id)
        if role not in self._roles.get(key, ()):
            self._roles[key] = self._roles.get(key, ()) + (str(role),)

    def grant_permission(self, user_id: str, permission: str) -> None:
        key = str(user_id)
        if permission not in self._permissions.get(key, ()):
            self._permissions[key] = self._permissions.get(key, ()) + (str(permission),)


__all__ = ["Caller", "IdentityProvider", "StaticIdentityProvider"]
