"""
Read side for the reference catalogs (field types, input rules, actions).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select

from formflow_kernel.domain.references import parse_uuid
from formflow_kernel.exceptions import CatalogEntryNotFoundError
from formflow_kernel.models.catalog import Action, FieldType, InputRule
from formflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class FieldTypeInfo:
    id: UUID
    name: str
    kind: str


@dataclass(frozen=True)
class CatalogEntryInfo:
    """An input rule or action descriptor."""

    id: UUID
    name: str
    code: str
    description: str | None
    is_public: bool


def catalog_entry_info(row: InputRule | Action) -> CatalogEntryInfo:
    return CatalogEntryInfo(
        id=row.id,
        name=row.name,
        code=row.code,
        description=row.description,
        is_public=row.is_public,
    )


class CatalogSelector(BaseSelector):
    """Id -> descriptor lookups over the reference catalogs."""

    def field_type(self, field_type_id: Any) -> FieldTypeInfo:
        row = self._get(FieldType, field_type_id, "Field type")
        return FieldTypeInfo(id=row.id, name=row.name, kind=row.kind)

    def input_rule(self, input_rule_id: Any) -> CatalogEntryInfo:
        return catalog_entry_info(self._get(InputRule, input_rule_id, "Input rule"))

    def action(self, action_id: Any) -> CatalogEntryInfo:
        return catalog_entry_info(self._get(Action, action_id, "Action"))

    def list_field_types(self) -> list[FieldTypeInfo]:
        rows = self.session.scalars(select(FieldType).order_by(FieldType.name))
        return [FieldTypeInfo(id=r.id, name=r.name, kind=r.kind) for r in rows]

    def list_input_rules(self, *, public_only: bool = False) -> list[CatalogEntryInfo]:
        stmt = select(InputRule).order_by(InputRule.name)
        if public_only:
            stmt = stmt.where(InputRule.is_public.is_(True))
        return [catalog_entry_info(r) for r in self.session.scalars(stmt)]

    def list_actions(self, *, public_only: bool = False) -> list[CatalogEntryInfo]:
        stmt = select(Action).order_by(Action.name)
        if public_only:
            stmt = stmt.where(Action.is_public.is_(True))
        return [catalog_entry_info(r) for r in self.session.scalars(stmt)]

    def require_all(
        self,
        field_type_ids: Iterable[UUID] = (),
        input_rule_ids: Iterable[UUID] = (),
        action_ids: Iterable[UUID] = (),
    ) -> None:
        """
        Check that every referenced catalog entry exists.

        Raises:
            CatalogEntryNotFoundError: For the first missing id, checking
                field types, then input rules, then actions.
        """
        for model, label, ids in (
            (FieldType, "Field type", field_type_ids),
            (InputRule, "Input rule", input_rule_ids),
            (Action, "Action", action_ids),
        ):
            wanted = set(ids)
            if not wanted:
                continue
            found = set(self.session.scalars(select(model.id).where(model.id.in_(wanted))))
            missing = sorted(str(i) for i in wanted - found)
            if missing:
                raise CatalogEntryNotFoundError(label, missing[0])

    def _get(self, model, entry_id: Any, label: str):
        uid = parse_uuid(entry_id)
        row = self.session.get(model, uid) if uid is not None else None
        if row is None:
            raise CatalogEntryNotFoundError(label, entry_id)
        return row
