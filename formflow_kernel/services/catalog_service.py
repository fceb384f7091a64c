"""
Write side for the reference catalogs.

Catalog maintenance screens are out of scope; this service covers what the
seed script and the test suite need: registering field types, input rules
and actions, idempotently by name.
"""

from __future__ import annotations

from sqlalchemy import select

from formflow_kernel.domain.field_values import FieldKind
from formflow_kernel.logging_config import get_logger
from formflow_kernel.models.catalog import Action, FieldType, InputRule
from formflow_kernel.selectors.catalog_selector import (
    CatalogEntryInfo,
    FieldTypeInfo,
    catalog_entry_info,
)
from formflow_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService):
    """Registers catalog entries; an existing entry with the same name is updated."""

    def register_field_type(self, name: str, kind: FieldKind | str) -> FieldTypeInfo:
        kind_value = FieldKind(kind).value
        row = self.session.scalars(select(FieldType).where(FieldType.name == name)).first()
        if row is None:
            row = FieldType(name=name, kind=kind_value)
            self.session.add(row)
        else:
            row.kind = kind_value
        self.session.flush()
        logger.info("field_type_registered", extra={"field_type": name, "kind": kind_value})
        return FieldTypeInfo(id=row.id, name=row.name, kind=row.kind)

    def register_input_rule(
        self,
        name: str,
        code: str,
        description: str | None = None,
        is_public: bool = True,
    ) -> CatalogEntryInfo:
        row = self._upsert(InputRule, name, code, description, is_public)
        logger.info("input_rule_registered", extra={"catalog_name": name, "code": code})
        return catalog_entry_info(row)

    def register_action(
        self,
        name: str,
        code: str,
        description: str | None = None,
        is_public: bool = True,
    ) -> CatalogEntryInfo:
        row = self._upsert(Action, name, code, description, is_public)
        logger.info("action_registered", extra={"catalog_name": name, "code": code})
        return catalog_entry_info(row)

    def _upsert(self, model, name, code, description, is_public):
        row = self.session.scalars(select(model).where(model.name == name)).first()
        if row is None:
            row = model(name=name, code=code, description=description, is_public=is_public)
            self.session.add(row)
        else:
            row.code = code
            row.description = description
            row.is_public = is_public
        self.session.flush()
        return row
