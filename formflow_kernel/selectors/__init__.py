"""Selectors for the formflow kernel (read side)."""

from formflow_kernel.selectors.catalog_selector import (
    CatalogEntryInfo,
    CatalogSelector,
    FieldTypeInfo,
)
from formflow_kernel.selectors.entry_selector import EntrySelector
from formflow_kernel.selectors.form_version_selector import FormVersionSelector

__all__ = [
    "CatalogSelector",
    "CatalogEntryInfo",
    "FieldTypeInfo",
    "EntrySelector",
    "FormVersionSelector",
]
