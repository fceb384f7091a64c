"""Domain models for the formflow kernel."""

from formflow_kernel.models.catalog import Action, FieldKind, FieldType, InputRule
from formflow_kernel.models.entry import Entry, EntryValue
from formflow_kernel.models.form import Form, FormVersion, VersionStatus
from formflow_kernel.models.stage import Field, FieldRule, Section, Stage, StageAccessRule
from formflow_kernel.models.transition import StageTransition, StageTransitionAction

__all__ = [
    "Action",
    "FieldKind",
    "FieldType",
    "InputRule",
    "Entry",
    "EntryValue",
    "Form",
    "FormVersion",
    "VersionStatus",
    "Field",
    "FieldRule",
    "Section",
    "Stage",
    "StageAccessRule",
    "StageTransition",
    "StageTransitionAction",
]
