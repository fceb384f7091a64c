"""
Pure domain layer.

Reference resolution, condition evaluation, draft payload parsing, the
six-pass draft graph builder, submission validation and the DTOs returned
across the service boundary.  Nothing here touches the ORM or the database.
"""

from formflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from formflow_kernel.domain.conditions import ConditionEvaluator, OperatorRegistry
from formflow_kernel.domain.draft_builder import DraftGraph, DraftGraphBuilder
from formflow_kernel.domain.draft_payload import DraftPayload, parse_draft_payload
from formflow_kernel.domain.field_values import FieldKind
from formflow_kernel.domain.references import IdMaps, ReferenceResolver, ReferenceRole
from formflow_kernel.domain.submission import SubmissionValidator

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ConditionEvaluator",
    "OperatorRegistry",
    "DraftGraph",
    "DraftGraphBuilder",
    "DraftPayload",
    "parse_draft_payload",
    "FieldKind",
    "IdMaps",
    "ReferenceResolver",
    "ReferenceRole",
    "SubmissionValidator",
]
