"""Services for the formflow kernel (write side)."""

from formflow_kernel.services.catalog_service import CatalogService
from formflow_kernel.services.entry_workflow_service import (
    EntryWorkflowService,
    coerce_field_values,
)
from formflow_kernel.services.form_service import FormService
from formflow_kernel.services.form_version_service import (
    FormVersionService,
    PublishDemotionScope,
)
from formflow_kernel.services.stage_access_service import StageAccessService

__all__ = [
    "CatalogService",
    "EntryWorkflowService",
    "FormService",
    "FormVersionService",
    "PublishDemotionScope",
    "StageAccessService",
    "coerce_field_values",
]
