"""
formflow_services -- Package init and public API.

Responsibility:
    Composition and transaction ownership.  Wires kernel services to the
    external collaborators (identity, action execution, translations) and
    exposes FormWorkflowService, the facade transports call.

Architecture position:
    Services -- above the kernel and the config package.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        formflow_services/ -> formflow_kernel/   (allowed)
        formflow_services/ -> formflow_config/   (allowed)
        formflow_kernel/   -> formflow_services/ (FORBIDDEN)
        formflow_kernel/   -> formflow_config/   (FORBIDDEN)

Invariants enforced:
    - DI transparency: all kernel service wiring is centralised in
      FormflowOrchestrator.
"""

from formflow_services.action_executor import RegistryActionExecutor, default_action_executor
from formflow_services.form_workflow_service import FormWorkflowService
from formflow_services.identity import Caller, StaticIdentityProvider
from formflow_services.orchestrator import FormflowOrchestrator
from formflow_services.translation import (
    Localizer,
    NullTranslationProvider,
    StaticTranslationProvider,
)

__all__ = [
    "Caller",
    "FormWorkflowService",
    "FormflowOrchestrator",
    "Localizer",
    "NullTranslationProvider",
    "RegistryActionExecutor",
    "StaticIdentityProvider",
    "StaticTranslationProvider",
    "default_action_executor",
]
