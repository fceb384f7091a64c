"""
formflow_services.orchestrator -- Central DI container for kernel services.

Responsibility:
    Creates every kernel service exactly once per session and wires them
    together with the external collaborators (identity, actions,
    translations).  No kernel service creates another service's
    collaborators on its own when built through here.

Architecture position:
    Services.  The only place where kernel services are constructed and
    composed for the FormWorkflowService facade.

Invariants enforced:
    - Single-instance lifecycle: one StageAccessService is shared by the
      entry workflow and by form listings, so both apply the same identity
      provider.
    - DI transparency: all wiring is visible in ``__init__``.

Usage:
    orchestrator = FormflowOrchestrator(
        session=session,
        identity_provider=StaticIdentityProvider(roles={...}),
        action_executor=default_action_executor(),
    )
    orchestrator.form_versions.create_version(form_id, copy_from_current=False)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from formflow_config.schema import FormflowSettings
from formflow_kernel.domain.clock import Clock, SystemClock
from formflow_kernel.domain.collaborators import (
    ActionExecutor,
    IdentityProvider,
    TranslationProvider,
)
from formflow_kernel.domain.conditions import ConditionEvaluator
from formflow_kernel.domain.draft_builder import DraftGraphBuilder
from formflow_kernel.domain.submission import SubmissionValidator
from formflow_kernel.selectors.catalog_selector import CatalogSelector
from formflow_kernel.selectors.entry_selector import EntrySelector
from formflow_kernel.selectors.form_version_selector import FormVersionSelector
from formflow_kernel.services.catalog_service import CatalogService
from formflow_kernel.services.entry_workflow_service import (
    DEFAULT_PUBLIC_IDENTIFIER_BYTES,
    EntryWorkflowService,
)
from formflow_kernel.services.form_service import FormService
from formflow_kernel.services.form_version_service import (
    FormVersionService,
    PublishDemotionScope,
)
from formflow_kernel.services.stage_access_service import StageAccessService
from formflow_services.action_executor import default_action_executor
from formflow_services.identity import StaticIdentityProvider
from formflow_services.translation import NullTranslationProvider


class FormflowOrchestrator:
    """Central factory for kernel services.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
        - Does NOT own the Session lifecycle (no commit/rollback).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        identity_provider: IdentityProvider | None = None,
        action_executor: ActionExecutor | None = None,
        translation_provider: TranslationProvider | None = None,
        publish_demotion_scope: PublishDemotionScope | str = PublishDemotionScope.ALL_OTHERS,
        public_identifier_bytes: int = DEFAULT_PUBLIC_IDENTIFIER_BYTES,
        default_language_id: str | None = None,
    ) -> None:
        self.session = session
        self.clock = clock or SystemClock()
        self.identity_provider = identity_provider or StaticIdentityProvider()
        self.action_executor = action_executor or default_action_executor()
        self.translation_provider = translation_provider or NullTranslationProvider()
        self.default_language_id = default_language_id

        # Pure collaborators
        self.evaluator = ConditionEvaluator()
        self.validator = SubmissionValidator(evaluator=self.evaluator)
        self.builder = DraftGraphBuilder()

        # Read side
        self.versions = FormVersionSelector(session)
        self.entries = EntrySelector(session)
        self.catalog = CatalogSelector(session)

        # Write side, in dependency order
        self.catalog_service = CatalogService(session)
        self.forms = FormService(session)
        self.form_versions = FormVersionService(
            session,
            clock=self.clock,
            builder=self.builder,
            publish_demotion_scope=publish_demotion_scope,
        )
        self.access = StageAccessService(session, self.identity_provider)
        self.entry_workflow = EntryWorkflowService(
            session,
            access=self.access,
            action_executor=self.action_executor,
            validator=self.validator,
            public_identifier_bytes=public_identifier_bytes,
        )

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: FormflowSettings,
        **collaborators,
    ) -> FormflowOrchestrator:
        """Build with the tunables from ``formflow_config.get_active_config()``."""
        return cls(
            session,
            publish_demotion_scope=settings.publish_demotion_scope,
            public_identifier_bytes=settings.public_identifier_bytes,
            default_language_id=settings.default_language_id,
            **collaborators,
        )
