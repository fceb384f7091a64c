"""
Pytest fixtures for the formflow test suite.

Provides:
- One database engine and schema per test session
- Per-test sessions joined to an outer transaction that is rolled back
- Catalog seeding, collaborators and the FormWorkflowService facade
- Draft payload builders and a published-form factory

Environment Variables:
- DATABASE_URL: connection URL for the test database.  Defaults to an
  in-memory SQLite database.  Point it at PostgreSQL to exercise the real
  row locks (SELECT ... FOR UPDATE is a no-op on SQLite).
"""

import json
import logging
import os
from dataclasses import dataclass
from io import StringIO
from typing import Any, Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from formflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from formflow_kernel.domain.clock import DeterministicClock
from formflow_kernel.domain.collaborators import Caller
from formflow_kernel.domain.dtos import FieldView, FormVersionView, StageView, TransitionView
from formflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from formflow_kernel.services.catalog_service import CatalogService
from formflow_services.action_executor import default_action_executor
from formflow_services.form_workflow_service import FormWorkflowService
from formflow_services.identity import StaticIdentityProvider
from formflow_services.orchestrator import FormflowOrchestrator
from formflow_services.translation import StaticTranslationProvider

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture formflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.publish_draft(version_id)
            logs = captured_logs()
            assert any(r["message"] == "form_version_published" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("formflow")
    previous_level = root.level
    # tests/test_logging.py resets the hierarchy to WARNING between tests.
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_mode`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` or ``session.rollback()`` inside the test
      works on a savepoint; nothing reaches the database
    - At teardown the outer transaction is rolled back
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Catalog
# =============================================================================


FIELD_TYPES = (
    ("Text", "text"),
    ("Text Area", "textarea"),
    ("Email", "email"),
    ("Number", "number"),
    ("Date", "date"),
    ("Checkbox", "checkbox"),
    ("Select", "select"),
    ("Multi Select", "multi_select"),
)

INPUT_RULES = (
    "required",
    "email",
    "min_length",
    "max_length",
    "numeric",
    "min_value",
    "max_value",
    "regex",
    "in_list",
)

ACTIONS = (
    ("Audit log", "audit_log"),
    ("Send email", "send_email"),
)


@dataclass(frozen=True)
class CatalogIds:
    """Catalog ids by field kind, rule code and action code."""

    field_types: dict[str, UUID]
    input_rules: dict[str, UUID]
    actions: dict[str, UUID]


@pytest.fixture
def catalog(session) -> CatalogIds:
    """Register the standard catalog and return its ids."""
    service = CatalogService(session)
    field_types = {
        kind: service.register_field_type(name, kind).id for name, kind in FIELD_TYPES
    }
    input_rules = {
        code: service.register_input_rule(code.replace("_", " ").title(), code).id
        for code in INPUT_RULES
    }
    actions = {
        code: service.register_action(name, code).id for name, code in ACTIONS
    }
    # Commit so a facade rollback early in a test cannot discard the catalog.
    session.commit()
    return CatalogIds(field_types=field_types, input_rules=input_rules, actions=actions)


# =============================================================================
# Collaborators and services
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider()


@pytest.fixture
def action_executor():
    return default_action_executor()


@pytest.fixture
def translations() -> StaticTranslationProvider:
    return StaticTranslationProvider()


@pytest.fixture
def orchestrator(session, deterministic_clock, identity, action_executor, translations):
    """Provide a FormflowOrchestrator wired with test collaborators."""
    return FormflowOrchestrator(
        session,
        clock=deterministic_clock,
        identity_provider=identity,
        action_executor=action_executor,
        translation_provider=translations,
    )


@pytest.fixture
def workflow(orchestrator) -> FormWorkflowService:
    """Provide the transaction-owning facade."""
    return FormWorkflowService.from_orchestrator(orchestrator)


@pytest.fixture
def alice() -> Caller:
    return Caller(user_id="alice", email="alice@example.com")


@pytest.fixture
def bob() -> Caller:
    return Caller(user_id="bob", email="bob@example.com")


# =============================================================================
# Draft payload builders
# =============================================================================


class DraftPayloads:
    """Builds draft payload dicts in the wire format the rewriter accepts."""

    def __init__(self, catalog: CatalogIds):
        self.catalog = catalog

    def rule(self, code: str, props: Any = None, condition: Any = None) -> dict:
        return {
            "input_rule_id": str(self.catalog.input_rules[code]),
            "rule_props": props,
            "rule_condition": condition,
        }

    def field(
        self,
        token: Any,
        kind: str,
        label: str,
        rules: list | None = None,
        visibility_condition: Any = None,
        **extra: Any,
    ) -> dict:
        return {
            "id": token,
            "field_type_id": str(self.catalog.field_types[kind]),
            "label": label,
            "visibility_condition": visibility_condition,
            "rules": rules or [],
            **extra,
        }

    def section(
        self,
        token: Any,
        name: str,
        fields: list,
        order: int = 0,
        visibility_condition: Any = None,
    ) -> dict:
        return {
            "id": token,
            "name": name,
            "order": order,
            "visibility_condition": visibility_condition,
            "fields": fields,
        }

    def stage(
        self,
        token: Any,
        name: str,
        sections: list,
        is_initial: bool = False,
        access_rule: dict | None = None,
        visibility_condition: Any = None,
    ) -> dict:
        return {
            "id": token,
            "name": name,
            "is_initial": is_initial,
            "visibility_condition": visibility_condition,
            "access_rule": access_rule,
            "sections": sections,
        }

    @staticmethod
    def access(
        users: list | None = None,
        roles: list | None = None,
        permissions: list | None = None,
        authenticated: bool = False,
        email_field_id: Any = None,
    ) -> dict:
        return {
            "allowed_users": users or [],
            "allowed_roles": roles or [],
            "allowed_permissions": permissions or [],
            "allow_authenticated_users": authenticated,
            "email_field_id": email_field_id,
        }

    def action(self, code: str, props: Any = None) -> dict:
        return {"action_id": str(self.catalog.actions[code]), "action_props": props}

    def transition(
        self,
        token: Any,
        label: str,
        from_stage: Any,
        to_stage: Any = None,
        to_complete: bool = False,
        condition: Any = None,
        actions: list | None = None,
    ) -> dict:
        return {
            "id": token,
            "from_stage_id": from_stage,
            "to_stage_id": to_stage,
            "to_complete": to_complete,
            "label": label,
            "condition": condition,
            "actions": actions or [],
        }

    def approval_form(self) -> dict:
        """
        Two-stage request/approval workflow.

        Request (initial, public): Requester email (required, email),
        Amount (required, min_value 1), Justification (required, visible
        only when Amount > 100).
        Approval (role "approver", or the requester by email): Decision
        (required, in_list approve/reject).
        Transitions: Submit (Request -> Approval, audit_log action),
        Approve (Approval -> complete, decision == approve),
        Send back (Approval -> Request, decision == reject).
        """
        return {
            "stages": [
                self.stage(
                    "FAKE_request",
                    "Request",
                    is_initial=True,
                    access_rule=self.access(),
                    sections=[
                        self.section(
                            "FAKE_details",
                            "Details",
                            fields=[
                                self.field(
                                    "FAKE_email",
                                    "email",
                                    "Requester email",
                                    rules=[self.rule("required"), self.rule("email")],
                                ),
                                self.field(
                                    "FAKE_amount",
                                    "number",
                                    "Amount",
                                    rules=[
                                        self.rule("required"),
                                        self.rule("min_value", {"value": 1}),
                                    ],
                                ),
                                self.field(
                                    "FAKE_justification",
                                    "textarea",
                                    "Justification",
                                    rules=[self.rule("required")],
                                    visibility_condition={
                                        "field": "FAKE_amount",
                                        "operator": "greater_than",
                                        "comparevalue": 100,
                                    },
                                ),
                            ],
                        )
                    ],
                ),
                self.stage(
                    "FAKE_approval",
                    "Approval",
                    access_rule=self.access(roles=["approver"], email_field_id="FAKE_email"),
                    sections=[
                        self.section(
                            "FAKE_review",
                            "Review",
                            fields=[
                                self.field(
                                    "FAKE_decision",
                                    "select",
                                    "Decision",
                                    rules=[
                                        self.rule("required"),
                                        self.rule("in_list", {"options": ["approve", "reject"]}),
                                    ],
                                ),
                            ],
                        )
                    ],
                ),
            ],
            "stage_transitions": [
                self.transition(
                    "FAKE_submit",
                    "Submit",
                    from_stage="FAKE_request",
                    to_stage="FAKE_approval",
                    actions=[self.action("audit_log", {"note": "submitted"})],
                ),
                self.transition(
                    "FAKE_approve",
                    "Approve",
                    from_stage="FAKE_approval",
                    to_complete=True,
                    condition={
                        "field": "FAKE_decision",
                        "operator": "equals",
                        "comparevalue": "approve",
                    },
                ),
                self.transition(
                    "FAKE_send_back",
                    "Send back",
                    from_stage="FAKE_approval",
                    to_stage="FAKE_request",
                    condition={
                        "field": "FAKE_decision",
                        "operator": "equals",
                        "comparevalue": "reject",
                    },
                ),
            ],
        }


@pytest.fixture
def payloads(catalog) -> DraftPayloads:
    return DraftPayloads(catalog)


# =============================================================================
# Published forms
# =============================================================================


@dataclass(frozen=True)
class PublishedForm:
    """A form with one version; stages, fields and transitions looked up by display name."""

    form_id: UUID
    version: FormVersionView

    @property
    def version_id(self) -> UUID:
        return self.version.id

    def stage(self, name: str) -> StageView:
        return next(s for s in self.version.stages if s.name == name)

    def field(self, label: str) -> FieldView:
        return next(f for s in self.version.stages for f in s.fields if f.label == label)

    def field_id(self, label: str) -> str:
        return str(self.field(label).id)

    def transition(self, label: str) -> TransitionView:
        return next(t for t in self.version.transitions if t.label == label)


@pytest.fixture
def make_form(workflow, payloads):
    """
    Factory fixture: create a form, rewrite its blank draft and publish it.

    Defaults to the approval workflow; pass ``publish=False`` to keep the
    draft.
    """

    def _make(
        payload: dict | None = None,
        name: str = "Purchase request",
        publish: bool = True,
    ) -> PublishedForm:
        form = workflow.create_form(name, category="Finance")
        draft = workflow.create_version(form.id, copy_from_current=False)
        version = workflow.rewrite_draft(draft.id, payload or payloads.approval_form())
        if publish:
            version = workflow.publish_draft(version.id)
        return PublishedForm(form_id=form.id, version=version)

    return _make


@pytest.fixture
def approval_form(make_form) -> PublishedForm:
    return make_form()
