"""Tests for stage access decisions and accessible-form listings."""

from uuid import uuid4

import pytest

from formflow_kernel.domain.collaborators import Caller
from formflow_kernel.domain.dtos import AccessRuleView, FieldView, SectionView, StageView
from formflow_kernel.services.stage_access_service import StageAccessService
from formflow_services.identity import StaticIdentityProvider

EMAIL_FIELD = uuid4()


def _rule(users=(), roles=(), permissions=(), authenticated=False, email_field_id=None):
    return AccessRuleView(
        allowed_users=tuple(users),
        allowed_roles=tuple(roles),
        allowed_permissions=tuple(permissions),
        allow_authenticated_users=authenticated,
        email_field_id=email_field_id,
    )


def _stage(rule, is_initial=False, email_kind="email"):
    email_field = FieldView(
        id=EMAIL_FIELD,
        field_type_id=uuid4(),
        field_kind=email_kind,
        label="Requester email",
        placeholder=None,
        helper_text=None,
        default_value=None,
        visibility_condition=None,
    )
    return StageView(
        id=uuid4(),
        name="Stage",
        is_initial=is_initial,
        visibility_condition=None,
        sections=(SectionView(id=uuid4(), name="A", order=0, visibility_condition=None, fields=(email_field,)),),
        access_rule=rule,
    )


@pytest.fixture
def identity():
    return StaticIdentityProvider(
        roles={"bob": ["approver"]},
        permissions={"carol": ["forms.review"]},
    )


@pytest.fixture
def access(session, identity):
    return StageAccessService(session, identity)


ALICE = Caller("alice", "alice@example.com")
BOB = Caller("bob", "bob@example.com")
CAROL = Caller("carol", None)


class TestCanAccessStage:

    def test_no_rule_denies_everyone(self, access):
        stage = _stage(None, is_initial=True)
        assert access.can_access_stage(stage, ALICE) is False
        assert access.can_access_stage(stage, None) is False

    def test_initial_stage_with_empty_rule_is_public(self, access):
        stage = _stage(_rule(), is_initial=True)
        assert access.can_access_stage(stage, None) is True
        assert access.can_access_stage(stage, ALICE) is True

    def test_later_stage_with_empty_rule_is_closed(self, access):
        stage = _stage(_rule())
        assert access.can_access_stage(stage, ALICE) is False

    def test_guest_denied_on_restricted_stage(self, access):
        stage = _stage(_rule(authenticated=True), is_initial=True)
        assert access.can_access_stage(stage, None) is False

    def test_authenticated_users(self, access):
        stage = _stage(_rule(authenticated=True))
        assert access.can_access_stage(stage, ALICE) is True
        assert access.can_access_stage(stage, CAROL) is True

    def test_allowed_users(self, access):
        stage = _stage(_rule(users=["alice"]))
        assert access.can_access_stage(stage, ALICE) is True
        assert access.can_access_stage(stage, BOB) is False

    def test_roles_from_identity_provider(self, access, identity):
        stage = _stage(_rule(roles=["approver"]))
        assert access.can_access_stage(stage, BOB) is True
        assert access.can_access_stage(stage, ALICE) is False
        identity.grant_role("alice", "approver")
        assert access.can_access_stage(stage, ALICE) is True

    def test_permissions_from_identity_provider(self, access):
        stage = _stage(_rule(permissions=["forms.review"]))
        assert access.can_access_stage(stage, CAROL) is True
        assert access.can_access_stage(stage, BOB) is False

    def test_email_binding_is_case_and_space_insensitive(self, access):
        stage = _stage(_rule(email_field_id=EMAIL_FIELD))
        values = {str(EMAIL_FIELD): "  Alice@Example.com "}
        assert access.can_access_stage(stage, ALICE, values) is True
        assert access.can_access_stage(stage, BOB, values) is False

    def test_email_binding_needs_entry_values(self, access):
        stage = _stage(_rule(email_field_id=EMAIL_FIELD))
        assert access.can_access_stage(stage, ALICE) is False
        assert access.can_access_stage(stage, ALICE, {}) is False

    def test_email_binding_needs_an_email_field(self, access):
        stage = _stage(_rule(email_field_id=EMAIL_FIELD), email_kind="text")
        values = {str(EMAIL_FIELD): "alice@example.com"}
        assert access.can_access_stage(stage, ALICE, values) is False

    def test_caller_without_email_never_matches(self, access):
        stage = _stage(_rule(email_field_id=EMAIL_FIELD))
        assert access.can_access_stage(stage, CAROL, {str(EMAIL_FIELD): "carol@example.com"}) is False

    def test_denials_are_logged(self, access, captured_logs):
        stage = _stage(_rule(users=["alice"]))
        access.can_access_stage(stage, BOB)
        access.can_access_stage(stage, None)
        records = [r for r in captured_logs() if r["message"] == "stage_access_denied"]
        assert [(r["user_id"], r["reason"]) for r in records] == [
            ("bob", "not_permitted"),
            (None, "guest"),
        ]
        assert records[0]["stage_id"] == str(stage.id)
        assert records[0]["level"] == "INFO"


class TestEntryAccess:

    def test_email_field_on_an_earlier_stage(self, workflow, approval_form, alice, orchestrator):
        result = workflow.submit_initial(
            approval_form.version_id,
            {
                approval_form.field_id("Requester email"): "ALICE@example.com",
                approval_form.field_id("Amount"): "50",
            },
            caller=alice,
        )
        assert result.success
        entry = orchestrator.entries.get_model(result.public_identifier)
        assert orchestrator.access.can_access_entry(entry, alice) is True
        assert orchestrator.access.can_access_entry(entry, Caller("mallory", "m@example.com")) is False

    def test_complete_entry_on_its_last_stage(self, workflow, approval_form, alice, orchestrator, identity):
        identity.grant_role("bob", "approver")
        result = workflow.submit_initial(
            approval_form.version_id,
            {
                approval_form.field_id("Requester email"): "alice@example.com",
                approval_form.field_id("Amount"): "50",
            },
            caller=alice,
        )
        workflow.submit_later_stage(
            result.public_identifier,
            {approval_form.field_id("Decision"): "approve"},
            caller=Caller("bob"),
        )
        entry = orchestrator.entries.get_model(result.public_identifier)
        assert entry.is_complete is True
        assert orchestrator.access.can_access_entry(entry, Caller("bob")) is True


class TestAccessibleForms:

    def test_lists_forms_whose_initial_stage_is_open(self, workflow, make_form, payloads, orchestrator, alice):
        public = make_form(name="A public form")

        staff_payload = payloads.approval_form()
        staff_payload["stages"][0]["access_rule"] = payloads.access(users=["alice"])
        staff_only = make_form(staff_payload, name="B staff form")

        make_form(name="C draft form", publish=False)

        assert orchestrator.access.accessible_form_ids(None) == [public.form_id]
        assert orchestrator.access.accessible_form_ids(alice) == [public.form_id, staff_only.form_id]

    def test_archived_forms_are_hidden(self, make_form, orchestrator, alice):
        form = make_form()
        orchestrator.forms.set_archived(form.form_id)
        assert orchestrator.access.accessible_form_ids(alice) == []
        orchestrator.forms.set_archived(form.form_id, archived=False)
        assert orchestrator.access.accessible_form_ids(alice) == [form.form_id]

    def test_only_latest_published_version_counts(self, workflow, make_form, payloads, orchestrator):
        form = make_form()
        closed = payloads.approval_form()
        closed["stages"][0]["access_rule"] = payloads.access(authenticated=True)
        draft = workflow.create_version(form.form_id, copy_from_current=False)
        workflow.rewrite_draft(draft.id, closed)
        workflow.publish_draft(draft.id)

        assert orchestrator.access.accessible_form_ids(None) == []
