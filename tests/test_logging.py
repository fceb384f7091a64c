"""Tests for formflow_kernel.logging_config."""

import json
import logging
import threading
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from formflow_kernel.domain.field_values import FieldKind
from formflow_kernel.exceptions import DraftRevisionConflictError, StageAccessDeniedError
from formflow_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _json_handlers() -> list[logging.Handler]:
    """Handlers installed by configure_logging, ignoring any added by pytest."""
    return [
        h
        for h in logging.getLogger("formflow").handlers
        if isinstance(h.formatter, StructuredFormatter)
    ]


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def emit():
    """Configure logging into a buffer; returns (logger, read_records)."""
    stream = StringIO()
    configure_logging(stream=stream, level="debug")
    logger = get_logger("tests.logging")

    def _records() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return logger, _records


class TestRecordShape:

    def test_envelope(self, emit):
        logger, records = emit
        logger.info("form_created")

        (record,) = records()
        assert record["message"] == "form_created"
        assert record["level"] == "INFO"
        assert record["logger"] == "formflow.tests.logging"
        assert record["ts"].endswith("+00:00")

    def test_extras_are_top_level_keys(self, emit):
        logger, records = emit
        logger.info("draft_rewrite_completed", extra={"revision": 3, "stage_count": 2})
        record = records()[0]
        assert (record["revision"], record["stage_count"]) == (3, 2)

    def test_domain_values_are_encoded(self, emit):
        logger, records = emit
        stage_id = uuid4()
        logger.info(
            "values",
            extra={
                "stage_id": stage_id,
                "amount": Decimal("12.50"),
                "due": date(2024, 5, 1),
                "kind": FieldKind.EMAIL,
                "roles": {"b", "a"},
                "unrepresentable": object,
            },
        )
        record = records()[0]
        assert record["stage_id"] == str(stage_id)
        assert record["amount"] == "12.50"
        assert record["due"] == "2024-05-01"
        assert record["kind"] == "email"
        assert record["roles"] == ["a", "b"]
        assert isinstance(record["unrepresentable"], str)

    def test_level_threshold(self, emit):
        logger, records = emit
        logger.debug("visible_at_debug")
        assert [r["message"] for r in records()] == ["visible_at_debug"]


class TestExceptionFields:

    def test_plain_exception(self, emit):
        logger, records = emit
        try:
            raise KeyError("stages")
        except KeyError:
            logger.error("payload_broken", exc_info=True)

        record = records()[0]
        assert record["exc_type"] == "KeyError"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_kernel_error_attributes(self, emit):
        logger, records = emit
        version_id = uuid4()
        try:
            raise DraftRevisionConflictError(version_id, 2, 5)
        except DraftRevisionConflictError:
            logger.error("rewrite_failed", exc_info=True)

        record = records()[0]
        assert record["exc_code"] == "DRAFT_REVISION_CONFLICT"
        assert record["exc_version_id"] == str(version_id)
        assert record["exc_expected_revision"] == 2
        assert record["exc_actual_revision"] == 5

    def test_access_denied_carries_user(self, emit):
        logger, records = emit
        stage_id = uuid4()
        try:
            raise StageAccessDeniedError(stage_id, "mallory")
        except StageAccessDeniedError:
            logger.warning("denied", exc_info=True)

        record = records()[0]
        assert record["exc_code"] == "STAGE_ACCESS_DENIED"
        assert record["exc_user_id"] == "mallory"


class TestLogContext:

    def test_fields_are_merged_into_records(self, emit):
        logger, records = emit
        LogContext.set(actor_id="alice", entry_id="e-1")
        logger.info("entry_submitted")
        record = records()[0]
        assert record["actor_id"] == "alice"
        assert record["entry_id"] == "e-1"
        assert "form_version_id" not in record

    def test_context_wins_over_extra(self, emit):
        logger, records = emit
        with LogContext.bind(form_version_id="from-context"):
            logger.info("publish", extra={"form_version_id": "from-extra"})
        assert records()[0]["form_version_id"] == "from-context"

    def test_set_merges_and_stringifies(self):
        form_id = uuid4()
        LogContext.set(form_id=form_id)
        LogContext.set(actor_id="bob", correlation_id=None, colour="blue")
        assert LogContext.get_all() == {"form_id": str(form_id), "actor_id": "bob"}

    def test_bind_is_nested_and_restored(self):
        with LogContext.bind(entry_id="outer", actor_id="alice"):
            with LogContext.bind(entry_id="inner"):
                assert LogContext.get_all() == {"entry_id": "inner", "actor_id": "alice"}
            assert LogContext.get_all()["entry_id"] == "outer"
        assert LogContext.get_all() == {}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(entry_id="e"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_bind_without_known_fields_is_noop(self):
        with LogContext.bind(actor_id=None, not_a_field="x") as ctx:
            assert ctx is LogContext
            assert LogContext.get_all() == {}

    def test_snapshot_is_a_copy(self):
        LogContext.set(actor_id="alice")
        snapshot = LogContext.get_all()
        snapshot["actor_id"] = "mallory"
        assert LogContext.get_all()["actor_id"] == "alice"

    def test_threads_do_not_share_context(self):
        LogContext.set(actor_id="main")
        seen = {}

        def _worker():
            LogContext.set(actor_id="worker")
            seen["worker"] = LogContext.get_all()["actor_id"]

        thread = threading.Thread(target=_worker)
        thread.start()
        thread.join()

        assert seen["worker"] == "worker"
        assert LogContext.get_all()["actor_id"] == "main"

    def test_every_field_is_accepted(self):
        LogContext.set(**{name: name.upper() for name in CONTEXT_FIELDS})
        assert LogContext.get_all() == {name: name.upper() for name in CONTEXT_FIELDS}


class TestConfiguration:

    def test_first_configuration_wins(self):
        first, second = StringIO(), StringIO()
        configure_logging(stream=first)
        configure_logging(stream=second)

        get_logger("x").warning("once")

        assert "once" in first.getvalue()
        assert second.getvalue() == ""
        assert len(_json_handlers()) == 1

    def test_custom_handler_gets_json_formatter(self):
        handler = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_does_not_propagate_to_root(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("formflow").propagate is False

    def test_reset_clears_handlers(self):
        configure_logging(stream=StringIO(), level=logging.DEBUG)
        reset_logging()
        assert _json_handlers() == []
        assert logging.getLogger("formflow").level == logging.WARNING

    def test_child_loggers(self):
        assert get_logger("services.entry_workflow").name == "formflow.services.entry_workflow"
