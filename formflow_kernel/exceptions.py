"""
Typed exception hierarchy for the formflow kernel.

Every error raised by the kernel is a subclass of ``FormflowError`` and
carries:
  1. a TYPED class (catch by type, never by message text),
  2. a machine-readable ``code`` class attribute (API-safe),
  3. structured attributes describing the failing entity.

Example::

    try:
        service.submit_later_stage(public_identifier, values, transition_id, caller)
    except EntryAlreadyCompleteError as e:
        respond(409, code=e.code, entry=e.public_identifier)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FormflowError (base)
    |
    +-- NotFoundError
    |   +-- FormNotFoundError
    |   +-- FormVersionNotFoundError
    |   +-- StageNotFoundError
    |   +-- FieldNotFoundError
    |   +-- TransitionNotFoundError
    |   +-- EntryNotFoundError
    |   +-- CatalogEntryNotFoundError
    |   +-- NoSourceVersionError
    |
    +-- InvalidStateError
    |   +-- VersionNotDraftError
    |   +-- VersionNotPublishedError
    |   +-- EntryAlreadyCompleteError
    |   +-- InvalidTransitionError
    |   +-- ReadOnlyFieldError
    |   +-- MissingInitialStageError
    |
    +-- AccessDeniedError
    |   +-- StageAccessDeniedError
    |
    +-- ValidationFailedError
    |   +-- DraftPayloadError
    |   +-- SubmissionValidationError
    |
    +-- ConcurrencyError
        +-- DraftRevisionConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|------------------------------------------
NotFound      | FORM_NOT_FOUND             | Form id does not exist
              | FORM_VERSION_NOT_FOUND     | Version id does not exist
              | STAGE_NOT_FOUND            | Stage id does not exist in the version
              | FIELD_NOT_FOUND            | Submitted value for an unknown field
              | TRANSITION_NOT_FOUND       | Transition id does not exist in the version
              | ENTRY_NOT_FOUND            | Unknown public identifier
              | CATALOG_ENTRY_NOT_FOUND    | Field type / input rule / action missing
              | NO_SOURCE_VERSION          | Copy requested but form has no version
--------------|----------------------------|------------------------------------------
InvalidState  | VERSION_NOT_DRAFT          | Editing or publishing a non-draft version
              | VERSION_NOT_PUBLISHED      | Submitting against an unpublished version
              | ENTRY_ALREADY_COMPLETE     | Submitting to a completed entry
              | INVALID_TRANSITION         | Transition does not leave the current stage
              | READ_ONLY_FIELD            | Value for a field outside the acting stage
              | MISSING_INITIAL_STAGE      | Version has no initial stage
--------------|----------------------------|------------------------------------------
AccessDenied  | STAGE_ACCESS_DENIED        | Stage access rule rejects the caller
--------------|----------------------------|------------------------------------------
Validation    | DRAFT_PAYLOAD_INVALID      | Malformed draft payload
              | SUBMISSION_INVALID         | Rule violations (raised only on request)
--------------|----------------------------|------------------------------------------
Concurrency   | DRAFT_REVISION_CONFLICT    | Stale expected_revision on a rewrite
"""

from __future__ import annotations

from typing import Any, Sequence


class FormflowError(Exception):
    """
    Base exception for all formflow kernel errors.

    All subclasses must define a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "FORMFLOW_ERROR"


# Not found


class NotFoundError(FormflowError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class FormNotFoundError(NotFoundError):
    """Form with given ID was not found."""

    code: str = "FORM_NOT_FOUND"

    def __init__(self, form_id: Any):
        self.form_id = str(form_id)
        super().__init__(f"Form not found: {form_id}")


class FormVersionNotFoundError(NotFoundError):
    """Form version with given ID was not found."""

    code: str = "FORM_VERSION_NOT_FOUND"

    def __init__(self, version_id: Any):
        self.version_id = str(version_id)
        super().__init__(f"Form version not found: {version_id}")


class StageNotFoundError(NotFoundError):
    """Stage was not found in the form version."""

    code: str = "STAGE_NOT_FOUND"

    def __init__(self, stage_id: Any):
        self.stage_id = str(stage_id)
        super().__init__(f"Stage not found: {stage_id}")


class FieldNotFoundError(NotFoundError):
    """Field was not found in the form version."""

    code: str = "FIELD_NOT_FOUND"

    def __init__(self, field_id: Any, version_id: Any = None):
        self.field_id = str(field_id)
        self.version_id = str(version_id) if version_id is not None else None
        super().__init__(f"Field not found: {field_id}")


class TransitionNotFoundError(NotFoundError):
    """Stage transition was not found in the form version."""

    code: str = "TRANSITION_NOT_FOUND"

    def __init__(self, transition_id: Any, version_id: Any = None):
        self.transition_id = str(transition_id)
        self.version_id = str(version_id) if version_id is not None else None
        super().__init__(f"Stage transition not found: {transition_id}")


class EntryNotFoundError(NotFoundError):
    """No entry carries the given public identifier."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, public_identifier: str):
        self.public_identifier = public_identifier
        super().__init__(f"Entry not found: {public_identifier}")


class CatalogEntryNotFoundError(NotFoundError):
    """A field type, input rule or action referenced by a draft does not exist."""

    code: str = "CATALOG_ENTRY_NOT_FOUND"

    def __init__(self, catalog: str, entry_id: Any):
        self.catalog = catalog
        self.entry_id = str(entry_id)
        super().__init__(f"{catalog} not found: {entry_id}")


class NoSourceVersionError(NotFoundError):
    """Copying the current version was requested but the form has none."""

    code: str = "NO_SOURCE_VERSION"

    def __init__(self, form_id: Any):
        self.form_id = str(form_id)
        super().__init__(f"Form {form_id} has no version to copy from")


# Invalid state


class InvalidStateError(FormflowError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_STATE"


class VersionNotDraftError(InvalidStateError):
    """Form version is not a draft and cannot be modified or published."""

    code: str = "VERSION_NOT_DRAFT"

    def __init__(self, version_id: Any, status: str):
        self.version_id = str(version_id)
        self.status = status
        super().__init__(
            f"Form version {version_id} is {status}; only drafts can be changed"
        )


class VersionNotPublishedError(InvalidStateError):
    """Entries can only be submitted against a published form version."""

    code: str = "VERSION_NOT_PUBLISHED"

    def __init__(self, version_id: Any, status: str):
        self.version_id = str(version_id)
        self.status = status
        super().__init__(f"Form version {version_id} is {status}, not published")


class EntryAlreadyCompleteError(InvalidStateError):
    """Entry has already reached completion."""

    code: str = "ENTRY_ALREADY_COMPLETE"

    def __init__(self, public_identifier: str):
        self.public_identifier = public_identifier
        super().__init__(f"Entry {public_identifier} is already complete")


class InvalidTransitionError(InvalidStateError):
    """Transition does not originate from the entry's current stage."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, transition_id: Any, from_stage_id: Any, current_stage_id: Any):
        self.transition_id = str(transition_id)
        self.from_stage_id = str(from_stage_id) if from_stage_id is not None else None
        self.current_stage_id = str(current_stage_id)
        super().__init__(
            f"Transition {transition_id} leaves stage {from_stage_id}, "
            f"not the current stage {current_stage_id}"
        )


class ReadOnlyFieldError(InvalidStateError):
    """Submitted value targets a field outside the acting stage."""

    code: str = "READ_ONLY_FIELD"

    def __init__(self, field_id: Any, stage_id: Any):
        self.field_id = str(field_id)
        self.stage_id = str(stage_id)
        super().__init__(
            f"Field {field_id} does not belong to the acting stage {stage_id}"
        )


class MissingInitialStageError(InvalidStateError):
    """Form version has no initial stage."""

    code: str = "MISSING_INITIAL_STAGE"

    def __init__(self, version_id: Any):
        self.version_id = str(version_id)
        super().__init__(f"Form version {version_id} has no initial stage")


# Access


class AccessDeniedError(FormflowError):
    """Base exception for access-control failures."""

    code: str = "ACCESS_DENIED"


class StageAccessDeniedError(AccessDeniedError):
    """The caller may not view or act on the stage."""

    code: str = "STAGE_ACCESS_DENIED"

    def __init__(self, stage_id: Any, user_id: str | None):
        self.stage_id = str(stage_id)
        self.user_id = user_id
        who = user_id if user_id is not None else "guest"
        super().__init__(f"Access to stage {stage_id} denied for {who}")


# Validation


class ValidationFailedError(FormflowError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_FAILED"


class DraftPayloadError(ValidationFailedError):
    """Draft payload is structurally invalid."""

    code: str = "DRAFT_PAYLOAD_INVALID"

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(
            f"Draft payload invalid ({len(self.errors)} problems): "
            + "; ".join(self.errors)
        )


class SubmissionValidationError(ValidationFailedError):
    """Submission failed field validation.

    Submission paths return violations in their result; this exception is
    for callers that prefer raising (see ``SubmissionResult.raise_for_errors``).
    """

    code: str = "SUBMISSION_INVALID"

    def __init__(self, violations: Sequence[Any]):
        self.violations = list(violations)
        super().__init__(f"Submission rejected with {len(self.violations)} violations")


# Concurrency


class ConcurrencyError(FormflowError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class DraftRevisionConflictError(ConcurrencyError):
    """The draft was rewritten since the caller last read it."""

    code: str = "DRAFT_REVISION_CONFLICT"

    def __init__(self, version_id: Any, expected_revision: int, actual_revision: int):
        self.version_id = str(version_id)
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Draft {version_id} is at revision {actual_revision}, "
            f"caller expected {expected_revision}"
        )
