"""
Service layer for forms.

Forms themselves are thin: a name, an optional category and an archived
flag.  Everything structural lives on their versions (FormVersionService).
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from formflow_kernel.domain.dtos import FormSummary
from formflow_kernel.logging_config import get_logger
from formflow_kernel.models.form import Form
from formflow_kernel.selectors.form_version_selector import FormVersionSelector, form_summary
from formflow_kernel.services.base import BaseService

logger = get_logger("services.form")


class FormService(BaseService):
    """Creates and archives forms."""

    def create_form(self, name: str, category: str | None = None) -> FormSummary:
        """
        Create a form with no versions.

        Use ``FormVersionService.create_version(form_id, copy_from_current=False)``
        to give it its first (blank) draft.
        """
        form = Form(id=uuid4(), name=name, category=category, is_archived=False)
        self.session.add(form)
        self.session.flush()
        logger.info("form_created", extra={"form_id": str(form.id), "form_name": name})
        return form_summary(form)

    def set_archived(self, form_id: Any, archived: bool = True) -> FormSummary:
        """
        Archive (or restore) a form.  Archived forms are hidden from end users.

        Raises:
            FormNotFoundError: If the form does not exist.
        """
        form = FormVersionSelector(self.session).get_form(form_id)
        form.is_archived = archived
        self.session.flush()
        logger.info(
            "form_archived" if archived else "form_restored",
            extra={"form_id": str(form.id)},
        )
        return form_summary(form)
