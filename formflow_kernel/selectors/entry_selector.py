"""
Read side for entries.

Entries are looked up by their opaque ``public_identifier`` (the only id an
end user ever holds) and rendered as EntryView: every stage of the entry's
version with the values stored for its fields, only the current stage
editable, and the transitions leaving the current stage.
"""

from __future__ import annotations

from sqlalchemy import select

from formflow_kernel.domain.dtos import (
    EntrySnapshot,
    EntryStageView,
    EntryView,
    FormVersionView,
)
from formflow_kernel.exceptions import EntryNotFoundError
from formflow_kernel.models.entry import Entry
from formflow_kernel.selectors.base import BaseSelector


def entry_snapshot(entry: Entry) -> EntrySnapshot:
    return EntrySnapshot(
        id=entry.id,
        public_identifier=entry.public_identifier,
        form_version_id=entry.form_version_id,
        current_stage_id=entry.current_stage_id,
        is_complete=entry.is_complete,
        values=entry.values_by_field(),
        created_by_user_id=entry.created_by_user_id,
    )


def entry_to_view(entry: Entry, version: FormVersionView) -> EntryView:
    stored = entry.values_by_field()
    stages = []
    for stage in version.stages:
        is_current = stage.id == entry.current_stage_id
        stages.append(
            EntryStageView(
                stage=stage,
                values={
                    str(f.id): stored[str(f.id)] for f in stage.fields if str(f.id) in stored
                },
                is_editable=is_current and not entry.is_complete,
                is_current=is_current,
            )
        )
    available = ()
    if not entry.is_complete and entry.current_stage_id is not None:
        available = tuple(
            t for t in version.transitions if t.from_stage_id == entry.current_stage_id
        )
    return EntryView(
        id=entry.id,
        public_identifier=entry.public_identifier,
        form_version_id=entry.form_version_id,
        current_stage_id=entry.current_stage_id,
        is_complete=entry.is_complete,
        stages=tuple(stages),
        available_transitions=available,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


class EntrySelector(BaseSelector):
    """Entry lookups by public identifier."""

    def get_model(self, public_identifier: str, *, for_update: bool = False) -> Entry:
        """
        Load an entry row, optionally locking it (SELECT ... FOR UPDATE).

        Raises:
            EntryNotFoundError: If no entry carries ``public_identifier``.
        """
        stmt = select(Entry).where(Entry.public_identifier == str(public_identifier))
        if for_update:
            # Re-read under the lock; a concurrent submission may have
            # completed the entry while we waited.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        entry = self.session.scalars(stmt).first()
        if entry is None:
            raise EntryNotFoundError(public_identifier)
        return entry

    def get_snapshot(self, public_identifier: str) -> EntrySnapshot:
        return entry_snapshot(self.get_model(public_identifier))
