"""
Module: formflow_kernel.models.entry
Responsibility: ORM persistence for end-user submissions (entries) and the
    values stored against them.
Architecture position: Kernel > Models.

Invariants enforced:
    - public_identifier is unique (uq_entry_public_identifier).
    - One value per (entry, field) (uq_entry_value_field); later stages
      upsert rather than append.
    - current_stage_id is nulled if its stage row is ever deleted; while the
      version stays published its graph is immutable, so this only happens
      after a version has been demoted to draft and rewritten.
    - EntryValue.field_id is not a foreign key so submitted values outlive
      a later rewrite of a demoted version.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formflow_kernel.db.base import Base, TimestampedBase, UUIDString


class Entry(TimestampedBase):
    """One end user's submission against a specific form version."""

    __tablename__ = "entries"

    __table_args__ = (
        UniqueConstraint("public_identifier", name="uq_entry_public_identifier"),
        Index("idx_entry_version", "form_version_id"),
    )

    form_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("form_versions.id", ondelete="CASCADE"),
        nullable=False,
    )

    current_stage_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    public_identifier: Mapped[str] = mapped_column(String(64), nullable=False)

    # External user id; None for guest submissions
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    values: Mapped[list["EntryValue"]] = relationship(
        "EntryValue",
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def values_by_field(self) -> dict[str, Any]:
        return {str(v.field_id): v.value for v in self.values}

    def __repr__(self) -> str:
        state = "complete" if self.is_complete else f"stage={self.current_stage_id}"
        return f"<Entry {self.public_identifier} {state}>"


class EntryValue(Base):
    """Value stored for one field of one entry."""

    __tablename__ = "entry_values"

    __table_args__ = (
        UniqueConstraint("entry_id", "field_id", name="uq_entry_value_field"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entries.id", ondelete="CASCADE"),
        nullable=False,
    )

    field_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    entry: Mapped["Entry"] = relationship("Entry", back_populates="values")

    def __repr__(self) -> str:
        return f"<EntryValue entry={self.entry_id} field={self.field_id}>"
