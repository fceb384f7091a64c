"""
Module: formflow_kernel.models.form
Responsibility: ORM persistence for logical forms and their versioned
    snapshots.  A FormVersion is the aggregate root of the stage graph:
    stages (with sections, fields, rules and access rules) and stage
    transitions (with actions) all hang off it.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling model modules only.

Invariants enforced:
    - version_number is unique per form (uq_form_version_number) and is
      assigned as max(existing) + 1 by FormVersionService.
    - Deleting a version deletes its whole graph (ORM delete-orphan cascade
      backed by ON DELETE CASCADE foreign keys).
    - revision is the optimistic concurrency token of a draft; every rewrite
      increments it.
    - Draft-only mutability is enforced by FormVersionService, not here.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formflow_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from formflow_kernel.models.stage import Stage
    from formflow_kernel.models.transition import StageTransition


class VersionStatus(str, Enum):
    """Lifecycle of a form version."""

    DRAFT = "draft"
    PUBLISHED = "published"


class Form(TimestampedBase):
    """A named, versionable workflow form definition."""

    __tablename__ = "forms"

    __table_args__ = (
        Index("idx_form_archived", "is_archived"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    versions: Mapped[list["FormVersion"]] = relationship(
        "FormVersion",
        back_populates="form",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FormVersion.version_number",
    )

    def __repr__(self) -> str:
        return f"<Form {self.id}: {self.name}>"


class FormVersion(TimestampedBase):
    """
    One draft-or-published snapshot of a form's stage graph.

    Guarantees:
        - (form_id, version_number) is unique.
        - status is one of VersionStatus.
        - stages and transitions are loaded in payload order (position).
    """

    __tablename__ = "form_versions"

    __table_args__ = (
        UniqueConstraint("form_id", "version_number", name="uq_form_version_number"),
        CheckConstraint(
            "status IN ('draft', 'published')",
            name="chk_form_version_status",
        ),
        Index("idx_form_version_status", "form_id", "status"),
    )

    form_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
    )

    version_number: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VersionStatus.DRAFT.value,
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    revision: Mapped[int] = mapped_column(nullable=False, default=0)

    form: Mapped["Form"] = relationship("Form", back_populates="versions")

    stages: Mapped[list["Stage"]] = relationship(
        "Stage",
        back_populates="form_version",
        cascade="all, delete-orphan",
        order_by="Stage.position",
        lazy="selectin",
    )

    transitions: Mapped[list["StageTransition"]] = relationship(
        "StageTransition",
        back_populates="form_version",
        cascade="all, delete-orphan",
        order_by="StageTransition.position",
        lazy="selectin",
    )

    @property
    def is_draft(self) -> bool:
        return self.status == VersionStatus.DRAFT.value

    @property
    def is_published(self) -> bool:
        return self.status == VersionStatus.PUBLISHED.value

    @property
    def initial_stage(self) -> "Stage | None":
        for stage in self.stages:
            if stage.is_initial:
                return stage
        return None

    def __repr__(self) -> str:
        return (
            f"<FormVersion {self.id} form={self.form_id} "
            f"v{self.version_number} status={self.status}>"
        )
