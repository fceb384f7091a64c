"""
Module: formflow_kernel.models.transition
Responsibility: ORM persistence for the edge side of a form version's graph:
    stage transitions and the catalog actions they trigger.
Architecture position: Kernel > Models.

Invariants enforced:
    - A transition either points at a stage (to_stage_id) or is terminal
      (to_complete).  Endpoints are nulled when the referenced stage row is
      deleted.
    - Actions run in position order when the transition fires.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from formflow_kernel.models.catalog import Action
    from formflow_kernel.models.form import FormVersion


class StageTransition(Base):
    """A guarded edge advancing an entry to another stage or to completion."""

    __tablename__ = "stage_transitions"

    __table_args__ = (
        Index("idx_transition_version", "form_version_id"),
        Index("idx_transition_from_stage", "from_stage_id"),
    )

    form_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("form_versions.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_stage_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="SET NULL"),
        nullable=True,
    )

    to_stage_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="SET NULL"),
        nullable=True,
    )

    to_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    label: Mapped[str] = mapped_column(String(255), nullable=False)

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    condition: Mapped[Any] = mapped_column(JSON, nullable=True)

    form_version: Mapped["FormVersion"] = relationship(
        "FormVersion", back_populates="transitions"
    )

    actions: Mapped[list["StageTransitionAction"]] = relationship(
        "StageTransitionAction",
        back_populates="transition",
        cascade="all, delete-orphan",
        order_by="StageTransitionAction.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        target = "complete" if self.to_complete else self.to_stage_id
        return f"<StageTransition {self.id}: {self.from_stage_id} -> {target}>"


class StageTransitionAction(Base):
    """Binds a catalog action, with its props, to a transition."""

    __tablename__ = "stage_transition_actions"

    __table_args__ = (
        Index("idx_transition_action_transition", "stage_transition_id"),
    )

    stage_transition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stage_transitions.id", ondelete="CASCADE"),
        nullable=False,
    )

    action_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("actions.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    action_props: Mapped[Any] = mapped_column(JSON, nullable=True)

    transition: Mapped["StageTransition"] = relationship(
        "StageTransition", back_populates="actions"
    )

    action: Mapped["Action"] = relationship("Action", lazy="selectin")

    def __repr__(self) -> str:
        return f"<StageTransitionAction {self.id} action={self.action_id}>"
