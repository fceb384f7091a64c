"""
Module: formflow_kernel.models.stage
Responsibility: ORM persistence for the node side of a form version's graph:
    stages, their sections and fields, field validation rules, and the
    per-stage access rule.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling model modules only.

Invariants enforced:
    - Every row belongs transitively to exactly one FormVersion and is
      deleted with it (delete-orphan cascades, ON DELETE CASCADE keys).
    - At most one StageAccessRule per stage (uq_stage_access_rule_stage).
    - Condition and props blobs are stored exactly as resolved by the draft
      rewriter: either a JSON structure or the JSON-encoded text the client
      supplied.
    - StageAccessRule.email_field_id is NOT a foreign key: a carried-over
      real id that no longer maps is kept verbatim, as the rewriter's token
      policy requires.

Failure modes:
    - IntegrityError if a field references a field type / input rule that
      does not exist (the rewriter checks catalogs before flushing).
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from formflow_kernel.models.catalog import FieldType, InputRule
    from formflow_kernel.models.form import FormVersion


class Stage(Base):
    """A step in a form's workflow."""

    __tablename__ = "stages"

    __table_args__ = (
        Index("idx_stage_version", "form_version_id"),
    )

    form_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("form_versions.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_initial: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Payload order
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    visibility_condition: Mapped[Any] = mapped_column(JSON, nullable=True)

    form_version: Mapped["FormVersion"] = relationship(
        "FormVersion", back_populates="stages"
    )

    sections: Mapped[list["Section"]] = relationship(
        "Section",
        back_populates="stage",
        cascade="all, delete-orphan",
        order_by="Section.order",
        lazy="selectin",
    )

    access_rule: Mapped["StageAccessRule | None"] = relationship(
        "StageAccessRule",
        back_populates="stage",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )

    @property
    def fields(self) -> list["Field"]:
        return [f for section in self.sections for f in section.fields]

    def __repr__(self) -> str:
        marker = " initial" if self.is_initial else ""
        return f"<Stage {self.id}: {self.name}{marker}>"


class Section(Base):
    """Ordered group of fields within a stage."""

    __tablename__ = "sections"

    __table_args__ = (
        Index("idx_section_stage", "stage_id"),
    )

    stage_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    order: Mapped[int] = mapped_column(nullable=False, default=0)

    visibility_condition: Mapped[Any] = mapped_column(JSON, nullable=True)

    stage: Mapped["Stage"] = relationship("Stage", back_populates="sections")

    fields: Mapped[list["Field"]] = relationship(
        "Field",
        back_populates="section",
        cascade="all, delete-orphan",
        order_by="Field.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Section {self.id}: {self.name} order={self.order}>"


class Field(Base):
    """A single input within a section."""

    __tablename__ = "fields"

    __table_args__ = (
        Index("idx_field_section", "section_id"),
    )

    section_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    )

    field_type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("field_types.id"),
        nullable=False,
    )

    label: Mapped[str] = mapped_column(String(255), nullable=False)

    placeholder: Mapped[str | None] = mapped_column(String(255), nullable=True)

    helper_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    visibility_condition: Mapped[Any] = mapped_column(JSON, nullable=True)

    section: Mapped["Section"] = relationship("Section", back_populates="fields")

    field_type: Mapped["FieldType"] = relationship("FieldType", lazy="selectin")

    rules: Mapped[list["FieldRule"]] = relationship(
        "FieldRule",
        back_populates="field",
        cascade="all, delete-orphan",
        order_by="FieldRule.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Field {self.id}: {self.label}>"


class FieldRule(Base):
    """Binds a field to a validation rule from the input-rule catalog."""

    __tablename__ = "field_rules"

    __table_args__ = (
        Index("idx_field_rule_field", "field_id"),
    )

    field_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fields.id", ondelete="CASCADE"),
        nullable=False,
    )

    input_rule_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("input_rules.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    rule_props: Mapped[Any] = mapped_column(JSON, nullable=True)

    rule_condition: Mapped[Any] = mapped_column(JSON, nullable=True)

    field: Mapped["Field"] = relationship("Field", back_populates="rules")

    input_rule: Mapped["InputRule"] = relationship("InputRule", lazy="selectin")

    def __repr__(self) -> str:
        return f"<FieldRule {self.id} field={self.field_id} rule={self.input_rule_id}>"


class StageAccessRule(Base):
    """Who may view or act on a stage."""

    __tablename__ = "stage_access_rules"

    __table_args__ = (
        UniqueConstraint("stage_id", name="uq_stage_access_rule_stage"),
    )

    stage_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=False,
    )

    # External user / role / permission ids, compared as strings
    allowed_users: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    allowed_roles: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    allowed_permissions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    allow_authenticated_users: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    email_field_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    stage: Mapped["Stage"] = relationship("Stage", back_populates="access_rule")

    @property
    def is_unrestricted(self) -> bool:
        """True when the rule names nobody and does not require sign-in."""
        return (
            not self.allowed_users
            and not self.allowed_roles
            and not self.allowed_permissions
            and not self.allow_authenticated_users
            and self.email_field_id is None
        )

    def __repr__(self) -> str:
        return f"<StageAccessRule stage={self.stage_id}>"
