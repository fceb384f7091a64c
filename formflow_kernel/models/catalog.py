"""
Module: formflow_kernel.models.catalog
Responsibility: Reference catalogs that draft graphs point into: field
    types, input (validation) rules, and transition actions.
Architecture position: Kernel > Models.

Each catalog row carries a machine code that selects behaviour from a
registry: ``FieldType.kind`` picks the value normaliser and marks email
fields, ``InputRule.code`` picks the validator, ``Action.code`` picks the
action handler.  Display names are free text.
"""

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from formflow_kernel.db.base import Base
from formflow_kernel.domain.field_values import FieldKind


class FieldType(Base):
    """Catalog entry describing a kind of input (e.g. "Email Input")."""

    __tablename__ = "field_types"

    __table_args__ = (
        UniqueConstraint("name", name="uq_field_type_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    kind: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=FieldKind.TEXT.value,
    )

    @property
    def is_email(self) -> bool:
        return self.kind == FieldKind.EMAIL.value

    def __repr__(self) -> str:
        return f"<FieldType {self.name} ({self.kind})>"


class InputRule(Base):
    """Catalog entry describing a validation rule type."""

    __tablename__ = "input_rules"

    __table_args__ = (
        UniqueConstraint("name", name="uq_input_rule_name"),
        Index("idx_input_rule_code", "code"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<InputRule {self.code}>"


class Action(Base):
    """Catalog entry describing a side effect a transition may trigger."""

    __tablename__ = "actions"

    __table_args__ = (
        UniqueConstraint("name", name="uq_action_name"),
        Index("idx_action_code", "code"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Action {self.code}>"
