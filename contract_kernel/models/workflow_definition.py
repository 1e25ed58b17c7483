"""
Module: contract_kernel.models.workflow_definition
Responsibility: ORM persistence for versioned workflow definitions and their
    ordered steps.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value types only.

Invariants enforced:
    - At most one active definition: partial unique index
      uq_workflow_definitions_single_active on is_active WHERE is_active.
    - Version numbers are unique and positive.
    - Definitions are immutable once persisted except for the single
      is_active true -> false flip when superseded (ORM listener + trigger).
    - Steps are never updated or deleted (ORM listener + trigger).

Failure modes:
    - IntegrityError when two writers race to activate a definition or to
      claim the same version number.
    - ImmutableResourceError on any other UPDATE/DELETE attempt.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contract_kernel.db.base import TrackedBase, UUIDString
from contract_kernel.domain.roles import Role
from contract_kernel.domain.workflow import (
    StepAction,
    WorkflowDefinition,
    WorkflowStep,
)


class WorkflowDefinitionModel(TrackedBase):
    """
    Persistent workflow definition version.

    Contract:
        Rows are inserted by WorkflowDefinitionStore.create_version (or the
        default bootstrap in get_active) and never edited afterwards, apart
        from deactivation.

    Guarantees:
        - version is unique across all definitions.
        - at most one row has is_active = true.
    """

    __tablename__ = "workflow_definitions"

    __table_args__ = (
        UniqueConstraint("version", name="uq_workflow_definitions_version"),
        CheckConstraint("version >= 1", name="ck_workflow_definitions_version_positive"),
        Index(
            "uq_workflow_definitions_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    steps: Mapped[list[WorkflowStepModel]] = relationship(
        back_populates="definition",
        order_by="WorkflowStepModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowDefinition {self.name!r} v{self.version} active={self.is_active}>"

    def to_dto(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=self.id,
            name=self.name,
            description=self.description,
            version=self.version,
            is_active=self.is_active,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
            steps=tuple(step.to_dto() for step in self.steps),
        )


class WorkflowStepModel(TrackedBase):
    """One ordered step of a workflow definition."""

    __tablename__ = "workflow_steps"

    __table_args__ = (
        UniqueConstraint(
            "definition_id", "step_order", name="uq_workflow_steps_definition_order",
        ),
        CheckConstraint("step_order >= 1", name="ck_workflow_steps_order_positive"),
        CheckConstraint(
            "action IN ('submit', 'approve', 'review', 'final_approve')",
            name="ck_workflow_steps_valid_action",
        ),
        CheckConstraint(
            "required_role IN ('super_admin', 'legal', 'finance', "
            "'senior_finance', 'client')",
            name="ck_workflow_steps_valid_role",
        ),
    )

    definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id"),
        nullable=False,
        index=True,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    required_role: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    can_skip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    definition: Mapped[WorkflowDefinitionModel] = relationship(back_populates="steps")

    def to_dto(self) -> WorkflowStep:
        return WorkflowStep(
            order=self.step_order,
            name=self.name,
            required_role=Role(self.required_role),
            action=StepAction(self.action),
            can_skip=self.can_skip,
            is_active=self.is_active,
        )
