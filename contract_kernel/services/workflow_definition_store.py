"""
WorkflowDefinitionStore -- versioned, immutable approval templates.

Responsibility:
    Owns the single "currently active" workflow definition and the history
    of every definition version.  Contracts lock onto the definition that
    ``get_active`` returns at creation time.

Architecture position:
    Kernel > Services -- imperative shell.  Leaf dependency: it reads and
    writes only workflow_definitions and workflow_steps.

Invariants enforced:
    - At most one active definition (partial unique index
      uq_workflow_definitions_single_active).
    - Version numbers are monotonically increasing (max + 1, UNIQUE).
    - Persisted definitions and steps are never edited.  The only permitted
      change is the superseded definition's is_active true -> false.
    - The system is always bootstrapped: ``get_active`` persists the default
      definition when none is active.

Failure modes:
    - ValidationError: template does not describe the fixed approval
      pipeline.
    - WorkflowDefinitionNotFoundError: unknown id or version.
    - IntegrityError: a concurrent writer activated or bootstrapped a
      definition first.  The command service reports it as
      ConcurrentTransitionError; a retry reads the winner's definition.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from contract_kernel.domain.clock import Clock
from contract_kernel.domain.workflow import (
    DEFAULT_WORKFLOW_TEMPLATE,
    WorkflowDefinition,
    WorkflowTemplate,
    validate_workflow_template,
)
from contract_kernel.exceptions import WorkflowDefinitionNotFoundError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.workflow_definition import (
    WorkflowDefinitionModel,
    WorkflowStepModel,
)
from contract_kernel.services.base import BaseService

logger = get_logger("services.workflow_definition_store")

# Attribution for the definition persisted by the bootstrap path.
SYSTEM_ACTOR_ID = UUID(int=0)


class WorkflowDefinitionStore(BaseService):
    """
    Versioned workflow definitions with a single active pointer.

    Contract:
        Returns frozen ``WorkflowDefinition`` snapshots; ORM rows never
        leave the store.

    Guarantees:
        - ``create_version`` leaves exactly one active definition: the new one.
        - ``get_active`` never returns None.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does not audit definition changes in the contract ledger; the
          rows themselves are immutable and carry created_by/created_at.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_template: WorkflowTemplate | None = None,
    ):
        super().__init__(session, clock)
        self._default_template = default_template or DEFAULT_WORKFLOW_TEMPLATE

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _active_model(self) -> WorkflowDefinitionModel | None:
        return self.session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.is_active.is_(True)
            )
        ).scalar_one_or_none()

    def get_active(self, actor_id: UUID | None = None) -> WorkflowDefinition:
        """
        Return the active definition, persisting the default one if needed.

        Args:
            actor_id: Attribution for a bootstrap insert.  Defaults to the
                system actor.
        """
        model = self._active_model()
        if model is None:
            model = self._bootstrap(actor_id or SYSTEM_ACTOR_ID)
        return model.to_dto()

    def get(self, definition_id: UUID) -> WorkflowDefinition:
        model = self.session.get(WorkflowDefinitionModel, definition_id)
        if model is None:
            raise WorkflowDefinitionNotFoundError(str(definition_id))
        return model.to_dto()

    def get_by_version(self, version: int) -> WorkflowDefinition:
        model = self.session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.version == version
            )
        ).scalar_one_or_none()
        if model is None:
            raise WorkflowDefinitionNotFoundError(f"version {version}")
        return model.to_dto()

    def list_versions(self) -> list[WorkflowDefinition]:
        models = self.session.execute(
            select(WorkflowDefinitionModel).order_by(WorkflowDefinitionModel.version)
        ).scalars().all()
        return [m.to_dto() for m in models]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_version(
        self, template: WorkflowTemplate, actor_id: UUID,
    ) -> WorkflowDefinition:
        """
        Persist ``template`` as the next definition version and activate it.

        Preconditions:
            - ``template`` passes ``validate_workflow_template``.

        Postconditions:
            - New row with version = max + 1 and is_active = true.
            - The previously active row (if any) has is_active = false.
        """
        validate_workflow_template(template)

        previous = self._active_model()
        if previous is not None:
            previous.is_active = False
            # Deactivate before insert: the single-active index is checked per row.
            self.session.flush()

        model = self._insert(template, actor_id)

        logger.info(
            "workflow_definition_created",
            extra={
                "definition_id": str(model.id),
                "version": model.version,
                "superseded_version": previous.version if previous else None,
                "actor_id": str(actor_id),
            },
        )
        return model.to_dto()

    def _bootstrap(self, actor_id: UUID) -> WorkflowDefinitionModel:
        validate_workflow_template(self._default_template)
        model = self._insert(self._default_template, actor_id)
        logger.info(
            "workflow_definition_bootstrapped",
            extra={"definition_id": str(model.id), "version": model.version},
        )
        return model

    def _next_version(self) -> int:
        current = self.session.execute(
            select(func.max(WorkflowDefinitionModel.version))
        ).scalar_one()
        return (current or 0) + 1

    def _insert(
        self, template: WorkflowTemplate, actor_id: UUID,
    ) -> WorkflowDefinitionModel:
        now = self.clock.now()
        model = WorkflowDefinitionModel(
            name=template.name,
            description=template.description,
            version=self._next_version(),
            is_active=True,
            created_at=now,
            created_by_id=actor_id,
        )
        for step in template.steps:
            model.steps.append(
                WorkflowStepModel(
                    step_order=step.order,
                    name=step.name,
                    required_role=step.required_role.value,
                    action=step.action.value,
                    can_skip=step.can_skip,
                    is_active=step.is_active,
                    created_at=now,
                    created_by_id=actor_id,
                )
            )
        self.session.add(model)
        self.session.flush()
        return model
