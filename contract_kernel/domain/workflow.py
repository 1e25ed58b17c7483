"""
Contract workflow types (``contract_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the contract approval state machine: the status
and command enums, the transition table, and the versioned workflow
definition (ordered steps) that each contract is locked to.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``CONTRACT_TRANSITIONS`` is the only source of legal status moves.  The
  same pairs are mirrored by the status-graph database trigger.
* Terminal statuses (active, cancelled) have no outgoing edges.
* A workflow template is only accepted when its active steps describe
  the fixed pipeline: one drafting submit step, one finance review step,
  then one client final approval step (``validate_workflow_template``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from contract_kernel.domain.roles import FINANCE_ROLES, Role
from contract_kernel.exceptions import ValidationError


class ContractStatus(str, Enum):
    """Contract version lifecycle states."""

    DRAFT = "draft"
    PENDING_FINANCE = "pending_finance"
    PENDING_CLIENT = "pending_client"
    ACTIVE = "active"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Command(str, Enum):
    """Mutating commands accepted by the workflow engine."""

    CREATE_CONTRACT = "create_contract"
    EDIT_DRAFT = "edit_draft"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    AMEND = "amend"
    CANCEL = "cancel"
    SEND_REMARKS_TO_CLIENT = "send_remarks_to_client"


class StepAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REVIEW = "review"
    FINAL_APPROVE = "final_approve"


@dataclass(frozen=True)
class Transition:
    """One edge of the status graph.

    Contract: frozen, descriptive only.  ``guard`` documents the check the
    engine performs; the engine owns evaluation.
    """

    from_status: ContractStatus
    command: Command
    to_status: ContractStatus
    guard: str


CONTRACT_TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        ContractStatus.DRAFT, Command.SUBMIT, ContractStatus.PENDING_FINANCE,
        "actor is the creator",
    ),
    Transition(
        ContractStatus.DRAFT, Command.EDIT_DRAFT, ContractStatus.DRAFT,
        "actor is the creator",
    ),
    Transition(
        ContractStatus.PENDING_FINANCE, Command.APPROVE, ContractStatus.PENDING_CLIENT,
        "actor holds a reviewer role and is not the creator",
    ),
    Transition(
        ContractStatus.PENDING_FINANCE, Command.REJECT, ContractStatus.REJECTED,
        "actor holds a reviewer role, is not the creator, internal remarks given",
    ),
    Transition(
        ContractStatus.PENDING_CLIENT, Command.APPROVE, ContractStatus.ACTIVE,
        "actor is the contract's client",
    ),
    Transition(
        ContractStatus.PENDING_CLIENT, Command.REJECT, ContractStatus.REJECTED,
        "actor is the contract's client, remark given",
    ),
    Transition(
        ContractStatus.REJECTED, Command.AMEND, ContractStatus.DRAFT,
        "actor is the creator; opens version N+1",
    ),
    Transition(
        ContractStatus.REJECTED, Command.SEND_REMARKS_TO_CLIENT, ContractStatus.REJECTED,
        "finance internal remarks present, client remarks not yet sent",
    ),
    Transition(
        ContractStatus.PENDING_CLIENT, Command.CANCEL, ContractStatus.CANCELLED,
        "actor is the client or may cancel any contract",
    ),
    Transition(
        ContractStatus.REJECTED, Command.CANCEL, ContractStatus.CANCELLED,
        "actor is the client or may cancel any contract",
    ),
)

TERMINAL_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.ACTIVE,
    ContractStatus.CANCELLED,
})

# Status changes a single version row may undergo.  Amend does not appear:
# it supersedes the rejected row and opens a new draft row.
STATUS_GRAPH: frozenset[tuple[ContractStatus, ContractStatus]] = frozenset(
    (t.from_status, t.to_status)
    for t in CONTRACT_TRANSITIONS
    if t.from_status != t.to_status and t.command != Command.AMEND
)


def find_transition(status: ContractStatus, command: Command) -> Transition | None:
    for transition in CONTRACT_TRANSITIONS:
        if transition.from_status == status and transition.command == command:
            return transition
    return None


def is_legal_status_change(old: ContractStatus, new: ContractStatus) -> bool:
    return old == new or (old, new) in STATUS_GRAPH


# =========================================================================
# Workflow definitions
# =========================================================================


@dataclass(frozen=True)
class StepTemplate:
    """A step as supplied to ``WorkflowDefinitionStore.create_version``."""

    order: int
    name: str
    required_role: Role
    action: StepAction
    can_skip: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class WorkflowTemplate:
    """Unpersisted workflow definition content."""

    name: str
    steps: tuple[StepTemplate, ...]
    description: str | None = None


@dataclass(frozen=True)
class WorkflowStep:
    order: int
    name: str
    required_role: Role
    action: StepAction
    can_skip: bool
    is_active: bool


@dataclass(frozen=True)
class WorkflowDefinition:
    """A persisted, immutable workflow definition version.

    Contract: frozen snapshot of the stored row and its steps.  Contracts
    reference a definition by (id, version) and every guard for that
    contract reads from this snapshot.
    """

    id: UUID
    name: str
    version: int
    is_active: bool
    created_by_id: UUID | None
    created_at: datetime
    steps: tuple[WorkflowStep, ...] = field(default_factory=tuple)
    description: str | None = None

    @property
    def active_steps(self) -> tuple[WorkflowStep, ...]:
        return tuple(sorted(
            (s for s in self.steps if s.is_active), key=lambda s: s.order,
        ))

    @property
    def submit_step(self) -> WorkflowStep:
        return _single_step(self.active_steps, {StepAction.SUBMIT})

    @property
    def review_step(self) -> WorkflowStep:
        return _single_step(self.active_steps, {StepAction.APPROVE, StepAction.REVIEW})

    @property
    def client_step(self) -> WorkflowStep:
        return _single_step(self.active_steps, {StepAction.FINAL_APPROVE})

    def reviewer_roles(self) -> frozenset[Role]:
        """Roles admitted to the finance review stage.

        A step requiring ``finance`` also admits ``senior_finance``; a step
        requiring ``senior_finance`` admits only that role.
        """
        required = self.review_step.required_role
        if required == Role.FINANCE:
            return FINANCE_ROLES
        return frozenset({required})

    def step_for_status(self, status: ContractStatus) -> int:
        """The ``current_step`` pointer value for a version in ``status``."""
        if status == ContractStatus.DRAFT:
            return self.submit_step.order
        if status == ContractStatus.PENDING_FINANCE:
            return self.review_step.order
        if status == ContractStatus.PENDING_CLIENT:
            return self.client_step.order
        if status == ContractStatus.ACTIVE:
            return self.client_step.order + 1
        raise ValueError(f"No step pointer for status {status.value}")


def _single_step(
    steps: tuple[WorkflowStep, ...], actions: set[StepAction],
) -> WorkflowStep:
    matches = [s for s in steps if s.action in actions]
    if len(matches) != 1:
        raise ValueError(
            f"Workflow has {len(matches)} active steps with action in "
            f"{sorted(a.value for a in actions)}"
        )
    return matches[0]


def validate_workflow_template(template: WorkflowTemplate) -> None:
    """Reject templates that do not describe the fixed approval pipeline.

    Raises:
        ValidationError: On empty name, duplicate or non-positive step
            orders, or when the active steps are not exactly
            submit (legal) -> approve/review (finance role) ->
            final_approve (client), in that order.
    """
    if not template.name or not template.name.strip():
        raise ValidationError("name", "workflow name is required")
    if not template.steps:
        raise ValidationError("steps", "at least one step is required")

    orders = [s.order for s in template.steps]
    if any(o < 1 for o in orders):
        raise ValidationError("steps", "step order is 1-based")
    if len(set(orders)) != len(orders):
        raise ValidationError("steps", "step orders must be unique")

    active = sorted((s for s in template.steps if s.is_active), key=lambda s: s.order)
    shape = [s.action for s in active]
    if len(shape) != 3 or shape[0] != StepAction.SUBMIT or shape[2] != StepAction.FINAL_APPROVE:
        raise ValidationError(
            "steps",
            "active steps must be submit, approve or review, final_approve",
        )
    if shape[1] not in (StepAction.APPROVE, StepAction.REVIEW):
        raise ValidationError("steps", "second active step must be approve or review")

    submit, review, final = active
    if submit.required_role != Role.LEGAL:
        raise ValidationError("steps", "submit step must require the legal role")
    if review.required_role not in FINANCE_ROLES:
        raise ValidationError("steps", "review step must require a finance role")
    if final.required_role != Role.CLIENT:
        raise ValidationError("steps", "final approval step must require the client role")


DEFAULT_WORKFLOW_TEMPLATE = WorkflowTemplate(
    name="Standard Approval Workflow",
    description="Default 3-stage approval: Legal -> Finance -> Client",
    steps=(
        StepTemplate(1, "Legal Submission", Role.LEGAL, StepAction.SUBMIT),
        StepTemplate(2, "Finance Review", Role.FINANCE, StepAction.APPROVE),
        StepTemplate(3, "Client Approval", Role.CLIENT, StepAction.FINAL_APPROVE),
    ),
)
