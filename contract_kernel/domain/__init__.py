"""
Pure domain layer.

Value objects, enums and pure planning functions for the contract
workflow, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from contract_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from contract_kernel.domain.collaborators import (
    IdentityProvider,
    NotificationDispatcher,
    PermissionOracle,
)
from contract_kernel.domain.dtos import (
    Actor,
    AuditEntryRecord,
    CommandOutcome,
    ContractRecord,
    ContractTerms,
    ContractVersionRecord,
    Page,
    RejectionRemarks,
    RoleHistoryRecord,
    TermsUpdate,
)
from contract_kernel.domain.notifications import (
    Notification,
    NotificationType,
    plan_notifications,
)
from contract_kernel.domain.remarks import VisibleRemarks, visible_remarks
from contract_kernel.domain.roles import (
    DEFAULT_CAPABILITY_TABLE,
    FINANCE_ROLES,
    Capability,
    Role,
    has_capability,
)
from contract_kernel.domain.workflow import (
    CONTRACT_TRANSITIONS,
    DEFAULT_WORKFLOW_TEMPLATE,
    TERMINAL_STATUSES,
    Command,
    ContractStatus,
    StepAction,
    StepTemplate,
    Transition,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowTemplate,
    validate_workflow_template,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Collaborators
    "IdentityProvider",
    "NotificationDispatcher",
    "PermissionOracle",
    # DTOs
    "Actor",
    "AuditEntryRecord",
    "CommandOutcome",
    "ContractRecord",
    "ContractTerms",
    "ContractVersionRecord",
    "Page",
    "RejectionRemarks",
    "RoleHistoryRecord",
    "TermsUpdate",
    # Notifications
    "Notification",
    "NotificationType",
    "plan_notifications",
    # Remarks
    "VisibleRemarks",
    "visible_remarks",
    # Roles
    "Capability",
    "DEFAULT_CAPABILITY_TABLE",
    "FINANCE_ROLES",
    "Role",
    "has_capability",
    # Workflow
    "CONTRACT_TRANSITIONS",
    "Command",
    "ContractStatus",
    "DEFAULT_WORKFLOW_TEMPLATE",
    "StepAction",
    "StepTemplate",
    "TERMINAL_STATUSES",
    "Transition",
    "WorkflowDefinition",
    "WorkflowStep",
    "WorkflowTemplate",
    "validate_workflow_template",
]
