"""ORM models for the contract kernel."""

from contract_kernel.models.audit_entry import AuditAction, AuditEntry
from contract_kernel.models.contract import Contract, ContractVersionModel
from contract_kernel.models.role_history import RoleHistoryEntry
from contract_kernel.models.workflow_definition import (
    WorkflowDefinitionModel,
    WorkflowStepModel,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "Contract",
    "ContractVersionModel",
    "RoleHistoryEntry",
    "WorkflowDefinitionModel",
    "WorkflowStepModel",
]
