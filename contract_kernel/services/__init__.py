"""Services for the contract kernel (write side)."""

from contract_kernel.services.audit_ledger import AuditLedger
from contract_kernel.services.contract_command_service import ContractCommandService
from contract_kernel.services.contract_workflow_engine import ContractWorkflowEngine
from contract_kernel.services.role_history_service import RoleHistoryService
from contract_kernel.services.workflow_definition_store import WorkflowDefinitionStore

__all__ = [
    "AuditLedger",
    "ContractCommandService",
    "ContractWorkflowEngine",
    "RoleHistoryService",
    "WorkflowDefinitionStore",
]
