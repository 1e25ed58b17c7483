"""
Kernel Invariants Contract.

These invariants are structural law. They are enforced in the workflow
engine, in ORM listeners and in database constraints and triggers. No
capability table, workflow definition or configuration set may override
them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across ContractWorkflowEngine, AuditLedger,
WorkflowDefinitionStore, contract_kernel.db.immutability and the SQL
trigger files.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    SINGLE_CURRENT_VERSION = "single_current_version"
    """Exactly one ContractVersion per contract has is_current = true.
    Enforced by the engine and a partial unique index."""

    CONTIGUOUS_VERSIONS = "contiguous_versions"
    """Version numbers run 1..N with no gaps. Enforced by Amend, which
    only ever writes current_version + 1, and UNIQUE(contract_id,
    version_number)."""

    WORKFLOW_LOCK = "workflow_lock"
    """A contract's workflow_definition_id and workflow_version never
    change after creation. Enforced by ORM listener and DB trigger."""

    SINGLE_ACTIVE_WORKFLOW = "single_active_workflow"
    """At most one WorkflowDefinition is active. Enforced by a partial
    unique index."""

    AUDIT_APPEND_ONLY = "audit_append_only"
    """Audit entries are never updated or deleted. Enforced by ORM
    listener and DB trigger, and made tamper-evident by the hash chain."""

    STATUS_GRAPH = "status_graph"
    """Version status only moves along the published transition graph.
    Enforced by conditional writes in the engine and a DB trigger."""

    ATOMIC_AUDIT = "atomic_audit"
    """Every mutation is committed together with exactly one audit entry,
    or not at all. Enforced by ContractCommandService transaction scope."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "contract_services",
    "contract_config",
)
