"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

An approval is only worth something if nobody can quietly rewrite it.
Workflow definitions that contracts are locked to, the audit trail, and
role history must never change once written; a contract's locked
workflow reference and a superseded version must never change either.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/<dialect>/*.sql (database triggers)
    - Catches raw SQL, bulk UPDATE statements, direct console access

Both layers enforce the SAME rules.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | Rule
------------------------|----------------------------------------------------
AuditEntry              | No UPDATE, no DELETE
RoleHistoryEntry        | No UPDATE, no DELETE
WorkflowStepModel       | No UPDATE, no DELETE
WorkflowDefinitionModel | Only is_active true -> false; no DELETE
Contract                | Locked fields never change; no DELETE
ContractVersionModel    | Superseded rows frozen; terms frozen after draft;
                        | decision fields write-once; no DELETE

===============================================================================
USAGE
===============================================================================

    from contract_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from contract_kernel.exceptions import ImmutableResourceError
from contract_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Written once at contract creation.
LOCKED_CONTRACT_FIELDS = frozenset({
    "contract_number",
    "client_id",
    "created_by_id",
    "created_at",
    "workflow_definition_id",
    "workflow_version",
})

VERSION_IDENTITY_FIELDS = frozenset({
    "contract_id",
    "version_number",
    "created_by_id",
    "created_at",
})

VERSION_TERM_FIELDS = frozenset({
    "name",
    "counterpart_email",
    "effective_date",
    "amount",
})

# Once non-null these never change.
VERSION_WRITE_ONCE_FIELDS = frozenset({
    "submitted_at",
    "approved_by_finance_id",
    "approved_by_finance_at",
    "approved_by_client_id",
    "approved_by_client_at",
    "rejected_by_id",
    "rejected_at",
    "remarks_internal",
    "remarks_client",
    "remarks_client_sent_at",
    "client_remark",
    "rejection_remarks",
    "cancelled_by_id",
    "cancelled_at",
    "cancellation_reason",
})


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutableResourceError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _old_value(target, key: str):
    """Value as loaded from the database, before pending changes."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return None


# =============================================================================
# Always-immutable rows
# =============================================================================


def _check_audit_entry_update(mapper, connection, target):
    _block("AuditEntry", target, "UPDATE", "Audit entries are immutable")


def _check_audit_entry_delete(mapper, connection, target):
    _block("AuditEntry", target, "DELETE", "Audit entries cannot be deleted")


def _check_role_history_update(mapper, connection, target):
    _block("RoleHistoryEntry", target, "UPDATE", "Role history is append-only")


def _check_role_history_delete(mapper, connection, target):
    _block("RoleHistoryEntry", target, "DELETE", "Role history is append-only")


def _check_workflow_step_update(mapper, connection, target):
    _block("WorkflowStep", target, "UPDATE", "Workflow steps are immutable")


def _check_workflow_step_delete(mapper, connection, target):
    _block("WorkflowStep", target, "DELETE", "Workflow steps cannot be deleted")


# =============================================================================
# Workflow definitions
# =============================================================================


def _check_workflow_definition_update(mapper, connection, target):
    """
    Only deactivation is permitted.

    WorkflowDefinitionStore.create_version flips the superseded definition
    from active to inactive.  Every other change, including re-activation,
    is blocked.
    """
    for key in _changed_fields(target):
        if key != "is_active":
            _block(
                "WorkflowDefinition", target, "UPDATE",
                f"Cannot modify field '{key}' on a workflow definition", key,
            )
    if target.is_active and _old_value(target, "is_active") is False:
        _block(
            "WorkflowDefinition", target, "UPDATE",
            "A deactivated workflow definition cannot be re-activated", "is_active",
        )


def _check_workflow_definition_delete(mapper, connection, target):
    _block("WorkflowDefinition", target, "DELETE", "Workflow definitions cannot be deleted")


# =============================================================================
# Contracts and versions
# =============================================================================


def _check_contract_update(mapper, connection, target):
    for key in _changed_fields(target):
        if key in LOCKED_CONTRACT_FIELDS:
            _block(
                "Contract", target, "UPDATE",
                f"Cannot modify locked field '{key}' on a contract", key,
            )


def _check_contract_delete(mapper, connection, target):
    _block("Contract", target, "DELETE", "Contracts cannot be deleted")


def _check_contract_version_update(mapper, connection, target):
    changed = _changed_fields(target)
    if not changed:
        return

    if _old_value(target, "is_current") is False:
        _block(
            "ContractVersion", target, "UPDATE",
            "Superseded contract versions are immutable", changed[0],
        )

    old_status = _old_value(target, "status")
    for key in changed:
        if key in VERSION_IDENTITY_FIELDS:
            _block(
                "ContractVersion", target, "UPDATE",
                f"Cannot modify identity field '{key}'", key,
            )
        if key in VERSION_TERM_FIELDS and old_status != "draft":
            _block(
                "ContractVersion", target, "UPDATE",
                f"Terms are frozen once a version leaves draft ('{key}')", key,
            )
        if key in VERSION_WRITE_ONCE_FIELDS and _old_value(target, key) is not None:
            _block(
                "ContractVersion", target, "UPDATE",
                f"Field '{key}' is write-once", key,
            )


def _check_contract_version_delete(mapper, connection, target):
    _block("ContractVersion", target, "DELETE", "Contract versions cannot be deleted")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from contract_kernel.models.audit_entry import AuditEntry
    from contract_kernel.models.contract import Contract, ContractVersionModel
    from contract_kernel.models.role_history import RoleHistoryEntry
    from contract_kernel.models.workflow_definition import (
        WorkflowDefinitionModel,
        WorkflowStepModel,
    )

    return (
        (AuditEntry, "before_update", _check_audit_entry_update),
        (AuditEntry, "before_delete", _check_audit_entry_delete),
        (RoleHistoryEntry, "before_update", _check_role_history_update),
        (RoleHistoryEntry, "before_delete", _check_role_history_delete),
        (WorkflowStepModel, "before_update", _check_workflow_step_update),
        (WorkflowStepModel, "before_delete", _check_workflow_step_delete),
        (WorkflowDefinitionModel, "before_update", _check_workflow_definition_update),
        (WorkflowDefinitionModel, "before_delete", _check_workflow_definition_delete),
        (Contract, "before_update", _check_contract_update),
        (Contract, "before_delete", _check_contract_delete),
        (ContractVersionModel, "before_update", _check_contract_version_update),
        (ContractVersionModel, "before_delete", _check_contract_version_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Must be called once during application initialization, after models
    are importable and before any database operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate immutability
    rules on purpose (for example to prove the database triggers or the
    hash chain catch what the ORM layer would have blocked).
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
