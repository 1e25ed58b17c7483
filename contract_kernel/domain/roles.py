"""
Roles and capabilities (``contract_kernel.domain.roles``).

Responsibility
--------------
Defines the closed set of actor roles and command capabilities, and the
built-in capability table used when no configuration overrides it.

Architecture position
---------------------
**Kernel domain layer** -- pure values.  ZERO I/O.

Invariants enforced
-------------------
* Roles are a validated enum; free-form role strings are rejected at the
  edges (``Role.parse``).
* A capability table maps every role to every capability explicitly.
  Missing entries are treated as ``False`` by ``has_capability``.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from contract_kernel.exceptions import ValidationError


class Role(str, Enum):
    """Actor roles known to the workflow."""

    SUPER_ADMIN = "super_admin"
    LEGAL = "legal"
    FINANCE = "finance"
    SENIOR_FINANCE = "senior_finance"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError("role", f"unknown role {value!r}") from None


# Roles that may act in the finance review stage.
FINANCE_ROLES: frozenset[Role] = frozenset({Role.FINANCE, Role.SENIOR_FINANCE})


class Capability(str, Enum):
    """Named permissions consulted before each command."""

    CREATE_CONTRACT = "create_contract"
    EDIT_DRAFT = "edit_draft"
    SUBMIT_CONTRACT = "submit_contract"
    APPROVE_CONTRACT = "approve_contract"
    REJECT_CONTRACT = "reject_contract"
    AMEND_CONTRACT = "amend_contract"
    CANCEL_CONTRACT = "cancel_contract"
    CANCEL_ANY_CONTRACT = "cancel_any_contract"
    SEND_REMARKS_TO_CLIENT = "send_remarks_to_client"
    VIEW_ALL_CONTRACTS = "view_all_contracts"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    CONFIGURE_WORKFLOW = "configure_workflow"
    MANAGE_ROLES = "manage_roles"


def _row(*granted: Capability) -> Mapping[str, bool]:
    return MappingProxyType({cap.value: cap in granted for cap in Capability})


DEFAULT_CAPABILITY_TABLE: Mapping[Role, Mapping[str, bool]] = MappingProxyType({
    Role.SUPER_ADMIN: _row(
        Capability.CANCEL_ANY_CONTRACT,
        Capability.SEND_REMARKS_TO_CLIENT,
        Capability.VIEW_ALL_CONTRACTS,
        Capability.VIEW_AUDIT_LOGS,
        Capability.CONFIGURE_WORKFLOW,
        Capability.MANAGE_ROLES,
    ),
    Role.LEGAL: _row(
        Capability.CREATE_CONTRACT,
        Capability.EDIT_DRAFT,
        Capability.SUBMIT_CONTRACT,
        Capability.AMEND_CONTRACT,
        Capability.SEND_REMARKS_TO_CLIENT,
    ),
    Role.FINANCE: _row(
        Capability.APPROVE_CONTRACT,
        Capability.REJECT_CONTRACT,
        Capability.VIEW_ALL_CONTRACTS,
    ),
    Role.SENIOR_FINANCE: _row(
        Capability.APPROVE_CONTRACT,
        Capability.REJECT_CONTRACT,
        Capability.VIEW_ALL_CONTRACTS,
        Capability.VIEW_AUDIT_LOGS,
    ),
    Role.CLIENT: _row(
        Capability.APPROVE_CONTRACT,
        Capability.REJECT_CONTRACT,
        Capability.CANCEL_CONTRACT,
    ),
})


def has_capability(capabilities: Mapping[str, bool], capability: Capability) -> bool:
    return bool(capabilities.get(capability.value, False))
