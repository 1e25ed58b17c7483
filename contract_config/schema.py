"""
Configuration Schema (``contract_config.schema``).

Responsibility
--------------
Frozen dataclasses describing a contract workflow configuration set: the
role -> capability table consulted by the permission oracle and the
workflow template used to bootstrap the first workflow definition.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Populated by
``contract_config.loader``, checked by ``contract_config.validator`` and
turned into kernel inputs by ``contract_config.bridges``.

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``.
* Role, capability and step action names are kept as plain strings here;
  the validator checks them against the kernel enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StepDef:
    """One step of the bootstrap workflow template."""

    order: int
    name: str
    required_role: str
    action: str
    can_skip: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class WorkflowDef:
    name: str
    steps: tuple[StepDef, ...]
    description: str | None = None


@dataclass(frozen=True)
class NotificationSettings:
    """How committed commands hand notifications to the dispatcher."""

    async_dispatch: bool = False
    max_workers: int = 2


@dataclass(frozen=True)
class ContractConfigurationSet:
    """
    A complete, versioned configuration set.

    Contract
    --------
    * ``checksum`` is the SHA-256 of the canonical JSON of the source YAML.
    * ``capabilities`` maps role name -> capability name -> granted.
    """

    config_id: str
    version: int
    capabilities: dict[str, dict[str, bool]]
    default_workflow: WorkflowDef
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    description: str | None = None
    checksum: str = ""
