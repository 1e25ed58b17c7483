"""
Configuration Validator (``contract_config.validator``).

Responsibility
--------------
Checks a ``ContractConfigurationSet`` before it is handed to the kernel.

Invariants enforced
-------------------
* Every role and capability named in the table is known to the kernel.
* Every kernel role has a row (an omitted role would silently lose all
  permissions).
* The default workflow describes the fixed approval pipeline.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the set MUST NOT be used.
* Warnings -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from contract_config.bridges import to_workflow_template
from contract_config.schema import ContractConfigurationSet
from contract_kernel.domain.roles import Capability, Role
from contract_kernel.domain.workflow import StepAction, validate_workflow_template
from contract_kernel.exceptions import ValidationError

_ROLES = {r.value for r in Role}
_CAPABILITIES = {c.value for c in Capability}
_ACTIONS = {a.value for a in StepAction}


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


def validate_configuration(config: ContractConfigurationSet) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if config.version < 1:
        result.errors.append(f"version must be >= 1, got {config.version}")

    for role, row in sorted(config.capabilities.items()):
        if role not in _ROLES:
            result.errors.append(f"unknown role in capabilities: {role!r}")
        for cap in sorted(row):
            if cap not in _CAPABILITIES:
                result.errors.append(f"unknown capability for role {role!r}: {cap!r}")

    for role in sorted(_ROLES - set(config.capabilities)):
        result.errors.append(f"role {role!r} has no capability row")

    for role, row in sorted(config.capabilities.items()):
        if role in _ROLES and not any(row.values()):
            result.warnings.append(f"role {role!r} is granted no capabilities")

    bad_step = False
    for step in config.default_workflow.steps:
        if step.required_role not in _ROLES:
            result.errors.append(
                f"workflow step {step.order} requires unknown role {step.required_role!r}"
            )
            bad_step = True
        if step.action not in _ACTIONS:
            result.errors.append(
                f"workflow step {step.order} has unknown action {step.action!r}"
            )
            bad_step = True

    if not bad_step:
        try:
            validate_workflow_template(to_workflow_template(config.default_workflow))
        except ValidationError as exc:
            result.errors.append(f"default workflow: {exc.reason}")

    if config.notifications.max_workers < 1:
        result.errors.append("notifications.max_workers must be >= 1")

    return result
