"""
Config -> kernel bridges (``contract_config.bridges``).

Translate validated configuration dataclasses into the kernel's own input
types.  The kernel never imports ``contract_config``; callers pass the
bridged values in.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from contract_config.schema import ContractConfigurationSet, WorkflowDef
from contract_kernel.domain.roles import Capability, Role
from contract_kernel.domain.workflow import StepAction, StepTemplate, WorkflowTemplate


def to_workflow_template(workflow: WorkflowDef) -> WorkflowTemplate:
    return WorkflowTemplate(
        name=workflow.name,
        description=workflow.description,
        steps=tuple(
            StepTemplate(
                order=step.order,
                name=step.name,
                required_role=Role.parse(step.required_role),
                action=StepAction(step.action),
                can_skip=step.can_skip,
                is_active=step.is_active,
            )
            for step in workflow.steps
        ),
    )


def to_capability_table(
    config: ContractConfigurationSet,
) -> Mapping[Role, Mapping[str, bool]]:
    """Full role x capability table; capabilities not granted are False."""
    table = {}
    for role in Role:
        row = config.capabilities.get(role.value, {})
        table[role] = MappingProxyType({
            cap.value: bool(row.get(cap.value, False)) for cap in Capability
        })
    return MappingProxyType(table)
