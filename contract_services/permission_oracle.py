"""
contract_services.permission_oracle -- capability lookup for workflow commands.

Responsibility:
    Implements the kernel's ``PermissionOracle`` protocol over an explicit
    role x capability table.  The table comes from configuration
    (``from_config``) or the kernel's built-in default.

Architecture position:
    Services layer.  Consumes ``ContractConfigurationSet`` from
    contract_config; consulted by ContractWorkflowEngine before every
    mutating command.

Invariants:
    - Keyed by the validated ``Role`` enum, never by free-form strings.
    - Every row names every capability; anything not granted is False.
"""

from __future__ import annotations

from typing import Mapping

from contract_config.bridges import to_capability_table
from contract_config.schema import ContractConfigurationSet
from contract_kernel.domain.roles import DEFAULT_CAPABILITY_TABLE, Capability, Role
from contract_kernel.logging_config import get_logger

logger = get_logger("services.permission_oracle")


class CapabilityTableOracle:
    """PermissionOracle backed by a static capability table."""

    def __init__(self, table: Mapping[Role, Mapping[str, bool]] | None = None):
        self._table = table if table is not None else DEFAULT_CAPABILITY_TABLE

    @classmethod
    def from_config(cls, config: ContractConfigurationSet) -> CapabilityTableOracle:
        logger.info(
            "permission_oracle_loaded",
            extra={"config_set_id": config.config_id, "checksum": config.checksum},
        )
        return cls(to_capability_table(config))

    def capabilities(self, role: Role) -> dict[str, bool]:
        """Full capability map for ``role``; a copy, safe for callers to keep."""
        row = self._table.get(Role.parse(role), {})
        return {cap.value: bool(row.get(cap.value, False)) for cap in Capability}
