"""
contract_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a validated
    ``ContractConfigurationSet``; ``bridges`` turns it into the capability
    table and workflow template the kernel accepts.

Architecture position:
    Configuration -- sits above ``contract_kernel`` and below
    ``contract_services``.  The kernel MUST NEVER import from
    ``contract_config``.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested id.
    - ``ValueError`` -- validation failures (all errors listed).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CONTRACT_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying authorization decisions to the exact configuration
    that governed them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from contract_config.bridges import to_capability_table, to_workflow_template
from contract_config.loader import load_configuration
from contract_config.schema import ContractConfigurationSet
from contract_config.validator import validate_configuration

_logger = logging.getLogger("contract_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_id: str = "default",
    config_dir: Path | None = None,
) -> ContractConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        config_id: Name of the set; read from ``<config_dir>/<config_id>.yaml``.
        config_dir: Override path to the configuration sets directory.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_id}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_configuration(path)
    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("contract_config_warning", extra={"warning": warning})

    _logger.info(
        "CONTRACT_CONFIG_TRACE",
        extra={
            "trace_type": "CONTRACT_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "role_count": len(config.capabilities),
            "workflow_name": config.default_workflow.name,
        },
    )
    return config


__all__ = [
    "ContractConfigurationSet",
    "get_active_config",
    "to_capability_table",
    "to_workflow_template",
]
