"""
Configuration Loader (``contract_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``contract_config.schema`` dataclasses.  Runtime callers go through
``contract_config.get_active_config()`` instead of calling this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrongly typed sections  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` ties every loaded set to the exact YAML it came from.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from contract_config.schema import (
    ContractConfigurationSet,
    NotificationSettings,
    StepDef,
    WorkflowDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_step(data: dict[str, Any]) -> StepDef:
    return StepDef(
        order=int(data["order"]),
        name=data["name"],
        required_role=data["required_role"],
        action=data["action"],
        can_skip=bool(data.get("can_skip", False)),
        is_active=bool(data.get("is_active", True)),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDef:
    return WorkflowDef(
        name=data["name"],
        description=data.get("description"),
        steps=tuple(parse_step(s) for s in data["steps"]),
    )


def parse_capabilities(data: Any) -> dict[str, dict[str, bool]]:
    """
    Parse the role -> granted capability lists into a full boolean table.

    YAML lists only the granted capabilities per role; every capability
    named anywhere in the section appears in every row.
    """
    if not isinstance(data, dict):
        raise ValueError("capabilities must be a mapping of role -> list")
    granted: dict[str, set[str]] = {}
    for role, caps in data.items():
        if caps is None:
            caps = []
        if not isinstance(caps, list):
            raise ValueError(f"capabilities for role {role!r} must be a list")
        granted[str(role)] = {str(c) for c in caps}

    every = sorted(set().union(*granted.values())) if granted else []
    return {
        role: {cap: cap in caps for cap in every}
        for role, caps in granted.items()
    }


def parse_notifications(data: dict[str, Any] | None) -> NotificationSettings:
    data = data or {}
    return NotificationSettings(
        async_dispatch=bool(data.get("async_dispatch", False)),
        max_workers=int(data.get("max_workers", 2)),
    )


def parse_configuration(data: dict[str, Any]) -> ContractConfigurationSet:
    return ContractConfigurationSet(
        config_id=data["config_id"],
        version=int(data["version"]),
        description=data.get("description"),
        capabilities=parse_capabilities(data["capabilities"]),
        default_workflow=parse_workflow(data["default_workflow"]),
        notifications=parse_notifications(data.get("notifications")),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> ContractConfigurationSet:
    return parse_configuration(load_yaml_file(path))
