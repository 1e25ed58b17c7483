"""
contract_services -- collaborator implementations for the contract kernel.

Concrete PermissionOracle, IdentityProvider and NotificationDispatcher
implementations, plus ``build_command_service`` which wires them to a
session from the active configuration.
"""

from contract_services.identity import RoleHistoryIdentityProvider, StaticIdentityProvider
from contract_services.notifications import (
    InMemoryNotificationDispatcher,
    LoggingNotificationDispatcher,
    SentNotification,
)
from contract_services.permission_oracle import CapabilityTableOracle
from contract_services.wiring import build_command_service

__all__ = [
    "CapabilityTableOracle",
    "InMemoryNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "RoleHistoryIdentityProvider",
    "SentNotification",
    "StaticIdentityProvider",
    "build_command_service",
]
