"""
External collaborator interfaces (``contract_kernel.domain.collaborators``).

The kernel depends on three outside parties and knows them only through
these protocols.  Implementations live in ``contract_services``.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence
from uuid import UUID

from contract_kernel.domain.dtos import Actor
from contract_kernel.domain.roles import Role


class PermissionOracle(Protocol):
    """Role -> capability lookup consulted before every mutating command."""

    def capabilities(self, role: Role) -> Mapping[str, bool]:
        ...


class IdentityProvider(Protocol):
    """Resolves an actor id to the actor's current role."""

    def resolve(self, actor_id: UUID) -> Actor:
        """Raises ActorNotFoundError when the actor is unknown."""
        ...

    def actors_with_role(self, role: Role) -> Sequence[UUID]:
        ...


class NotificationDispatcher(Protocol):
    """Best-effort delivery of workflow notifications."""

    def notify(
        self,
        recipient_id: UUID,
        type: str,
        title: str,
        message: str,
        contract_id: UUID,
    ) -> None:
        ...
