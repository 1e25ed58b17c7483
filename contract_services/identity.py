"""
contract_services.identity -- actor resolution for workflow commands.

Responsibility:
    Implements the kernel's ``IdentityProvider`` protocol.  Authentication
    happens upstream; these providers only map an authenticated actor id to
    the role the actor holds right now.

    - ``StaticIdentityProvider``: in-memory directory, for wiring tests,
      demos and callers that already hold the actor's role.
    - ``RoleHistoryIdentityProvider``: current role is the latest entry in
      the append-only role history.
"""

from __future__ import annotations

from typing import Mapping
from uuid import UUID

from contract_kernel.domain.dtos import Actor
from contract_kernel.domain.roles import Role
from contract_kernel.exceptions import ActorNotFoundError
from contract_kernel.services.role_history_service import RoleHistoryService


class StaticIdentityProvider:
    """In-memory actor directory."""

    def __init__(self, roles: Mapping[UUID, Role] | None = None):
        self._roles: dict[UUID, Role] = {
            actor_id: Role.parse(role) for actor_id, role in (roles or {}).items()
        }

    def register(self, actor_id: UUID, role: Role | str) -> Actor:
        self._roles[actor_id] = Role.parse(role)
        return Actor(actor_id, self._roles[actor_id])

    def resolve(self, actor_id: UUID) -> Actor:
        try:
            return Actor(actor_id, self._roles[actor_id])
        except KeyError:
            raise ActorNotFoundError(str(actor_id)) from None

    def actors_with_role(self, role: Role) -> list[UUID]:
        return sorted(
            (a for a, r in self._roles.items() if r == role), key=str,
        )


class RoleHistoryIdentityProvider:
    """Resolves actors through the append-only role history."""

    def __init__(self, role_history: RoleHistoryService):
        self._history = role_history

    def resolve(self, actor_id: UUID) -> Actor:
        role = self._history.current_role(actor_id)
        if role is None:
            raise ActorNotFoundError(str(actor_id))
        return Actor(actor_id, role)

    def actors_with_role(self, role: Role) -> list[UUID]:
        return self._history.actors_with_role(role)
