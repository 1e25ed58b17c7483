"""
RoleHistoryService -- append-only role assignments.

Responsibility:
    Records every role an actor has held as an ordered, immutable list of
    (role, changed_at, changed_by) entries.  The current role is the entry
    with the highest seq.  Earlier roles are never overwritten, which is
    what lets the conflict-of-interest guard reason about a reviewer who
    used to draft contracts.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Append-only (ORM listener + DB trigger).
    - UNIQUE(actor_id, seq): concurrent assignments for one actor collide.

Failure modes:
    - ValidationError: unknown role, or the actor already holds the role.
    - IntegrityError: concurrent assignment race.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from contract_kernel.domain.clock import Clock
from contract_kernel.domain.dtos import RoleHistoryRecord
from contract_kernel.domain.roles import Role
from contract_kernel.exceptions import ValidationError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.role_history import RoleHistoryEntry
from contract_kernel.services.base import BaseService

logger = get_logger("services.role_history")


class RoleHistoryService(BaseService):
    """Append-only role assignment log with a derived current role."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def _latest(self, actor_id: UUID) -> RoleHistoryEntry | None:
        return self.session.execute(
            select(RoleHistoryEntry)
            .where(RoleHistoryEntry.actor_id == actor_id)
            .order_by(RoleHistoryEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def assign_role(
        self,
        actor_id: UUID,
        role: Role | str,
        changed_by_id: UUID | None = None,
    ) -> RoleHistoryRecord:
        role = Role.parse(role)
        latest = self._latest(actor_id)
        if latest is not None and latest.role == role.value:
            raise ValidationError("role", f"actor already holds role {role.value}")

        entry = RoleHistoryEntry(
            actor_id=actor_id,
            seq=(latest.seq + 1) if latest else 1,
            role=role.value,
            changed_at=self.clock.now(),
            changed_by_id=changed_by_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "role_assigned",
            extra={
                "actor_id": str(actor_id),
                "role": role.value,
                "previous_role": latest.role if latest else None,
                "changed_by_id": str(changed_by_id) if changed_by_id else None,
            },
        )
        return entry.to_dto()

    def current_role(self, actor_id: UUID) -> Role | None:
        latest = self._latest(actor_id)
        return Role(latest.role) if latest else None

    def history(self, actor_id: UUID) -> list[RoleHistoryRecord]:
        entries = self.session.execute(
            select(RoleHistoryEntry)
            .where(RoleHistoryEntry.actor_id == actor_id)
            .order_by(RoleHistoryEntry.seq)
        ).scalars().all()
        return [e.to_dto() for e in entries]

    def actors_with_role(self, role: Role | str) -> list[UUID]:
        """Actors whose current role is ``role``."""
        role = Role.parse(role)
        latest_seq = (
            select(
                RoleHistoryEntry.actor_id,
                func.max(RoleHistoryEntry.seq).label("seq"),
            )
            .group_by(RoleHistoryEntry.actor_id)
            .subquery()
        )
        rows = self.session.execute(
            select(RoleHistoryEntry.actor_id)
            .join(
                latest_seq,
                (RoleHistoryEntry.actor_id == latest_seq.c.actor_id)
                & (RoleHistoryEntry.seq == latest_seq.c.seq),
            )
            .where(RoleHistoryEntry.role == role.value)
            .order_by(RoleHistoryEntry.actor_id)
        ).scalars().all()
        return list(rows)
