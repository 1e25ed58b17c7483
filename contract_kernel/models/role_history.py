"""
Module: contract_kernel.models.role_history
Responsibility: Append-only record of actor role assignments.
Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listener + DB trigger).
    - seq is gap-free per actor: UNIQUE(actor_id, seq).  The current role
      is the entry with the highest seq.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from contract_kernel.db.base import Base, UUIDString
from contract_kernel.db.types import UTCDateTime
from contract_kernel.domain.dtos import RoleHistoryRecord
from contract_kernel.domain.roles import Role


class RoleHistoryEntry(Base):
    """One role assignment for an actor."""

    __tablename__ = "role_history"

    __table_args__ = (
        UniqueConstraint("actor_id", "seq", name="uq_role_history_actor_seq"),
        CheckConstraint(
            "role IN ('super_admin', 'legal', 'finance', 'senior_finance', 'client')",
            name="ck_role_history_valid_role",
        ),
        Index("idx_role_history_role", "role"),
    )

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    # None for the bootstrap assignment of the first administrator.
    changed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<RoleHistoryEntry {self.actor_id} #{self.seq} {self.role}>"

    def to_dto(self) -> RoleHistoryRecord:
        return RoleHistoryRecord(
            actor_id=self.actor_id,
            role=Role(self.role),
            changed_at=self.changed_at,
            changed_by_id=self.changed_by_id,
            seq=self.seq,
        )
