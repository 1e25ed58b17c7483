"""
Module: contract_kernel.models.audit_entry
Responsibility: ORM persistence for the per-contract, tamper-evident audit
    trail.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value types only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listener + DB trigger).
    - seq starts at 1 per contract and is gap-free: UNIQUE(contract_id, seq).
      Two transactions appending to the same contract concurrently cannot
      both commit.
    - Hash chain: hash = H(contract_id | seq | action | actor_id |
      role_at_time | created_at | payload_hash | prev_hash).  Validated by
      AuditLedger.validate_chain.

Failure modes:
    - IntegrityError on a duplicate (contract_id, seq).
    - ImmutableResourceError on any UPDATE/DELETE attempt.

Audit relevance:
    AuditEntry IS the audit trail.  role_at_time is a snapshot: later role
    changes never rewrite it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from contract_kernel.db.base import Base, UUIDString
from contract_kernel.db.types import UTCDateTime
from contract_kernel.domain.dtos import AuditEntryRecord
from contract_kernel.domain.roles import Role


class AuditAction(str, Enum):
    """Auditable contract actions.

    Contract: every mutating workflow command writes exactly one entry
    with one of these actions.
    """

    CREATED = "created"
    UPDATED = "updated"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    AMENDED = "amended"
    CANCELLED = "cancelled"
    REMARKS_SENT_TO_CLIENT = "remarks_sent_to_client"


class AuditEntry(Base):
    """
    Audit entry with per-contract hash chain for tamper evidence.

    Guarantees:
        - prev_hash is None only for a contract's first entry (seq 1).
        - created_at is the only timestamp; entries have no updated_at.

    Non-goals:
        - This model does NOT compute hashes; AuditLedger.append does.
    """

    __tablename__ = "audit_entries"

    __table_args__ = (
        UniqueConstraint("contract_id", "seq", name="uq_audit_entries_contract_seq"),
        Index("idx_audit_entries_actor", "actor_id"),
        Index("idx_audit_entries_role", "role_at_time"),
        Index("idx_audit_entries_action", "action"),
        Index("idx_audit_entries_created", "created_at"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )
    contract_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contract_versions.id"),
        nullable=True,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    role_at_time: Mapped[str] = mapped_column(String(30), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    entry_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action} contract={self.contract_id} seq={self.seq}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> AuditEntryRecord:
        return AuditEntryRecord(
            id=self.id,
            contract_id=self.contract_id,
            contract_version_id=self.contract_version_id,
            seq=self.seq,
            action=self.action,
            actor_id=self.actor_id,
            role_at_time=Role(self.role_at_time),
            remarks=self.remarks,
            metadata=self.entry_metadata,
            created_at=self.created_at,
            hash=self.hash,
            prev_hash=self.prev_hash,
        )
