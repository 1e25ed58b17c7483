"""
AuditLedger -- append-only, hash-chained audit trail for contracts.

Responsibility:
    Appends one immutable AuditEntry per workflow mutation and answers
    audit queries (by contract, by actor, by role at time of action), with
    pagination.  Validates each contract's hash chain on demand.

Architecture position:
    Kernel > Services -- imperative shell, called by ContractWorkflowEngine
    inside the command transaction.

Invariants enforced:
    - Append-only: ``append`` is the only write path.  Entries are
      protected by ORM listeners and database triggers.
    - Per-contract sequence: seq = last seq + 1 for the contract;
      UNIQUE(contract_id, seq) makes two concurrent appends for the same
      contract collide instead of forking the chain.
    - Hash chain: every entry links to the previous entry of the same
      contract.  Contracts do not share a chain, so unrelated contracts
      never contend on one tail row.

Failure modes:
    - IntegrityError: concurrent append race on (contract_id, seq).  The
      command service surfaces it as ConcurrentTransitionError.
    - AuditChainBrokenError from ``validate_chain`` on tampering.
    - ValidationError for out-of-range pagination arguments.

Audit relevance:
    This IS the audit service.  The command fails, and the whole
    transaction rolls back, if ``append`` fails.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from contract_kernel.domain.clock import Clock
from contract_kernel.domain.dtos import Actor, AuditEntryRecord, Page
from contract_kernel.domain.roles import Role
from contract_kernel.exceptions import AuditChainBrokenError, ValidationError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.audit_entry import AuditAction, AuditEntry
from contract_kernel.services.base import BaseService
from contract_kernel.utils.hashing import hash_audit_entry, hash_payload

logger = get_logger("services.audit_ledger")

MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 50


def _entry_payload(
    contract_version_id: UUID | None,
    remarks: str | None,
    metadata: dict[str, Any] | None,
) -> dict[str, Any]:
    return {
        "contract_version_id": contract_version_id,
        "remarks": remarks,
        "metadata": metadata or {},
    }


class AuditLedger(BaseService):
    """
    Append-only audit trail with per-contract hash chains.

    Contract:
        ``append`` flushes one AuditEntry into the caller's transaction.

    Guarantees:
        - entry.hash == H(contract_id | seq | action | actor_id |
          role_at_time | created_at | payload_hash | prev_hash).
        - entry.prev_hash is the hash of the contract's previous entry,
          or None for seq 1.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def _last_entry(self, contract_id: UUID) -> AuditEntry | None:
        return self.session.execute(
            select(AuditEntry)
            .where(AuditEntry.contract_id == contract_id)
            .order_by(AuditEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        contract_id: UUID,
        action: AuditAction,
        actor: Actor,
        contract_version_id: UUID | None = None,
        remarks: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """
        Append an audit entry to the contract's chain.

        Postconditions:
            - A new AuditEntry is flushed with seq = previous seq + 1.

        Raises:
            IntegrityError: If another transaction appended the same seq.
        """
        last = self._last_entry(contract_id)
        seq = (last.seq + 1) if last else 1
        prev_hash = last.hash if last else None
        created_at = self.clock.now()

        payload_hash = hash_payload(
            _entry_payload(contract_version_id, remarks, metadata)
        )
        entry_hash = hash_audit_entry(
            contract_id=contract_id,
            seq=seq,
            action=action.value,
            actor_id=actor.actor_id,
            role_at_time=actor.role.value,
            created_at=created_at,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditEntry(
            contract_id=contract_id,
            contract_version_id=contract_version_id,
            seq=seq,
            action=action.value,
            actor_id=actor.actor_id,
            role_at_time=actor.role.value,
            remarks=remarks,
            entry_metadata=metadata,
            created_at=created_at,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_appended",
            extra={
                "contract_id": str(contract_id),
                "action": action.value,
                "seq": seq,
                "role_at_time": actor.role.value,
            },
        )
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def trail(self, contract_id: UUID) -> tuple[AuditEntryRecord, ...]:
        """The contract's complete trail in seq order."""
        entries = self.session.execute(
            select(AuditEntry)
            .where(AuditEntry.contract_id == contract_id)
            .order_by(AuditEntry.seq)
        ).scalars().all()
        return tuple(e.to_dto() for e in entries)

    def query(
        self,
        *,
        contract_id: UUID | None = None,
        actor_id: UUID | None = None,
        role_at_time: Role | str | None = None,
        action: AuditAction | str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Page[AuditEntryRecord]:
        """
        Filtered, paginated audit query.

        Entries are ordered by created_at, then contract and seq, so a
        contract's entries always appear in chain order.
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset", "must be non-negative")

        conditions = []
        if contract_id is not None:
            conditions.append(AuditEntry.contract_id == contract_id)
        if actor_id is not None:
            conditions.append(AuditEntry.actor_id == actor_id)
        if role_at_time is not None:
            conditions.append(AuditEntry.role_at_time == Role.parse(role_at_time).value)
        if action is not None:
            conditions.append(AuditEntry.action == AuditAction(action).value)

        total = self.session.execute(
            select(func.count()).select_from(AuditEntry).where(*conditions)
        ).scalar_one()

        entries = self.session.execute(
            select(AuditEntry)
            .where(*conditions)
            .order_by(AuditEntry.created_at, AuditEntry.contract_id, AuditEntry.seq)
            .limit(limit)
            .offset(offset)
        ).scalars().all()

        return Page(
            items=tuple(e.to_dto() for e in entries),
            total=total,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Chain validation
    # ------------------------------------------------------------------

    def validate_chain(self, contract_id: UUID) -> bool:
        """
        Recompute and check every hash in the contract's chain.

        Raises:
            AuditChainBrokenError: On the first entry whose stored hash,
                prev_hash linkage or seq does not match.
        """
        entries = self.session.execute(
            select(AuditEntry)
            .where(AuditEntry.contract_id == contract_id)
            .order_by(AuditEntry.seq)
        ).scalars().all()

        prev: AuditEntry | None = None
        for expected_seq, entry in enumerate(entries, start=1):
            expected_prev = prev.hash if prev else None
            if entry.seq != expected_seq or entry.prev_hash != expected_prev:
                self._chain_broken(entry, expected_prev or "None", entry.prev_hash or "None")

            payload_hash = hash_payload(
                _entry_payload(entry.contract_version_id, entry.remarks, entry.entry_metadata)
            )
            if payload_hash != entry.payload_hash:
                self._chain_broken(entry, payload_hash, entry.payload_hash)

            expected_hash = hash_audit_entry(
                contract_id=entry.contract_id,
                seq=entry.seq,
                action=entry.action,
                actor_id=entry.actor_id,
                role_at_time=entry.role_at_time,
                created_at=entry.created_at,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                self._chain_broken(entry, expected_hash, entry.hash)
            prev = entry

        logger.info(
            "audit_chain_valid",
            extra={"contract_id": str(contract_id), "entry_count": len(entries)},
        )
        return True

    def validate_all_chains(self) -> int:
        """Validate every contract's chain; returns the number of chains checked."""
        contract_ids = self.session.execute(
            select(AuditEntry.contract_id).distinct()
        ).scalars().all()
        for contract_id in contract_ids:
            self.validate_chain(contract_id)
        return len(contract_ids)

    def _chain_broken(self, entry: AuditEntry, expected: str, actual: str) -> None:
        logger.critical(
            "audit_chain_broken",
            extra={
                "contract_id": str(entry.contract_id),
                "audit_entry_id": str(entry.id),
                "seq": entry.seq,
            },
        )
        raise AuditChainBrokenError(str(entry.id), expected, actual)
