"""
Module: contract_kernel.models.contract
Responsibility: ORM persistence for contracts and their versions.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value types only.

Invariants enforced:
    - Workflow lock: workflow_definition_id and workflow_version are written
      at creation and never change (ORM listener + DB trigger).  The same
      holds for contract_number, client_id and created_by_id.
    - Single current version: partial unique index on contract_id WHERE
      is_current.
    - Contiguous versions: UNIQUE(contract_id, version_number) and
      version_number >= 1; Amend only ever writes current_version + 1.
    - Status tokens: CHECK constraint on the six lifecycle statuses.  The
      status graph itself is enforced by the engine and a DB trigger.
    - Superseded versions are frozen; terms are frozen once a version leaves
      draft; decision fields are write-once (DB trigger).
    - Contracts and versions are never deleted.

Failure modes:
    - IntegrityError when a racing Amend tries to open a second current
      version, or reuses a version number.
    - ImmutableResourceError on locked-field changes or deletes.

Audit relevance:
    Version rows carry attribution for every decision (who approved, who
    rejected, who cancelled and when).  Every change to them is paired
    with an AuditEntry in the same transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contract_kernel.db.base import TrackedBase, UUIDString
from contract_kernel.db.types import UTCDateTime
from contract_kernel.domain.dtos import (
    ContractRecord,
    ContractTerms,
    ContractVersionRecord,
)
from contract_kernel.domain.workflow import ContractStatus

VERSION_STATUSES = tuple(s.value for s in ContractStatus)


class Contract(TrackedBase):
    """
    A negotiated document moving through the approval pipeline.

    Contract:
        created_by_id is the drafting actor (the "creator" in guards).
        current_version always names the version with is_current = true.

    Guarantees:
        - contract_number is unique.
        - (workflow_definition_id, workflow_version) never change.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint("contract_number", name="uq_contracts_contract_number"),
        CheckConstraint("current_version >= 1", name="ck_contracts_current_version_positive"),
        CheckConstraint("current_step >= 1", name="ck_contracts_current_step_positive"),
        Index("idx_contracts_client", "client_id"),
        Index("idx_contracts_creator", "created_by_id"),
    )

    contract_number: Mapped[str] = mapped_column(String(20), nullable=False)
    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    workflow_definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id"),
        nullable=False,
    )
    workflow_version: Mapped[int] = mapped_column(Integer, nullable=False)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    versions: Mapped[list[ContractVersionModel]] = relationship(
        back_populates="contract",
        order_by="ContractVersionModel.version_number",
    )

    def __repr__(self) -> str:
        return f"<Contract {self.contract_number} v{self.current_version}>"

    @property
    def creator_id(self) -> UUID:
        return self.created_by_id

    def to_dto(self) -> ContractRecord:
        return ContractRecord(
            id=self.id,
            contract_number=self.contract_number,
            client_id=self.client_id,
            creator_id=self.created_by_id,
            workflow_definition_id=self.workflow_definition_id,
            workflow_version=self.workflow_version,
            current_version=self.current_version,
            current_step=self.current_step,
            created_at=self.created_at,
        )


class ContractVersionModel(TrackedBase):
    """
    One version of a contract's terms and its approval state.

    Contract:
        Only the engine changes status, and only through conditional
        UPDATEs guarded on the expected prior status.

    Guarantees:
        - exactly one row per contract has is_current = true.
        - rows with is_current = false are frozen.
    """

    __tablename__ = "contract_versions"

    __table_args__ = (
        UniqueConstraint(
            "contract_id", "version_number", name="uq_contract_versions_number",
        ),
        CheckConstraint("version_number >= 1", name="ck_contract_versions_number_positive"),
        CheckConstraint(
            "status IN ('draft', 'pending_finance', 'pending_client', "
            "'active', 'rejected', 'cancelled')",
            name="ck_contract_versions_valid_status",
        ),
        CheckConstraint("amount >= 0", name="ck_contract_versions_amount_non_negative"),
        Index(
            "uq_contract_versions_single_current",
            "contract_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
        Index("idx_contract_versions_status", "status"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Terms
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    counterpart_email: Mapped[str] = mapped_column(String(320), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractStatus.DRAFT.value,
    )
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    approved_by_finance_id: Mapped[UUID | None] = mapped_column(UUIDString())
    approved_by_finance_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    approved_by_client_id: Mapped[UUID | None] = mapped_column(UUIDString())
    approved_by_client_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    remarks_internal: Mapped[str | None] = mapped_column(Text)
    remarks_client: Mapped[str | None] = mapped_column(Text)
    remarks_client_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    client_remark: Mapped[str | None] = mapped_column(Text)
    # Legacy single-text mirror of the most recent rejection.
    rejection_remarks: Mapped[str | None] = mapped_column(Text)

    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    contract: Mapped[Contract] = relationship(back_populates="versions")

    def __repr__(self) -> str:
        return (
            f"<ContractVersion {self.contract_id} v{self.version_number} "
            f"{self.status} current={self.is_current}>"
        )

    @property
    def terms(self) -> ContractTerms:
        return ContractTerms(
            name=self.name,
            counterpart_email=self.counterpart_email,
            effective_date=self.effective_date,
            amount=self.amount,
        )

    def to_dto(self) -> ContractVersionRecord:
        return ContractVersionRecord(
            id=self.id,
            contract_id=self.contract_id,
            version_number=self.version_number,
            terms=self.terms,
            status=ContractStatus(self.status),
            is_current=self.is_current,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
            submitted_at=self.submitted_at,
            approved_by_finance_id=self.approved_by_finance_id,
            approved_by_finance_at=self.approved_by_finance_at,
            approved_by_client_id=self.approved_by_client_id,
            approved_by_client_at=self.approved_by_client_at,
            rejected_by_id=self.rejected_by_id,
            rejected_at=self.rejected_at,
            remarks_internal=self.remarks_internal,
            remarks_client=self.remarks_client,
            remarks_client_sent_at=self.remarks_client_sent_at,
            client_remark=self.client_remark,
            rejection_remarks=self.rejection_remarks,
            cancelled_by_id=self.cancelled_by_id,
            cancelled_at=self.cancelled_at,
            cancellation_reason=self.cancellation_reason,
        )
