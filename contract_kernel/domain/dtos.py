"""
Data Transfer Objects for the contract kernel (``contract_kernel.domain.dtos``).

Responsibility
--------------
Frozen dataclasses that cross the boundary between the ORM layer and
callers: command inputs (terms, term updates, rejection remarks), the
resolved actor, and read snapshots of contracts, versions and audit
entries.  ORM instances never escape the kernel services.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ContractTerms`` is validated on construction through
  ``validate_terms``: non-blank name, well-formed counterpart email,
  non-negative amount.
* ``TermsUpdate`` only names the mutable term fields; identity, status and
  decision fields cannot be expressed in it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, Mapping, TypeVar
from uuid import UUID

from contract_kernel.domain.roles import Role
from contract_kernel.domain.workflow import ContractStatus
from contract_kernel.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

NAME_MAX_LENGTH = 200

T = TypeVar("T")


# =========================================================================
# Command inputs
# =========================================================================


def _coerce_amount(value: Any) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("amount", f"not a number: {value!r}") from None
    if not amount.is_finite():
        raise ValidationError("amount", "must be finite")
    if amount < 0:
        raise ValidationError("amount", "must be non-negative")
    return amount


@dataclass(frozen=True)
class ContractTerms:
    """The mutable business content of a contract version."""

    name: str
    counterpart_email: str
    effective_date: date
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _coerce_amount(self.amount))
        if isinstance(self.counterpart_email, str):
            object.__setattr__(self, "counterpart_email", self.counterpart_email.strip().lower())
        validate_terms(self)


def validate_terms(terms: ContractTerms) -> None:
    if not terms.name or not terms.name.strip():
        raise ValidationError("name", "contract name is required")
    if len(terms.name) > NAME_MAX_LENGTH:
        raise ValidationError("name", f"at most {NAME_MAX_LENGTH} characters")
    if not terms.counterpart_email or not _EMAIL_RE.match(terms.counterpart_email):
        raise ValidationError(
            "counterpart_email", f"not a valid email: {terms.counterpart_email!r}",
        )
    if not isinstance(terms.effective_date, date):
        raise ValidationError("effective_date", "must be a date")


@dataclass(frozen=True)
class TermsUpdate:
    """Partial change to contract terms; ``None`` leaves a field unchanged."""

    name: str | None = None
    counterpart_email: str | None = None
    effective_date: date | None = None
    amount: Decimal | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def apply_to(self, terms: ContractTerms) -> ContractTerms:
        changes = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
        return replace(terms, **changes)


@dataclass(frozen=True)
class RejectionRemarks:
    """Reject input.

    ``remarks`` is the unified text (client rejections and the fallback for
    finance internal remarks).  ``internal`` and ``client`` are the
    separated finance channels.
    """

    remarks: str | None = None
    internal: str | None = None
    client: str | None = None

    @classmethod
    def from_input(cls, value: Any) -> RejectionRemarks:
        """Accept unified text, a remarks mapping, or an instance.

        Mapping keys: ``remarks``, ``remarks_internal``, ``remarks_client``.
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(remarks=value)
        if isinstance(value, Mapping):
            parts = {
                "remarks": value.get("remarks"),
                "internal": value.get("remarks_internal"),
                "client": value.get("remarks_client"),
            }
            for key, text in parts.items():
                if text is not None and not isinstance(text, str):
                    raise ValidationError("remarks", f"{key} must be text")
            return cls(**parts)
        raise ValidationError("remarks", f"unsupported remarks type: {type(value).__name__}")

    def finance_internal(self) -> str | None:
        return _clean(self.internal) or _clean(self.remarks)

    def finance_client(self) -> str | None:
        return _clean(self.client)

    def client_remark(self) -> str | None:
        return _clean(self.remarks) or _clean(self.client)


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


@dataclass(frozen=True)
class Actor:
    """An authenticated principal with its current role."""

    actor_id: UUID
    role: Role


# =========================================================================
# Read snapshots
# =========================================================================


@dataclass(frozen=True)
class ContractRecord:
    id: UUID
    contract_number: str
    client_id: UUID
    creator_id: UUID
    workflow_definition_id: UUID
    workflow_version: int
    current_version: int
    current_step: int
    created_at: datetime


@dataclass(frozen=True)
class ContractVersionRecord:
    """Immutable snapshot of one contract version row."""

    id: UUID
    contract_id: UUID
    version_number: int
    terms: ContractTerms
    status: ContractStatus
    is_current: bool
    created_by_id: UUID
    created_at: datetime
    submitted_at: datetime | None = None
    approved_by_finance_id: UUID | None = None
    approved_by_finance_at: datetime | None = None
    approved_by_client_id: UUID | None = None
    approved_by_client_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    remarks_internal: str | None = None
    remarks_client: str | None = None
    remarks_client_sent_at: datetime | None = None
    client_remark: str | None = None
    rejection_remarks: str | None = None
    cancelled_by_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


@dataclass(frozen=True)
class AuditEntryRecord:
    id: UUID
    contract_id: UUID
    contract_version_id: UUID | None
    seq: int
    action: str
    actor_id: UUID
    role_at_time: Role
    remarks: str | None
    metadata: dict[str, Any] | None
    created_at: datetime
    hash: str
    prev_hash: str | None


@dataclass(frozen=True)
class RoleHistoryRecord:
    actor_id: UUID
    role: Role
    changed_at: datetime
    changed_by_id: UUID | None
    seq: int


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated query."""

    items: tuple[T, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass(frozen=True)
class CommandOutcome:
    """Result of an engine command before commit.

    ``notifications`` are planned, not sent: the command service dispatches
    them only after the transaction commits.
    """

    contract: ContractRecord
    version: ContractVersionRecord
    audit_entry_id: UUID
    notifications: tuple[Any, ...] = field(default_factory=tuple)
