"""
Notification planning (``contract_kernel.domain.notifications``).

Responsibility
--------------
Maps a committed workflow command to the notifications it should produce.
Planning is pure: the engine plans inside the transaction, and the command
service hands the plan to a ``NotificationDispatcher`` only after commit.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Audience rules
--------------
* Finance internal remarks only ever go to the contract's creator.
* The client receives finance feedback only through ``remarks_client``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable
from uuid import UUID

from contract_kernel.domain.dtos import ContractRecord, ContractVersionRecord
from contract_kernel.domain.workflow import Command, ContractStatus


class NotificationType(str, Enum):
    SUBMISSION = "submission"
    APPROVAL = "approval"
    REJECTION = "rejection"
    CANCELLATION = "cancellation"
    REMARKS = "remarks"


@dataclass(frozen=True)
class Notification:
    recipient_id: UUID
    type: NotificationType
    title: str
    message: str
    contract_id: UUID


def plan_notifications(
    command: Command,
    contract: ContractRecord,
    version: ContractVersionRecord,
    reviewer_ids: Iterable[UUID] = (),
) -> tuple[Notification, ...]:
    """Return the notifications owed for ``command`` having produced ``version``."""
    name = version.terms.name

    def note(recipient: UUID, kind: NotificationType, title: str, message: str) -> Notification:
        return Notification(recipient, kind, title, message, contract.id)

    if command == Command.SUBMIT:
        planned = [
            note(
                reviewer,
                NotificationType.SUBMISSION,
                "New Contract Pending Review",
                f"Contract '{name}' has been submitted and requires finance review.",
            )
            for reviewer in sorted(set(reviewer_ids), key=str)
        ]
        planned.append(note(
            contract.creator_id,
            NotificationType.SUBMISSION,
            "Contract Submitted",
            f"Your contract '{name}' has been submitted for finance review.",
        ))
        return tuple(planned)

    if command == Command.APPROVE and version.status == ContractStatus.PENDING_CLIENT:
        return (
            note(
                contract.client_id,
                NotificationType.APPROVAL,
                "Contract Pending Your Approval",
                f"Contract '{name}' has been approved by finance and awaits your approval.",
            ),
            note(
                contract.creator_id,
                NotificationType.APPROVAL,
                "Contract Approved by Finance",
                f"Your contract '{name}' has been approved by finance and sent to the client.",
            ),
        )

    if command == Command.APPROVE and version.status == ContractStatus.ACTIVE:
        return (
            note(
                contract.creator_id,
                NotificationType.APPROVAL,
                "Contract Approved",
                f"Your contract '{name}' has been approved by the client and is now active.",
            ),
            note(
                contract.client_id,
                NotificationType.APPROVAL,
                "Contract Activated",
                f"Contract '{name}' is now active.",
            ),
        )

    if command == Command.REJECT and version.client_remark is not None:
        return (
            note(
                contract.creator_id,
                NotificationType.REJECTION,
                "Contract Rejected by Client",
                f"Your contract '{name}' was rejected by the client: {version.client_remark}",
            ),
        )

    if command == Command.REJECT:
        planned = [note(
            contract.creator_id,
            NotificationType.REJECTION,
            "Contract Rejected by Finance",
            f"Your contract '{name}' was rejected by finance: {version.remarks_internal}",
        )]
        if version.remarks_client:
            planned.append(note(
                contract.client_id,
                NotificationType.REJECTION,
                "Contract Requires Changes",
                f"Contract '{name}' requires changes: {version.remarks_client}",
            ))
        return tuple(planned)

    if command == Command.SEND_REMARKS_TO_CLIENT:
        return (
            note(
                contract.client_id,
                NotificationType.REMARKS,
                "Contract Feedback",
                f"Feedback on contract '{name}': {version.remarks_client}",
            ),
        )

    if command == Command.CANCEL:
        return tuple(
            note(
                recipient,
                NotificationType.CANCELLATION,
                "Contract Cancelled",
                f"Contract '{name}' has been cancelled.",
            )
            for recipient in (contract.creator_id, contract.client_id)
        )

    return ()
