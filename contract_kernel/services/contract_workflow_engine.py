"""
ContractWorkflowEngine -- the contract approval state machine.

Responsibility:
    Executes every mutating workflow command (create, edit draft, submit,
    approve, reject, amend, cancel, send remarks to client) against the
    contract's current version.  For each command it checks the actor's
    capability, the precondition status, and the guards of the contract's
    locked workflow definition.  It then applies the change through a
    conditional write and appends exactly one audit entry.

Architecture position:
    Kernel > Services -- imperative shell.  Uses WorkflowDefinitionStore
    (locking), AuditLedger (audit) and the PermissionOracle and
    IdentityProvider collaborators.  Called by ContractCommandService,
    which owns the transaction.

Invariants enforced:
    - Status changes only along CONTRACT_TRANSITIONS.
    - At most one transition commits per current status: every write is
      ``UPDATE ... WHERE status = :expected AND is_current`` and a
      rowcount of 0 raises ConcurrentTransitionError.
    - Workflow locking: guards read the definition recorded on the
      contract, never the currently active one.
    - Conflict of interest: the contract's creator can never approve or
      reject it during finance review, whatever role they hold now.
    - Exactly one current version per contract; version numbers contiguous.
    - The status write and its audit entry are flushed into the same
      transaction.

Failure modes:
    - UnauthorizedError, InvalidStateError, ConcurrentTransitionError,
      ConflictOfInterestError, ValidationError, ContractNotFoundError,
      ContractVersionNotFoundError, ActorNotFoundError.
    - IntegrityError on a lost audit-seq or current-version race; surfaced
      by the command service.

Audit relevance:
    Every successful command appends one AuditEntry with the actor's role
    at the time of the action.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from contract_kernel.domain.clock import Clock
from contract_kernel.domain.collaborators import IdentityProvider, PermissionOracle
from contract_kernel.domain.dtos import (
    Actor,
    CommandOutcome,
    ContractTerms,
    RejectionRemarks,
    TermsUpdate,
)
from contract_kernel.domain.notifications import plan_notifications
from contract_kernel.domain.roles import FINANCE_ROLES, Capability, Role, has_capability
from contract_kernel.domain.workflow import (
    Command,
    ContractStatus,
    Transition,
    WorkflowDefinition,
    find_transition,
)
from contract_kernel.exceptions import (
    ConcurrentTransitionError,
    ConflictOfInterestError,
    ContractNotFoundError,
    ContractVersionNotFoundError,
    InvalidStateError,
    UnauthorizedError,
    ValidationError,
)
from contract_kernel.logging_config import get_logger
from contract_kernel.models.audit_entry import AuditAction
from contract_kernel.models.contract import Contract, ContractVersionModel
from contract_kernel.services.audit_ledger import AuditLedger
from contract_kernel.services.base import BaseService
from contract_kernel.services.workflow_definition_store import WorkflowDefinitionStore

logger = get_logger("services.contract_workflow_engine")

TERM_FIELDS = ("name", "counterpart_email", "effective_date", "amount")

COMMAND_CAPABILITY: dict[Command, Capability] = {
    Command.CREATE_CONTRACT: Capability.CREATE_CONTRACT,
    Command.EDIT_DRAFT: Capability.EDIT_DRAFT,
    Command.SUBMIT: Capability.SUBMIT_CONTRACT,
    Command.APPROVE: Capability.APPROVE_CONTRACT,
    Command.REJECT: Capability.REJECT_CONTRACT,
    Command.AMEND: Capability.AMEND_CONTRACT,
    Command.SEND_REMARKS_TO_CLIENT: Capability.SEND_REMARKS_TO_CLIENT,
}


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


def _terms_values(terms: ContractTerms) -> dict[str, Any]:
    return {name: getattr(terms, name) for name in TERM_FIELDS}


class ContractWorkflowEngine(BaseService):
    """
    Applies workflow commands to contracts.

    Contract:
        Each public method runs one command inside the caller's
        transaction and returns a CommandOutcome carrying the post-command
        snapshots, the audit entry id and the planned notifications.

    Guarantees:
        - On success exactly one AuditEntry was flushed.
        - On failure nothing the command wrote is meant to be committed;
          the caller rolls back.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT dispatch notifications (planned only).
        - Does NOT retry lost races.
    """

    def __init__(
        self,
        session: Session,
        permission_oracle: PermissionOracle,
        identity_provider: IdentityProvider,
        clock: Clock | None = None,
        definition_store: WorkflowDefinitionStore | None = None,
        audit_ledger: AuditLedger | None = None,
    ):
        super().__init__(session, clock)
        self._permissions = permission_oracle
        self._identity = identity_provider
        self._definitions = definition_store or WorkflowDefinitionStore(session, self.clock)
        self._ledger = audit_ledger or AuditLedger(session, self.clock)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _capabilities(self, actor: Actor):
        return self._permissions.capabilities(actor.role)

    def _require(self, actor: Actor, command: Command) -> None:
        capability = COMMAND_CAPABILITY[command]
        if not has_capability(self._capabilities(actor), capability):
            logger.warning(
                "command_unauthorized",
                extra={
                    "command": command.value,
                    "role": actor.role.value,
                    "capability": capability.value,
                },
            )
            raise UnauthorizedError(
                str(actor.actor_id),
                command.value,
                f"role {actor.role.value} lacks capability {capability.value}",
                capability=capability.value,
            )

    def _deny(self, actor: Actor, command: Command, reason: str) -> None:
        logger.warning(
            "command_unauthorized",
            extra={"command": command.value, "role": actor.role.value, "reason": reason},
        )
        raise UnauthorizedError(str(actor.actor_id), command.value, reason)

    def _require_creator(self, actor: Actor, contract: Contract, command: Command) -> None:
        if actor.actor_id != contract.created_by_id:
            self._deny(actor, command, "only the contract's creator may do this")

    def _expect(
        self, contract: Contract, version: ContractVersionModel, command: Command,
    ) -> Transition:
        status = ContractStatus(version.status)
        transition = find_transition(status, command)
        if transition is None:
            raise InvalidStateError(str(contract.id), command.value, status.value)
        return transition

    def _expect_stage(
        self,
        actor: Actor,
        contract: Contract,
        version: ContractVersionModel,
        command: Command,
    ) -> Transition:
        """Approve and reject act on the stage that matches the actor's role.

        Finance roles decide pending_finance versions only; clients decide
        pending_client versions only.
        """
        transition = self._expect(contract, version, command)
        if actor.role in FINANCE_ROLES:
            stage = ContractStatus.PENDING_FINANCE
        elif actor.role == Role.CLIENT:
            stage = ContractStatus.PENDING_CLIENT
        else:
            return transition
        if transition.from_status != stage:
            raise InvalidStateError(
                str(contract.id),
                command.value,
                version.status,
                reason=f"{actor.role.value} decides only {stage.value} versions",
            )
        return transition

    def _guard_finance_review(
        self,
        actor: Actor,
        contract: Contract,
        definition: WorkflowDefinition,
        command: Command,
    ) -> None:
        if actor.actor_id == contract.created_by_id:
            logger.warning(
                "conflict_of_interest_blocked",
                extra={"command": command.value, "role": actor.role.value},
            )
            raise ConflictOfInterestError(
                str(contract.id), str(actor.actor_id), command.value,
            )
        reviewers = definition.reviewer_roles()
        if actor.role not in reviewers:
            self._deny(
                actor,
                command,
                f"workflow v{definition.version} requires one of "
                f"{sorted(r.value for r in reviewers)} for finance review",
            )

    def _require_client(self, actor: Actor, contract: Contract, command: Command) -> None:
        if actor.actor_id != contract.client_id:
            self._deny(actor, command, "only the contract's client may do this")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, contract_id: UUID) -> tuple[Contract, ContractVersionModel]:
        contract = self.session.get(Contract, contract_id, populate_existing=True)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        version = self.session.execute(
            select(ContractVersionModel)
            .where(
                ContractVersionModel.contract_id == contract_id,
                ContractVersionModel.is_current.is_(True),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if version is None:
            raise ContractVersionNotFoundError(str(contract_id))
        return contract, version

    def _locked_definition(self, contract: Contract) -> WorkflowDefinition:
        return self._definitions.get(contract.workflow_definition_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _conditional_update(
        self,
        contract: Contract,
        version: ContractVersionModel,
        command: Command,
        expected: ContractStatus,
        values: dict[str, Any],
        *extra_conditions,
    ) -> None:
        """UPDATE the version only if it is still current and in ``expected``."""
        result = self.session.execute(
            update(ContractVersionModel)
            .where(
                ContractVersionModel.id == version.id,
                ContractVersionModel.status == expected.value,
                ContractVersionModel.is_current.is_(True),
                *extra_conditions,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "conditional_write_lost",
                extra={
                    "command": command.value,
                    "expected_status": expected.value,
                    "version_id": str(version.id),
                },
            )
            raise ConcurrentTransitionError(str(contract.id), command.value, expected.value)
        self.session.refresh(version)

    def _set_step(self, contract: Contract, step: int) -> None:
        if contract.current_step != step:
            contract.current_step = step
            self.session.flush()

    def _finish(
        self,
        command: Command,
        contract: Contract,
        version: ContractVersionModel,
        actor: Actor,
        action: AuditAction,
        *,
        from_status: ContractStatus | None = None,
        remarks: str | None = None,
        metadata: dict[str, Any] | None = None,
        reviewer_ids: tuple[UUID, ...] = (),
    ) -> CommandOutcome:
        entry = self._ledger.append(
            contract.id,
            action,
            actor,
            contract_version_id=version.id,
            remarks=remarks,
            metadata=metadata,
        )
        contract_dto = contract.to_dto()
        version_dto = version.to_dto()

        logger.info(
            "contract_transition_applied",
            extra={
                "command": command.value,
                "from_status": from_status.value if from_status else None,
                "to_status": version_dto.status.value,
                "version_number": version_dto.version_number,
                "audit_seq": entry.seq,
            },
        )
        return CommandOutcome(
            contract=contract_dto,
            version=version_dto,
            audit_entry_id=entry.id,
            notifications=plan_notifications(command, contract_dto, version_dto, reviewer_ids),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_contract(
        self, actor_id: UUID, client_id: UUID, terms: ContractTerms,
    ) -> CommandOutcome:
        """
        Create a contract locked to the active workflow, with draft v1.

        Postconditions:
            - contract.workflow_definition_id/version = get_active() at
              this moment, forever.
            - exactly one version (v1, draft, current).
        """
        actor = self._identity.resolve(actor_id)
        self._require(actor, Command.CREATE_CONTRACT)

        client = self._identity.resolve(client_id)
        if client.role != Role.CLIENT:
            raise ValidationError("client_id", f"actor {client_id} is not a client")

        definition = self._definitions.get_active()
        now = self.clock.now()
        contract_id = uuid4()

        contract = Contract(
            id=contract_id,
            contract_number=f"CON-{contract_id.hex[:8].upper()}",
            client_id=client_id,
            workflow_definition_id=definition.id,
            workflow_version=definition.version,
            current_version=1,
            current_step=definition.step_for_status(ContractStatus.DRAFT),
            created_at=now,
            created_by_id=actor.actor_id,
        )
        self.session.add(contract)
        self.session.flush()

        version = ContractVersionModel(
            contract_id=contract_id,
            version_number=1,
            status=ContractStatus.DRAFT.value,
            is_current=True,
            created_at=now,
            created_by_id=actor.actor_id,
            **_terms_values(terms),
        )
        self.session.add(version)
        self.session.flush()

        return self._finish(
            Command.CREATE_CONTRACT,
            contract,
            version,
            actor,
            AuditAction.CREATED,
            metadata={
                "contract_number": contract.contract_number,
                "workflow_definition_id": str(definition.id),
                "workflow_version": definition.version,
            },
        )

    def edit_draft(
        self, contract_id: UUID, actor_id: UUID, updates: TermsUpdate,
    ) -> CommandOutcome:
        if updates.is_empty():
            raise ValidationError("terms", "no term fields to update")

        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)
        self._require(actor, Command.EDIT_DRAFT)
        self._expect(contract, version, Command.EDIT_DRAFT)
        self._require_creator(actor, contract, Command.EDIT_DRAFT)

        current = version.terms
        revised = updates.apply_to(current)
        changed = [f for f in TERM_FIELDS if getattr(current, f) != getattr(revised, f)]

        self._conditional_update(
            contract, version, Command.EDIT_DRAFT, ContractStatus.DRAFT,
            _terms_values(revised),
        )
        return self._finish(
            Command.EDIT_DRAFT,
            contract,
            version,
            actor,
            AuditAction.UPDATED,
            from_status=ContractStatus.DRAFT,
            metadata={"changed_fields": changed},
        )

    def submit(self, contract_id: UUID, actor_id: UUID) -> CommandOutcome:
        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)
        self._require(actor, Command.SUBMIT)
        transition = self._expect(contract, version, Command.SUBMIT)
        self._require_creator(actor, contract, Command.SUBMIT)

        definition = self._locked_definition(contract)
        self._conditional_update(
            contract, version, Command.SUBMIT, transition.from_status,
            {"status": transition.to_status.value, "submitted_at": self.clock.now()},
        )
        self._set_step(contract, definition.step_for_status(transition.to_status))

        reviewer_ids: list[UUID] = []
        for role in sorted(definition.reviewer_roles(), key=lambda r: r.value):
            reviewer_ids.extend(self._identity.actors_with_role(role))

        return self._finish(
            Command.SUBMIT,
            contract,
            version,
            actor,
            AuditAction.SUBMITTED,
            from_status=transition.from_status,
            metadata={"version_number": version.version_number},
            reviewer_ids=tuple(reviewer_ids),
        )

    def approve(self, contract_id: UUID, actor_id: UUID) -> CommandOutcome:
        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)
        self._require(actor, Command.APPROVE)
        transition = self._expect_stage(actor, contract, version, Command.APPROVE)
        definition = self._locked_definition(contract)
        now = self.clock.now()

        if transition.from_status == ContractStatus.PENDING_FINANCE:
            self._guard_finance_review(actor, contract, definition, Command.APPROVE)
            stage = "finance"
            values = {
                "status": transition.to_status.value,
                "approved_by_finance_id": actor.actor_id,
                "approved_by_finance_at": now,
            }
        else:
            self._require_client(actor, contract, Command.APPROVE)
            stage = "client"
            values = {
                "status": transition.to_status.value,
                "approved_by_client_id": actor.actor_id,
                "approved_by_client_at": now,
            }

        self._conditional_update(
            contract, version, Command.APPROVE, transition.from_status, values,
        )
        self._set_step(contract, definition.step_for_status(transition.to_status))

        return self._finish(
            Command.APPROVE,
            contract,
            version,
            actor,
            AuditAction.APPROVED,
            from_status=transition.from_status,
            metadata={"stage": stage, "to_status": transition.to_status.value},
        )

    def reject(
        self,
        contract_id: UUID,
        actor_id: UUID,
        remarks: RejectionRemarks | Mapping[str, str | None] | str | None = None,
    ) -> CommandOutcome:
        """
        Reject the current version.

        Finance rejections require internal remarks (``internal``, or the
        unified ``remarks`` text); client-facing remarks are optional and
        may be forwarded later with ``send_remarks_to_client``.  Client
        rejections require a single remark.
        """
        remarks = RejectionRemarks.from_input(remarks)

        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)
        self._require(actor, Command.REJECT)
        transition = self._expect_stage(actor, contract, version, Command.REJECT)
        now = self.clock.now()

        if transition.from_status == ContractStatus.PENDING_FINANCE:
            internal = remarks.finance_internal()
            if internal is None:
                raise ValidationError(
                    "remarks_internal", "internal remarks are required for a finance rejection",
                )
            client_text = remarks.finance_client()
            self._guard_finance_review(
                actor, contract, self._locked_definition(contract), Command.REJECT,
            )
            audit_remarks = internal
            metadata = {"stage": "finance", "client_remarks_sent": client_text is not None}
            values = {
                "status": transition.to_status.value,
                "rejected_by_id": actor.actor_id,
                "rejected_at": now,
                "remarks_internal": internal,
                "remarks_client": client_text,
                "remarks_client_sent_at": now if client_text else None,
                "rejection_remarks": internal,
            }
        else:
            remark = remarks.client_remark()
            if remark is None:
                raise ValidationError("remarks", "a remark is required to reject")
            self._require_client(actor, contract, Command.REJECT)
            audit_remarks = remark
            metadata = {"stage": "client"}
            values = {
                "status": transition.to_status.value,
                "rejected_by_id": actor.actor_id,
                "rejected_at": now,
                "client_remark": remark,
                "rejection_remarks": remark,
            }

        self._conditional_update(
            contract, version, Command.REJECT, transition.from_status, values,
        )
        return self._finish(
            Command.REJECT,
            contract,
            version,
            actor,
            AuditAction.REJECTED,
            from_status=transition.from_status,
            remarks=audit_remarks,
            metadata=metadata,
        )

    def amend(
        self,
        contract_id: UUID,
        actor_id: UUID,
        updates: TermsUpdate | None = None,
    ) -> CommandOutcome:
        """
        Open version N+1 as a draft seeded from the rejected version N.

        Postconditions:
            - version N: is_current = false (frozen from now on).
            - version N+1: draft, current, terms = N's terms + ``updates``.
            - contract.current_version = N+1, current_step reset.
        """
        updates = updates or TermsUpdate()

        actor = self._identity.resolve(actor_id)
        contract, previous = self._load(contract_id)
        self._require(actor, Command.AMEND)
        transition = self._expect(contract, previous, Command.AMEND)
        self._require_creator(actor, contract, Command.AMEND)

        definition = self._locked_definition(contract)
        seeded = updates.apply_to(previous.terms)
        changed = [f for f in TERM_FIELDS if getattr(previous.terms, f) != getattr(seeded, f)]
        number = previous.version_number

        bumped = self.session.execute(
            update(Contract)
            .where(Contract.id == contract.id, Contract.current_version == number)
            .values(
                current_version=number + 1,
                current_step=definition.step_for_status(transition.to_status),
            )
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise ConcurrentTransitionError(
                str(contract.id), Command.AMEND.value, transition.from_status.value,
            )

        self._conditional_update(
            contract, previous, Command.AMEND, transition.from_status,
            {"is_current": False},
        )

        version = ContractVersionModel(
            contract_id=contract.id,
            version_number=number + 1,
            status=transition.to_status.value,
            is_current=True,
            created_at=self.clock.now(),
            created_by_id=actor.actor_id,
            **_terms_values(seeded),
        )
        self.session.add(version)
        self.session.flush()
        self.session.refresh(contract)

        return self._finish(
            Command.AMEND,
            contract,
            version,
            actor,
            AuditAction.AMENDED,
            from_status=transition.from_status,
            metadata={
                "from_version": number,
                "to_version": number + 1,
                "changed_fields": changed,
            },
        )

    def cancel(
        self, contract_id: UUID, actor_id: UUID, reason: str | None = None,
    ) -> CommandOutcome:
        """
        Cancel a contract awaiting the client or sitting rejected.

        Permitted for the contract's own client (``cancel_contract``) or
        for any actor holding ``cancel_any_contract``.
        """
        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)

        capabilities = self._capabilities(actor)
        own_client = (
            actor.actor_id == contract.client_id
            and has_capability(capabilities, Capability.CANCEL_CONTRACT)
        )
        if not own_client and not has_capability(capabilities, Capability.CANCEL_ANY_CONTRACT):
            logger.warning(
                "command_unauthorized",
                extra={"command": Command.CANCEL.value, "role": actor.role.value},
            )
            raise UnauthorizedError(
                str(actor.actor_id),
                Command.CANCEL.value,
                "only the contract's client or an administrator may cancel",
                capability=Capability.CANCEL_ANY_CONTRACT.value,
            )

        transition = self._expect(contract, version, Command.CANCEL)
        reason = _clean(reason)

        self._conditional_update(
            contract, version, Command.CANCEL, transition.from_status,
            {
                "status": transition.to_status.value,
                "cancelled_by_id": actor.actor_id,
                "cancelled_at": self.clock.now(),
                "cancellation_reason": reason,
            },
        )
        return self._finish(
            Command.CANCEL,
            contract,
            version,
            actor,
            AuditAction.CANCELLED,
            from_status=transition.from_status,
            remarks=reason,
            metadata={"via": "client" if own_client else "administrator"},
        )

    def send_remarks_to_client(
        self, contract_id: UUID, actor_id: UUID, remarks_client: str,
    ) -> CommandOutcome:
        """
        Forward client-facing remarks for a finance rejection.

        Only for versions rejected by finance whose client remarks were
        withheld at rejection time.  The remarks are written once.
        """
        text = _clean(remarks_client)
        if text is None:
            raise ValidationError("remarks_client", "client remarks are required")

        actor = self._identity.resolve(actor_id)
        contract, version = self._load(contract_id)
        self._require(actor, Command.SEND_REMARKS_TO_CLIENT)
        transition = self._expect(contract, version, Command.SEND_REMARKS_TO_CLIENT)
        if actor.role != Role.SUPER_ADMIN:
            self._require_creator(actor, contract, Command.SEND_REMARKS_TO_CLIENT)

        if version.remarks_internal is None:
            raise InvalidStateError(
                str(contract.id),
                Command.SEND_REMARKS_TO_CLIENT.value,
                version.status,
                reason="version was not rejected by finance",
            )
        if version.remarks_client is not None:
            raise InvalidStateError(
                str(contract.id),
                Command.SEND_REMARKS_TO_CLIENT.value,
                version.status,
                reason="client remarks were already sent",
            )

        self._conditional_update(
            contract, version, Command.SEND_REMARKS_TO_CLIENT, transition.from_status,
            {"remarks_client": text, "remarks_client_sent_at": self.clock.now()},
            ContractVersionModel.remarks_client.is_(None),
        )
        return self._finish(
            Command.SEND_REMARKS_TO_CLIENT,
            contract,
            version,
            actor,
            AuditAction.REMARKS_SENT_TO_CLIENT,
            from_status=transition.from_status,
            remarks=text,
        )
