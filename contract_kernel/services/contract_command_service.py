"""
ContractCommandService -- transaction owner for workflow commands.

Responsibility:
    The entry point callers use to run workflow commands.  Wraps each
    ContractWorkflowEngine command in one transaction: bind log context,
    run the command, commit, then hand the planned notifications to the
    NotificationDispatcher.  Also fronts the administrative commands that
    need a capability check and a commit (publishing a workflow version,
    assigning roles, reading the audit log).

Architecture position:
    Kernel > Services -- the one service allowed to commit.

Invariants enforced:
    - Transaction boundaries: commit on success, rollback on any failure
      (when auto_commit=True).  The status change and its audit entry
      therefore commit or vanish together.
    - Notifications are dispatched only after a successful commit and never
      affect the command's outcome.
    - Database-level rejections are re-raised as kernel errors: lost races
      as ConcurrentTransitionError, trigger violations as
      ImmutableResourceError or InvalidStateError.

Failure modes:
    - Every kernel error from the engine, re-raised after rollback.
    - Unknown exceptions are re-raised unchanged after rollback.
"""

from __future__ import annotations

import time
from concurrent.futures import Executor
from typing import Callable, Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.domain.collaborators import (
    IdentityProvider,
    NotificationDispatcher,
    PermissionOracle,
)
from contract_kernel.domain.dtos import (
    AuditEntryRecord,
    CommandOutcome,
    ContractRecord,
    ContractTerms,
    ContractVersionRecord,
    Page,
    RejectionRemarks,
    RoleHistoryRecord,
    TermsUpdate,
)
from contract_kernel.domain.notifications import Notification
from contract_kernel.domain.roles import Capability, Role, has_capability
from contract_kernel.domain.workflow import Command, WorkflowDefinition, WorkflowTemplate
from contract_kernel.exceptions import (
    ConcurrentTransitionError,
    ContractKernelError,
    ImmutableResourceError,
    InvalidStateError,
    UnauthorizedError,
)
from contract_kernel.logging_config import LogContext, get_logger
from contract_kernel.models.audit_entry import AuditAction
from contract_kernel.services.audit_ledger import DEFAULT_PAGE_SIZE, AuditLedger
from contract_kernel.services.contract_workflow_engine import ContractWorkflowEngine
from contract_kernel.services.role_history_service import RoleHistoryService
from contract_kernel.services.workflow_definition_store import WorkflowDefinitionStore

logger = get_logger("services.contract_command_service")

UNKNOWN_STATUS = "unknown"


def translate_database_error(
    exc: DBAPIError, command: str, entity_id: str,
) -> ContractKernelError | None:
    """Map a database rejection to the kernel error it stands for.

    Trigger messages start with IMMUTABLE_RESOURCE or INVALID_STATE on
    both PostgreSQL and SQLite.  Any other IntegrityError at this level is
    a lost race on a uniqueness constraint (audit seq, current version,
    active workflow).
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if "IMMUTABLE_RESOURCE" in message:
        return ImmutableResourceError("database", entity_id, message.strip())
    if "INVALID_STATE" in message:
        return InvalidStateError(entity_id, command, UNKNOWN_STATUS, reason=message.strip())
    if isinstance(exc, IntegrityError):
        return ConcurrentTransitionError(entity_id, command, UNKNOWN_STATUS)
    return None


class ContractCommandService:
    """
    Runs workflow commands as committed units of work.

    Contract:
        Each command method returns post-commit snapshots (records, never
        ORM instances).

    Guarantees:
        - Commit on success, rollback on failure (when auto_commit=True).
        - Notification failures are logged as notification_dispatch_failed
          and swallowed.

    Non-goals:
        - No automatic retry of any failure.
        - With auto_commit=False the caller commits and then calls
          ``dispatch_notifications(outcome.notifications)`` itself.
    """

    def __init__(
        self,
        session: Session,
        permission_oracle: PermissionOracle,
        identity_provider: IdentityProvider,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
        notification_executor: Executor | None = None,
        default_template: WorkflowTemplate | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._permissions = permission_oracle
        self._identity = identity_provider
        self._dispatcher = dispatcher
        self._executor = notification_executor

        self._definitions = WorkflowDefinitionStore(session, self._clock, default_template)
        self._ledger = AuditLedger(session, self._clock)
        self._roles = RoleHistoryService(session, self._clock)
        self._engine = ContractWorkflowEngine(
            session,
            permission_oracle,
            identity_provider,
            clock=self._clock,
            definition_store=self._definitions,
            audit_ledger=self._ledger,
        )

    @property
    def engine(self) -> ContractWorkflowEngine:
        return self._engine

    @property
    def definitions(self) -> WorkflowDefinitionStore:
        return self._definitions

    @property
    def ledger(self) -> AuditLedger:
        return self._ledger

    @property
    def notification_executor(self) -> Executor | None:
        return self._executor

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    def _run(self, command: str, actor_id: UUID, entity_id: UUID | None, fn: Callable):
        entity = str(entity_id) if entity_id is not None else "new"
        with LogContext.bind(
            correlation_id=str(uuid4()),
            command=command,
            contract_id=str(entity_id) if entity_id is not None else None,
            actor_id=str(actor_id),
        ):
            logger.info("contract_command_started")
            t0 = time.monotonic()
            try:
                result = fn()
                if self._auto_commit:
                    self._session.commit()
            except ContractKernelError as exc:
                self._rollback()
                logger.warning(
                    "contract_command_rejected",
                    extra={
                        "error_code": exc.code,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except DBAPIError as exc:
                self._rollback()
                translated = translate_database_error(exc, command, entity)
                logger.error(
                    "contract_command_failed",
                    extra={
                        "error_code": translated.code if translated else None,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                if translated is None:
                    raise
                raise translated from exc
            except Exception:
                self._rollback()
                logger.error(
                    "contract_command_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            extra = {"duration_ms": round((time.monotonic() - t0) * 1000, 2)}
            if isinstance(result, CommandOutcome):
                extra["status"] = result.version.status.value
                extra["audit_entry_id"] = str(result.audit_entry_id)
            logger.info("contract_command_completed", extra=extra)

            if isinstance(result, CommandOutcome) and self._auto_commit:
                self.dispatch_notifications(result.notifications)
            return result

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def dispatch_notifications(self, notifications: Iterable[Notification]) -> None:
        """Deliver planned notifications, on the executor when one is set."""
        notifications = tuple(notifications)
        if self._dispatcher is None or not notifications:
            return
        if self._executor is not None:
            self._executor.submit(self._deliver, notifications)
        else:
            self._deliver(notifications)

    def _deliver(self, notifications: tuple[Notification, ...]) -> None:
        for note in notifications:
            try:
                self._dispatcher.notify(
                    note.recipient_id,
                    note.type.value,
                    note.title,
                    note.message,
                    note.contract_id,
                )
            except Exception:
                logger.warning(
                    "notification_dispatch_failed",
                    extra={
                        "recipient_id": str(note.recipient_id),
                        "notification_type": note.type.value,
                        "notified_contract_id": str(note.contract_id),
                    },
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Workflow commands
    # ------------------------------------------------------------------

    def create_contract(
        self, creator_id: UUID, client_id: UUID, terms: ContractTerms,
    ) -> tuple[ContractRecord, ContractVersionRecord]:
        outcome = self._run(
            Command.CREATE_CONTRACT.value, creator_id, None,
            lambda: self._engine.create_contract(creator_id, client_id, terms),
        )
        return outcome.contract, outcome.version

    def edit_draft(
        self, contract_id: UUID, actor_id: UUID, updates: TermsUpdate,
    ) -> ContractVersionRecord:
        return self._run(
            Command.EDIT_DRAFT.value, actor_id, contract_id,
            lambda: self._engine.edit_draft(contract_id, actor_id, updates),
        ).version

    def submit(self, contract_id: UUID, actor_id: UUID) -> ContractVersionRecord:
        return self._run(
            Command.SUBMIT.value, actor_id, contract_id,
            lambda: self._engine.submit(contract_id, actor_id),
        ).version

    def approve(self, contract_id: UUID, actor_id: UUID) -> ContractVersionRecord:
        return self._run(
            Command.APPROVE.value, actor_id, contract_id,
            lambda: self._engine.approve(contract_id, actor_id),
        ).version

    def reject(
        self,
        contract_id: UUID,
        actor_id: UUID,
        remarks: RejectionRemarks | Mapping[str, str | None] | str | None = None,
    ) -> ContractVersionRecord:
        return self._run(
            Command.REJECT.value, actor_id, contract_id,
            lambda: self._engine.reject(contract_id, actor_id, remarks),
        ).version

    def amend(
        self,
        contract_id: UUID,
        actor_id: UUID,
        updates: TermsUpdate | None = None,
    ) -> ContractVersionRecord:
        return self._run(
            Command.AMEND.value, actor_id, contract_id,
            lambda: self._engine.amend(contract_id, actor_id, updates),
        ).version

    def cancel(
        self, contract_id: UUID, actor_id: UUID, reason: str | None = None,
    ) -> ContractVersionRecord:
        return self._run(
            Command.CANCEL.value, actor_id, contract_id,
            lambda: self._engine.cancel(contract_id, actor_id, reason),
        ).version

    def send_remarks_to_client(
        self, contract_id: UUID, actor_id: UUID, remarks_client: str,
    ) -> None:
        self._run(
            Command.SEND_REMARKS_TO_CLIENT.value, actor_id, contract_id,
            lambda: self._engine.send_remarks_to_client(contract_id, actor_id, remarks_client),
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _authorize(self, actor_id: UUID, capability: Capability, command: str) -> None:
        actor = self._identity.resolve(actor_id)
        if not has_capability(self._permissions.capabilities(actor.role), capability):
            raise UnauthorizedError(
                str(actor_id),
                command,
                f"role {actor.role.value} lacks capability {capability.value}",
                capability=capability.value,
            )

    def publish_workflow(
        self, actor_id: UUID, template: WorkflowTemplate,
    ) -> WorkflowDefinition:
        """Create and activate a new workflow definition version."""

        def publish() -> WorkflowDefinition:
            self._authorize(actor_id, Capability.CONFIGURE_WORKFLOW, "publish_workflow")
            return self._definitions.create_version(template, actor_id)

        return self._run("publish_workflow", actor_id, None, publish)

    def assign_role(
        self, actor_id: UUID, target_actor_id: UUID, role: Role | str,
    ) -> RoleHistoryRecord:
        """Append a role change for ``target_actor_id``."""

        def assign() -> RoleHistoryRecord:
            self._authorize(actor_id, Capability.MANAGE_ROLES, "assign_role")
            return self._roles.assign_role(target_actor_id, role, changed_by_id=actor_id)

        return self._run("assign_role", actor_id, None, assign)

    def audit_log(
        self,
        actor_id: UUID,
        *,
        contract_id: UUID | None = None,
        by_actor_id: UUID | None = None,
        role_at_time: Role | str | None = None,
        action: AuditAction | str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Page[AuditEntryRecord]:
        """Paginated audit query for actors allowed to read audit logs."""
        self._authorize(actor_id, Capability.VIEW_AUDIT_LOGS, "view_audit_logs")
        return self._ledger.query(
            contract_id=contract_id,
            actor_id=by_actor_id,
            role_at_time=role_at_time,
            action=action,
            limit=limit,
            offset=offset,
        )
