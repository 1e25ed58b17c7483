"""
Module: contract_kernel.selectors.contract_selector
Responsibility: Read access to contracts, their versions, the workflow
    definition each contract is locked to, and role-scoped contract lists.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Locked workflow reads go through the contract's own
      (workflow_definition_id, workflow_version), never the active pointer.
    - Remark channels are filtered by reader role (domain.remarks).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from contract_kernel.domain.dtos import (
    Actor,
    ContractRecord,
    ContractVersionRecord,
    Page,
)
from contract_kernel.domain.remarks import VisibleRemarks, visible_remarks
from contract_kernel.domain.roles import FINANCE_ROLES, Role
from contract_kernel.domain.workflow import ContractStatus, WorkflowDefinition
from contract_kernel.exceptions import (
    ContractNotFoundError,
    ContractVersionNotFoundError,
    ValidationError,
    WorkflowDefinitionNotFoundError,
)
from contract_kernel.models.contract import Contract, ContractVersionModel
from contract_kernel.models.workflow_definition import WorkflowDefinitionModel
from contract_kernel.selectors.base import BaseSelector

# Statuses a client never sees: the contract has not reached them yet.
_HIDDEN_FROM_CLIENT = (ContractStatus.DRAFT.value, ContractStatus.PENDING_FINANCE.value)


class ContractSelector(BaseSelector):
    """Read-only queries over contracts and versions."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _contract(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id, populate_existing=True)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def get_contract(self, contract_id: UUID) -> ContractRecord:
        return self._contract(contract_id).to_dto()

    def get_version(self, contract_id: UUID, version_number: int) -> ContractVersionRecord:
        version = self.session.execute(
            select(ContractVersionModel).where(
                ContractVersionModel.contract_id == contract_id,
                ContractVersionModel.version_number == version_number,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if version is None:
            self._contract(contract_id)
            raise ContractVersionNotFoundError(str(contract_id), version_number)
        return version.to_dto()

    def get_current_version(self, contract_id: UUID) -> ContractVersionRecord:
        version = self.session.execute(
            select(ContractVersionModel).where(
                ContractVersionModel.contract_id == contract_id,
                ContractVersionModel.is_current.is_(True),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if version is None:
            self._contract(contract_id)
            raise ContractVersionNotFoundError(str(contract_id))
        return version.to_dto()

    def list_versions(self, contract_id: UUID) -> list[ContractVersionRecord]:
        self._contract(contract_id)
        versions = self.session.execute(
            select(ContractVersionModel)
            .where(ContractVersionModel.contract_id == contract_id)
            .order_by(ContractVersionModel.version_number)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [v.to_dto() for v in versions]

    def locked_workflow(self, contract_id: UUID) -> WorkflowDefinition:
        """The workflow definition the contract was locked to at creation."""
        contract = self._contract(contract_id)
        definition = self.session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.id == contract.workflow_definition_id,
                WorkflowDefinitionModel.version == contract.workflow_version,
            )
        ).scalar_one_or_none()
        if definition is None:
            raise WorkflowDefinitionNotFoundError(
                f"{contract.workflow_definition_id} v{contract.workflow_version}"
            )
        return definition.to_dto()

    def remarks_for(self, contract_id: UUID, role: Role) -> VisibleRemarks:
        """Remark channels of the current version that ``role`` may read."""
        return visible_remarks(self.get_current_version(contract_id), role)

    def list_visible_to(
        self, actor: Actor, limit: int = 50, offset: int = 0,
    ) -> Page[ContractRecord]:
        """
        Contracts the actor may see, newest first.

        - client: their own contracts once finance has approved them,
          plus any they created while holding legal
        - legal: contracts they created
        - finance roles: everything past draft, plus any they created
          while holding legal
        - super_admin: everything
        """
        if limit < 1:
            raise ValidationError("limit", "must be positive")
        if offset < 0:
            raise ValidationError("offset", "must be non-negative")

        # Only legal holders can create, so created_by marks earlier legal work.
        created_by_actor = Contract.created_by_id == actor.actor_id
        conditions = []
        if actor.role == Role.CLIENT:
            conditions.append(or_(
                (Contract.client_id == actor.actor_id)
                & ContractVersionModel.status.notin_(_HIDDEN_FROM_CLIENT),
                created_by_actor,
            ))
        elif actor.role == Role.LEGAL:
            conditions.append(created_by_actor)
        elif actor.role in FINANCE_ROLES:
            conditions.append(or_(
                ContractVersionModel.status != ContractStatus.DRAFT.value,
                created_by_actor,
            ))

        base = (
            select(Contract)
            .join(
                ContractVersionModel,
                (ContractVersionModel.contract_id == Contract.id)
                & ContractVersionModel.is_current.is_(True),
            )
            .where(*conditions)
        )
        total = self.session.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()
        contracts = self.session.execute(
            base.order_by(Contract.created_at.desc(), Contract.contract_number)
            .limit(limit)
            .offset(offset)
        ).scalars().all()

        return Page(
            items=tuple(c.to_dto() for c in contracts),
            total=total,
            limit=limit,
            offset=offset,
        )
