"""
WorkflowDefinitionStore: bootstrap, versioning and workflow locking.
"""

from uuid import uuid4

import pytest

from contract_kernel.domain.roles import Role
from contract_kernel.domain.workflow import (
    ContractStatus,
    StepAction,
    StepTemplate,
    WorkflowTemplate,
)
from contract_kernel.exceptions import (
    UnauthorizedError,
    ValidationError,
    WorkflowDefinitionNotFoundError,
)
from contract_kernel.services.workflow_definition_store import (
    SYSTEM_ACTOR_ID,
    WorkflowDefinitionStore,
)

SPACED = WorkflowTemplate(
    name="Spaced Approval Workflow",
    description="Step orders leave room for future stages",
    steps=(
        StepTemplate(10, "Legal Submission", Role.LEGAL, StepAction.SUBMIT),
        StepTemplate(15, "Procurement Check", Role.FINANCE, StepAction.REVIEW, is_active=False),
        StepTemplate(20, "Senior Finance Review", Role.SENIOR_FINANCE, StepAction.REVIEW),
        StepTemplate(30, "Client Sign-off", Role.CLIENT, StepAction.FINAL_APPROVE),
    ),
)


@pytest.fixture
def store(session, deterministic_clock):
    return WorkflowDefinitionStore(session, deterministic_clock)


class TestBootstrap:

    def test_get_active_persists_default(self, store, deterministic_clock):
        definition = store.get_active()

        assert definition.version == 1
        assert definition.is_active
        assert definition.name == "Standard Approval Workflow"
        assert definition.created_by_id == SYSTEM_ACTOR_ID
        assert definition.created_at == deterministic_clock.now()
        assert [s.order for s in definition.steps] == [1, 2, 3]
        assert [s.required_role for s in definition.steps] == [
            Role.LEGAL, Role.FINANCE, Role.CLIENT,
        ]

    def test_bootstrap_happens_once(self, store):
        first = store.get_active()
        second = store.get_active()
        assert first.id == second.id
        assert len(store.list_versions()) == 1

    def test_bootstrap_attribution(self, store, actors):
        assert store.get_active(actors.admin).created_by_id == actors.admin

    def test_custom_default_template(self, session, deterministic_clock):
        store = WorkflowDefinitionStore(session, deterministic_clock, SPACED)
        definition = store.get_active()
        assert definition.name == "Spaced Approval Workflow"
        assert definition.reviewer_roles() == frozenset({Role.SENIOR_FINANCE})


class TestCreateVersion:

    def test_supersedes_active_definition(self, store, actors):
        first = store.get_active()
        second = store.create_version(SPACED, actors.admin)

        assert second.version == 2
        assert second.is_active
        assert store.get_active().id == second.id
        assert store.get(first.id).is_active is False
        assert [d.version for d in store.list_versions()] == [1, 2]

    def test_first_version_without_bootstrap(self, store, actors):
        definition = store.create_version(SPACED, actors.admin)
        assert definition.version == 1
        assert definition.created_by_id == actors.admin

    def test_versions_increase(self, store, actors):
        versions = [store.create_version(SPACED, actors.admin).version for _ in range(3)]
        assert versions == [1, 2, 3]
        assert sum(1 for d in store.list_versions() if d.is_active) == 1

    def test_steps_persisted_in_order(self, store, actors):
        definition = store.create_version(SPACED, actors.admin)
        assert [s.order for s in definition.steps] == [10, 15, 20, 30]
        assert [s.order for s in definition.active_steps] == [10, 20, 30]
        assert definition.step_for_status(ContractStatus.PENDING_FINANCE) == 20
        assert definition.step_for_status(ContractStatus.ACTIVE) == 31

    def test_invalid_template_rejected(self, store, actors):
        broken = WorkflowTemplate(
            name="Client first",
            steps=(
                StepTemplate(1, "Client Approval", Role.CLIENT, StepAction.FINAL_APPROVE),
                StepTemplate(2, "Legal Submission", Role.LEGAL, StepAction.SUBMIT),
            ),
        )
        with pytest.raises(ValidationError):
            store.create_version(broken, actors.admin)
        assert store.list_versions() == []


class TestLookups:

    def test_get_unknown_id(self, store):
        with pytest.raises(WorkflowDefinitionNotFoundError):
            store.get(uuid4())

    def test_get_by_version(self, store, actors):
        store.get_active()
        store.create_version(SPACED, actors.admin)
        assert store.get_by_version(2).name == "Spaced Approval Workflow"
        with pytest.raises(WorkflowDefinitionNotFoundError):
            store.get_by_version(3)


class TestWorkflowLocking:

    def test_existing_contracts_keep_their_definition(
        self, commands, actors, terms, contract_in, selector,
    ):
        old_contract = contract_in(ContractStatus.PENDING_FINANCE)
        commands.publish_workflow(actors.admin, SPACED)

        locked = selector.locked_workflow(old_contract)
        assert locked.version == 1
        assert locked.is_active is False

        # Workflow v1 still admits plain finance reviewers.
        version = commands.approve(old_contract, actors.finance)
        assert version.status == ContractStatus.PENDING_CLIENT
        assert selector.get_contract(old_contract).current_step == 3

    def test_new_contracts_use_new_definition(self, commands, actors, terms, selector):
        commands.create_contract(actors.legal, actors.client, terms)
        commands.publish_workflow(actors.admin, SPACED)

        contract, _ = commands.create_contract(actors.legal, actors.client, terms)
        assert contract.workflow_version == 2
        assert contract.current_step == 10

        commands.submit(contract.id, actors.legal)
        assert selector.get_contract(contract.id).current_step == 20
        with pytest.raises(UnauthorizedError):
            commands.approve(contract.id, actors.finance)

    def test_publishing_requires_capability(self, commands, actors):
        with pytest.raises(UnauthorizedError) as exc_info:
            commands.publish_workflow(actors.legal, SPACED)
        assert exc_info.value.capability == "configure_workflow"
        assert commands.definitions.list_versions() == []
