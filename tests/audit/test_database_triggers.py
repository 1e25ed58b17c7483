"""
Database-level immutability triggers (the second enforcement layer).

Raw SQL bypasses the ORM listeners entirely, so these statements reach
the database and must be refused by the triggers.  The last class drops
the triggers on purpose to show that the hash chain still exposes
tampering.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from contract_kernel.db.engine import get_engine
from contract_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from contract_kernel.db.triggers import (
    get_missing_triggers,
    install_immutability_triggers,
    triggers_installed,
    uninstall_immutability_triggers,
)
from contract_kernel.domain.workflow import ContractStatus
from contract_kernel.exceptions import AuditChainBrokenError


@contextmanager
def disabled_immutability():
    """Disable both enforcement layers; restore them afterwards."""
    engine = get_engine()
    unregister_immutability_listeners()
    uninstall_immutability_triggers(engine)
    try:
        yield
    finally:
        register_immutability_listeners()
        install_immutability_triggers(engine)


def _refused(session, sql, params, marker="IMMUTABLE_RESOURCE"):
    with pytest.raises(DBAPIError) as exc_info:
        session.execute(text(sql), params)
    session.rollback()
    assert marker in str(exc_info.value)


class TestInstallation:

    def test_all_triggers_installed(self, db_engine):
        assert triggers_installed(db_engine)
        assert get_missing_triggers(db_engine) == []

    def test_uninstall_and_reinstall(self, db_engine):
        uninstall_immutability_triggers(db_engine)
        assert not triggers_installed(db_engine)
        install_immutability_triggers(db_engine)
        install_immutability_triggers(db_engine)
        assert triggers_installed(db_engine)


class TestAuditEntries:

    def test_update_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.DRAFT)
        _refused(
            session,
            "UPDATE audit_entries SET remarks = 'rewritten' WHERE contract_id = :cid",
            {"cid": str(contract_id)},
        )

    def test_delete_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.DRAFT)
        _refused(
            session,
            "DELETE FROM audit_entries WHERE contract_id = :cid",
            {"cid": str(contract_id)},
        )


class TestWorkflowDefinitions:

    def test_step_update_refused(self, session, commands):
        definition = commands.definitions.get_active()
        session.commit()
        _refused(
            session,
            "UPDATE workflow_steps SET required_role = 'legal' WHERE definition_id = :did",
            {"did": str(definition.id)},
        )

    def test_rename_refused(self, session, commands):
        definition = commands.definitions.get_active()
        session.commit()
        _refused(
            session,
            "UPDATE workflow_definitions SET name = 'renamed' WHERE id = :did",
            {"did": str(definition.id)},
        )


class TestContracts:

    def test_workflow_lock_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.DRAFT)
        _refused(
            session,
            "UPDATE contracts SET workflow_version = 2 WHERE id = :cid",
            {"cid": str(contract_id)},
        )

    def test_delete_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.DRAFT)
        _refused(
            session,
            "DELETE FROM contracts WHERE id = :cid",
            {"cid": str(contract_id)},
        )


class TestContractVersions:

    def test_status_skip_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.DRAFT)
        _refused(
            session,
            "UPDATE contract_versions SET status = 'active' WHERE contract_id = :cid",
            {"cid": str(contract_id)},
            marker="INVALID_STATE",
        )

    def test_reopen_terminal_refused(self, session, contract_in):
        contract_id = contract_in(ContractStatus.ACTIVE)
        _refused(
            session,
            "UPDATE contract_versions SET status = 'draft' WHERE contract_id = :cid",
            {"cid": str(contract_id)},
            marker="INVALID_STATE",
        )

    def test_terms_frozen_after_submit(self, session, contract_in):
        contract_id = contract_in(ContractStatus.PENDING_FINANCE)
        _refused(
            session,
            "UPDATE contract_versions SET name = 'swapped' WHERE contract_id = :cid",
            {"cid": str(contract_id)},
        )

    def test_decision_fields_write_once(self, session, contract_in):
        contract_id = contract_in(ContractStatus.REJECTED)
        _refused(
            session,
            "UPDATE contract_versions SET remarks_internal = 'softened' WHERE contract_id = :cid",
            {"cid": str(contract_id)},
        )

    def test_superseded_version_refused(self, session, commands, actors, contract_in):
        contract_id = contract_in(ContractStatus.REJECTED)
        commands.amend(contract_id, actors.legal)
        _refused(
            session,
            "UPDATE contract_versions SET status = 'cancelled' "
            "WHERE contract_id = :cid AND version_number = 1",
            {"cid": str(contract_id)},
        )

    def test_legal_transition_allowed(self, session, contract_in):
        contract_id = contract_in(ContractStatus.PENDING_CLIENT)
        session.execute(
            text("UPDATE contract_versions SET status = 'cancelled' WHERE contract_id = :cid"),
            {"cid": str(contract_id)},
        )
        session.rollback()


class TestTamperDetection:

    def test_rewritten_remarks_break_the_chain(self, session, commands, contract_in):
        contract_id = contract_in(ContractStatus.REJECTED)
        assert commands.ledger.validate_chain(contract_id)
        session.commit()

        with disabled_immutability():
            session.execute(
                text(
                    "UPDATE audit_entries SET remarks = 'Approved budget' "
                    "WHERE contract_id = :cid AND seq = 3"
                ),
                {"cid": str(contract_id)},
            )
            session.commit()

        session.expire_all()
        with pytest.raises(AuditChainBrokenError):
            commands.ledger.validate_chain(contract_id)

    def test_deleted_entry_breaks_the_chain(self, session, commands, contract_in):
        contract_id = contract_in(ContractStatus.ACTIVE)
        session.commit()

        with disabled_immutability():
            session.execute(
                text("DELETE FROM audit_entries WHERE contract_id = :cid AND seq = 2"),
                {"cid": str(contract_id)},
            )
            session.commit()

        session.expire_all()
        with pytest.raises(AuditChainBrokenError):
            commands.ledger.validate_chain(contract_id)
