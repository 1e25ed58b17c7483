"""
Racing transitions on the same contract version.

Two commands that both start from the same status must not both commit:
the conditional write lets exactly one through and the other fails with
an InvalidStateError (ConcurrentTransitionError when it lost at the write
itself).  Runs against SQLite by default and PostgreSQL with DATABASE_URL.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from contract_kernel.domain.dtos import RejectionRemarks
from contract_kernel.domain.workflow import ContractStatus
from contract_kernel.exceptions import ConcurrentTransitionError, InvalidStateError
from contract_kernel.selectors.contract_selector import ContractSelector

BARRIER_TIMEOUT = 10


def _decisions(commands, contract_id):
    return [
        e.action for e in commands.ledger.trail(contract_id)
        if e.action in ("approved", "rejected", "cancelled")
    ]


class TestInterleavedCommands:
    """The loser reads the version before the winner commits, then writes."""

    def _interleave(self, monkeypatch, loser, winner_command):
        engine = loser.engine
        original = engine._conditional_update
        fired = []

        def late_write(*args, **kwargs):
            if not fired:
                fired.append(True)
                winner_command()
            return original(*args, **kwargs)

        monkeypatch.setattr(engine, "_conditional_update", late_write)

    def test_approve_loses_to_reject(
        self, monkeypatch, session_factory, make_commands, actors, contract_in,
    ):
        contract_id = contract_in(ContractStatus.PENDING_FINANCE)
        winner = make_commands(session_factory())
        loser = make_commands(session_factory())

        self._interleave(
            monkeypatch,
            loser,
            lambda: winner.reject(
                contract_id, actors.senior_finance, RejectionRemarks(internal="Over budget"),
            ),
        )

        with pytest.raises(ConcurrentTransitionError) as exc_info:
            loser.approve(contract_id, actors.finance)
        assert exc_info.value.current_status == "pending_finance"

        check = session_factory()
        version = ContractSelector(check).get_current_version(contract_id)
        assert version.status == ContractStatus.REJECTED
        assert version.approved_by_finance_id is None
        assert _decisions(make_commands(check), contract_id) == ["rejected"]

    def test_client_approve_loses_to_cancel(
        self, monkeypatch, session_factory, make_commands, actors, contract_in,
    ):
        contract_id = contract_in(ContractStatus.PENDING_CLIENT)
        winner = make_commands(session_factory())
        loser = make_commands(session_factory())

        self._interleave(
            monkeypatch, loser, lambda: winner.cancel(contract_id, actors.admin, "Withdrawn"),
        )

        with pytest.raises(ConcurrentTransitionError):
            loser.approve(contract_id, actors.client)

        check = session_factory()
        assert ContractSelector(check).get_current_version(contract_id).status == (
            ContractStatus.CANCELLED
        )
        assert _decisions(make_commands(check), contract_id) == ["approved", "cancelled"]

    def test_double_submit(
        self, monkeypatch, session_factory, make_commands, actors, contract_in, dispatcher,
    ):
        contract_id = contract_in(ContractStatus.DRAFT)
        winner = make_commands(session_factory())
        loser = make_commands(session_factory())

        self._interleave(monkeypatch, loser, lambda: winner.submit(contract_id, actors.legal))
        dispatcher.clear()

        with pytest.raises(ConcurrentTransitionError):
            loser.submit(contract_id, actors.legal)

        check = make_commands(session_factory())
        assert [e.action for e in check.ledger.trail(contract_id)] == ["created", "submitted"]
        # Only the winner's notifications went out.
        assert len(dispatcher.for_recipient(actors.legal)) == 1

    def test_loser_leaves_no_audit_entry(
        self, monkeypatch, session_factory, make_commands, actors, contract_in,
    ):
        contract_id = contract_in(ContractStatus.REJECTED)
        winner = make_commands(session_factory())
        loser = make_commands(session_factory())

        self._interleave(
            monkeypatch, loser,
            lambda: winner.send_remarks_to_client(contract_id, actors.legal, "First"),
        )
        with pytest.raises(ConcurrentTransitionError):
            loser.send_remarks_to_client(contract_id, actors.admin, "Second")

        check = session_factory()
        version = ContractSelector(check).get_current_version(contract_id)
        assert version.remarks_client == "First"
        trail = make_commands(check).ledger.trail(contract_id)
        assert [e.action for e in trail].count("remarks_sent_to_client") == 1


class TestThreadedRaces:

    def _race(self, session_factory, make_commands, *calls):
        barrier = Barrier(len(calls), timeout=BARRIER_TIMEOUT)

        def run(call):
            service = make_commands(session_factory())
            barrier.wait()
            try:
                return call(service), None
            except InvalidStateError as exc:
                return None, exc

        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(run, calls))

    def test_approve_vs_reject_exactly_one_wins(
        self, session_factory, make_commands, actors, contract_in,
    ):
        contract_id = contract_in(ContractStatus.PENDING_FINANCE)

        results = self._race(
            session_factory,
            make_commands,
            lambda s: s.approve(contract_id, actors.finance),
            lambda s: s.reject(
                contract_id, actors.senior_finance, RejectionRemarks(internal="Not this quarter"),
            ),
        )

        winners = [version for version, error in results if error is None]
        losers = [error for version, error in results if error is not None]
        assert len(winners) == 1
        assert len(losers) == 1

        check = session_factory()
        final = ContractSelector(check).get_current_version(contract_id)
        assert final.status == winners[0].status
        assert final.status in (ContractStatus.PENDING_CLIENT, ContractStatus.REJECTED)
        assert len(_decisions(make_commands(check), contract_id)) == 1
        assert make_commands(check).ledger.validate_chain(contract_id)

    def test_independent_contracts_do_not_interfere(
        self, session_factory, make_commands, actors, contract_in,
    ):
        contract_ids = [contract_in(ContractStatus.PENDING_FINANCE) for _ in range(4)]

        results = self._race(
            session_factory,
            make_commands,
            *[
                (lambda s, cid=cid: s.approve(cid, actors.finance))
                for cid in contract_ids
            ],
        )

        assert all(error is None for _, error in results)
        check = ContractSelector(session_factory())
        for contract_id in contract_ids:
            assert check.get_current_version(contract_id).status == ContractStatus.PENDING_CLIENT
