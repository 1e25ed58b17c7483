"""
Status graph tests.

The transition table is the only source of legal status moves; the same
pairs are mirrored by the status-graph database trigger.
"""

import pytest

from contract_kernel.domain.workflow import (
    CONTRACT_TRANSITIONS,
    STATUS_GRAPH,
    TERMINAL_STATUSES,
    Command,
    ContractStatus,
    find_transition,
    is_legal_status_change,
)

S = ContractStatus


class TestTransitionTable:

    @pytest.mark.parametrize(
        "status,command,target",
        [
            (S.DRAFT, Command.SUBMIT, S.PENDING_FINANCE),
            (S.DRAFT, Command.EDIT_DRAFT, S.DRAFT),
            (S.PENDING_FINANCE, Command.APPROVE, S.PENDING_CLIENT),
            (S.PENDING_FINANCE, Command.REJECT, S.REJECTED),
            (S.PENDING_CLIENT, Command.APPROVE, S.ACTIVE),
            (S.PENDING_CLIENT, Command.REJECT, S.REJECTED),
            (S.PENDING_CLIENT, Command.CANCEL, S.CANCELLED),
            (S.REJECTED, Command.AMEND, S.DRAFT),
            (S.REJECTED, Command.CANCEL, S.CANCELLED),
            (S.REJECTED, Command.SEND_REMARKS_TO_CLIENT, S.REJECTED),
        ],
    )
    def test_legal_transitions(self, status, command, target):
        transition = find_transition(status, command)
        assert transition is not None
        assert transition.to_status == target

    @pytest.mark.parametrize(
        "status,command",
        [
            (S.DRAFT, Command.APPROVE),
            (S.DRAFT, Command.REJECT),
            (S.DRAFT, Command.AMEND),
            (S.DRAFT, Command.CANCEL),
            (S.PENDING_FINANCE, Command.SUBMIT),
            (S.PENDING_FINANCE, Command.EDIT_DRAFT),
            (S.PENDING_FINANCE, Command.CANCEL),
            (S.PENDING_CLIENT, Command.AMEND),
            (S.REJECTED, Command.APPROVE),
            (S.REJECTED, Command.SUBMIT),
        ],
    )
    def test_illegal_transitions(self, status, command):
        assert find_transition(status, command) is None

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_exits(self, terminal):
        assert all(t.from_status != terminal for t in CONTRACT_TRANSITIONS)

    def test_each_status_command_pair_is_unique(self):
        pairs = [(t.from_status, t.command) for t in CONTRACT_TRANSITIONS]
        assert len(pairs) == len(set(pairs))


class TestStatusGraph:

    def test_amend_is_not_an_in_row_status_change(self):
        assert (S.REJECTED, S.DRAFT) not in STATUS_GRAPH
        assert not is_legal_status_change(S.REJECTED, S.DRAFT)

    def test_self_loops_are_legal(self):
        assert is_legal_status_change(S.DRAFT, S.DRAFT)

    def test_skipping_finance_is_illegal(self):
        assert not is_legal_status_change(S.DRAFT, S.PENDING_CLIENT)
        assert not is_legal_status_change(S.PENDING_FINANCE, S.ACTIVE)

    def test_graph_matches_trigger_pairs(self):
        assert STATUS_GRAPH == {
            (S.DRAFT, S.PENDING_FINANCE),
            (S.PENDING_FINANCE, S.PENDING_CLIENT),
            (S.PENDING_FINANCE, S.REJECTED),
            (S.PENDING_CLIENT, S.ACTIVE),
            (S.PENDING_CLIENT, S.REJECTED),
            (S.PENDING_CLIENT, S.CANCELLED),
            (S.REJECTED, S.CANCELLED),
        }
