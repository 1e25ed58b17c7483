"""Which rejection remark channels each role may read."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from contract_kernel.domain.dtos import ContractTerms, ContractVersionRecord
from contract_kernel.domain.remarks import visible_remarks
from contract_kernel.domain.roles import Role
from contract_kernel.domain.workflow import ContractStatus


def _rejected(**remarks) -> ContractVersionRecord:
    return ContractVersionRecord(
        id=uuid4(),
        contract_id=uuid4(),
        version_number=1,
        terms=ContractTerms(
            name="Consulting Agreement",
            counterpart_email="ops@adventure-works.example.com",
            effective_date=date(2025, 5, 1),
            amount=Decimal("9000"),
        ),
        status=ContractStatus.REJECTED,
        is_current=True,
        created_by_id=uuid4(),
        created_at=datetime(2025, 1, 6, tzinfo=timezone.utc),
        **remarks,
    )


FINANCE_REJECTED = dict(
    remarks_internal="Counterparty credit check failed",
    remarks_client="Please provide a parent company guarantee",
    rejection_remarks="Counterparty credit check failed",
)


class TestVisibleRemarks:

    def test_client_never_sees_internal_remarks(self):
        seen = visible_remarks(_rejected(**FINANCE_REJECTED), Role.CLIENT)
        assert seen.remarks_internal is None
        assert seen.rejection_remarks is None
        assert seen.remarks_client == "Please provide a parent company guarantee"

    @pytest.mark.parametrize(
        "role", [Role.LEGAL, Role.FINANCE, Role.SENIOR_FINANCE, Role.SUPER_ADMIN],
    )
    def test_internal_roles_see_every_channel(self, role):
        seen = visible_remarks(_rejected(**FINANCE_REJECTED), role)
        assert seen.remarks_internal == "Counterparty credit check failed"
        assert seen.remarks_client == "Please provide a parent company guarantee"
        assert seen.rejection_remarks == "Counterparty credit check failed"

    def test_client_sees_own_rejection_remark(self):
        version = _rejected(
            client_remark="Payment terms unacceptable",
            rejection_remarks="Payment terms unacceptable",
        )
        seen = visible_remarks(version, Role.CLIENT)
        assert seen.client_remark == "Payment terms unacceptable"
        assert seen.rejection_remarks == "Payment terms unacceptable"

    def test_withheld_client_remarks_stay_empty(self):
        version = _rejected(
            remarks_internal="Legal entity mismatch",
            rejection_remarks="Legal entity mismatch",
        )
        seen = visible_remarks(version, Role.CLIENT)
        assert seen.remarks_client is None
        assert seen.remarks_internal is None
        assert seen.rejection_remarks is None
