"""Roles, capabilities and the built-in capability table."""

import pytest

from contract_kernel.domain.roles import (
    DEFAULT_CAPABILITY_TABLE,
    FINANCE_ROLES,
    Capability,
    Role,
    has_capability,
)
from contract_kernel.exceptions import ValidationError
from contract_services.permission_oracle import CapabilityTableOracle


class TestRoleParsing:

    def test_parse_accepts_enum_and_value(self):
        assert Role.parse(Role.LEGAL) is Role.LEGAL
        assert Role.parse("senior_finance") is Role.SENIOR_FINANCE

    def test_parse_rejects_free_form_role(self):
        with pytest.raises(ValidationError) as exc_info:
            Role.parse("manager")
        assert exc_info.value.field == "role"

    def test_finance_roles(self):
        assert FINANCE_ROLES == {Role.FINANCE, Role.SENIOR_FINANCE}


class TestDefaultCapabilityTable:

    def test_every_role_has_a_full_row(self):
        assert set(DEFAULT_CAPABILITY_TABLE) == set(Role)
        for row in DEFAULT_CAPABILITY_TABLE.values():
            assert set(row) == {c.value for c in Capability}

    @pytest.mark.parametrize(
        "role,capability,granted",
        [
            (Role.LEGAL, Capability.CREATE_CONTRACT, True),
            (Role.LEGAL, Capability.APPROVE_CONTRACT, False),
            (Role.FINANCE, Capability.APPROVE_CONTRACT, True),
            (Role.FINANCE, Capability.VIEW_AUDIT_LOGS, False),
            (Role.SENIOR_FINANCE, Capability.VIEW_AUDIT_LOGS, True),
            (Role.CLIENT, Capability.CANCEL_CONTRACT, True),
            (Role.CLIENT, Capability.CANCEL_ANY_CONTRACT, False),
            (Role.SUPER_ADMIN, Capability.CANCEL_ANY_CONTRACT, True),
            (Role.SUPER_ADMIN, Capability.APPROVE_CONTRACT, False),
        ],
    )
    def test_grants(self, role, capability, granted):
        assert has_capability(DEFAULT_CAPABILITY_TABLE[role], capability) is granted

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CAPABILITY_TABLE[Role.CLIENT]["create_contract"] = True

    def test_missing_entry_is_denied(self):
        assert has_capability({}, Capability.CREATE_CONTRACT) is False


class TestCapabilityTableOracle:

    def test_default_oracle_uses_builtin_table(self):
        oracle = CapabilityTableOracle()
        assert oracle.capabilities(Role.LEGAL)["submit_contract"] is True

    def test_returned_map_is_a_copy(self):
        oracle = CapabilityTableOracle()
        caps = oracle.capabilities(Role.CLIENT)
        caps["create_contract"] = True
        assert oracle.capabilities(Role.CLIENT)["create_contract"] is False

    def test_custom_table_fills_missing_capabilities(self):
        oracle = CapabilityTableOracle({Role.LEGAL: {"create_contract": True}})
        caps = oracle.capabilities(Role.LEGAL)
        assert caps["create_contract"] is True
        assert caps["submit_contract"] is False
        assert set(caps) == {c.value for c in Capability}

    def test_unlisted_role_gets_nothing(self):
        oracle = CapabilityTableOracle({Role.LEGAL: {"create_contract": True}})
        assert not any(oracle.capabilities(Role.FINANCE).values())
