"""
Contract terms validation.

ContractTerms validates itself on construction; TermsUpdate only names
the four mutable term fields.
"""

from dataclasses import fields
from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from contract_kernel.domain.dtos import ContractTerms, RejectionRemarks, TermsUpdate
from contract_kernel.exceptions import ValidationError


def _terms(**overrides) -> ContractTerms:
    values = {
        "name": "Supply Agreement",
        "counterpart_email": "legal@contoso.example.com",
        "effective_date": date(2025, 3, 1),
        "amount": Decimal("5000.00"),
    }
    values.update(overrides)
    return ContractTerms(**values)


class TestContractTerms:

    def test_valid_terms(self):
        terms = _terms()
        assert terms.amount == Decimal("5000.00")

    def test_float_amount_coerced_exactly(self):
        assert _terms(amount=0.1).amount == Decimal("0.1")

    def test_string_amount_coerced(self):
        assert _terms(amount="1250.50").amount == Decimal("1250.50")

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, name):
        with pytest.raises(ValidationError) as exc_info:
            _terms(name=name)
        assert exc_info.value.field == "name"

    def test_overlong_name_rejected(self):
        with pytest.raises(ValidationError):
            _terms(name="x" * 201)

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "two@@example.com", "sp ace@example.com"])
    def test_bad_email_rejected(self, email):
        with pytest.raises(ValidationError) as exc_info:
            _terms(counterpart_email=email)
        assert exc_info.value.field == "counterpart_email"

    def test_email_normalized(self):
        terms = _terms(counterpart_email="  Legal@Contoso.Example.COM ")
        assert terms.counterpart_email == "legal@contoso.example.com"
        assert terms == _terms()

    def test_email_update_normalized(self):
        updated = TermsUpdate(counterpart_email="Buyer@Northwind.example.com").apply_to(_terms())
        assert updated.counterpart_email == "buyer@northwind.example.com"

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _terms(amount=Decimal("-0.01"))
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", None])
    def test_non_numeric_amount_rejected(self, amount):
        with pytest.raises(ValidationError):
            _terms(amount=amount)

    def test_effective_date_must_be_a_date(self):
        with pytest.raises(ValidationError):
            _terms(effective_date="2025-03-01")

    @settings(max_examples=50, deadline=None)
    @given(
        amount=st.decimals(
            min_value=Decimal("0"),
            max_value=Decimal("1000000000"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        )
    )
    def test_non_negative_amounts_accepted(self, amount):
        assert _terms(amount=amount).amount == amount


class TestTermsUpdate:

    def test_only_term_fields_exist(self):
        assert {f.name for f in fields(TermsUpdate)} == {
            "name", "counterpart_email", "effective_date", "amount",
        }

    def test_empty_update(self):
        assert TermsUpdate().is_empty()
        assert not TermsUpdate(name="Renamed").is_empty()

    def test_apply_keeps_unchanged_fields(self):
        updated = TermsUpdate(amount=Decimal("7500")).apply_to(_terms())
        assert updated.amount == Decimal("7500")
        assert updated.name == "Supply Agreement"

    def test_apply_revalidates(self):
        with pytest.raises(ValidationError):
            TermsUpdate(counterpart_email="broken").apply_to(_terms())

    @settings(max_examples=50, deadline=None)
    @given(name=st.text(min_size=1, max_size=200).filter(lambda s: s.strip()))
    def test_any_non_blank_name_applies(self, name):
        assert TermsUpdate(name=name).apply_to(_terms()).name == name


class TestRejectionRemarks:

    def test_finance_internal_prefers_internal_channel(self):
        remarks = RejectionRemarks(remarks="unified", internal="internal")
        assert remarks.finance_internal() == "internal"

    def test_finance_internal_falls_back_to_unified_text(self):
        assert RejectionRemarks(remarks="unified").finance_internal() == "unified"

    def test_whitespace_counts_as_missing(self):
        remarks = RejectionRemarks(remarks="  ", internal="\n", client=" ")
        assert remarks.finance_internal() is None
        assert remarks.finance_client() is None
        assert remarks.client_remark() is None

    def test_client_remark_uses_unified_text(self):
        assert RejectionRemarks(remarks=" too expensive ").client_remark() == "too expensive"
