"""
Balance arithmetic and money type tests.

Verifies:
- Draft-time validation tolerates differences up to BALANCE_TOLERANCE
- Post-time validation requires exact equality
- Entry-shape rules (two entries minimum, positive amounts)
- Sign convention and DR/CR labelling
- Money column conversion to integer minor units
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from ledger_kernel.db.types import (
    BALANCE_TOLERANCE,
    Money,
    has_money_precision,
    to_decimal,
    within_tolerance,
)
from ledger_kernel.domain.balance import (
    balance_side,
    entry_totals,
    signed_movement,
    validate_draft_entries,
    validate_for_posting,
)
from ledger_kernel.exceptions import UnbalancedEntriesError
from ledger_kernel.models.account import NormalBalance
from ledger_kernel.models.party import BalanceSide
from ledger_kernel.models.voucher import EntrySide


@dataclass
class FakeEntry:
    side: EntrySide
    amount: Decimal


def _pair(debit: str, credit: str) -> list[FakeEntry]:
    return [
        FakeEntry(EntrySide.DEBIT, Decimal(debit)),
        FakeEntry(EntrySide.CREDIT, Decimal(credit)),
    ]


class TestEntryValidation:

    def test_totals(self):
        totals = entry_totals(_pair("10.00", "7.50") + [FakeEntry(EntrySide.CREDIT, Decimal("2.50"))])
        assert totals.debits == Decimal("10.00")
        assert totals.credits == Decimal("10.00")
        assert totals.count == 3
        assert totals.is_balanced

    def test_draft_accepts_difference_within_tolerance(self):
        totals = validate_draft_entries(_pair("100.0005", "100.0000"))
        assert totals.difference == Decimal("0.0005")

    def test_draft_rejects_difference_beyond_tolerance(self):
        with pytest.raises(UnbalancedEntriesError):
            validate_draft_entries(_pair("100.00", "99.99"))

    def test_posting_requires_exact_equality(self):
        with pytest.raises(UnbalancedEntriesError) as exc_info:
            validate_for_posting(_pair("100.0005", "100.0000"))
        assert exc_info.value.debits == Decimal("100.0005")

    def test_posting_accepts_balanced_entries(self):
        assert validate_for_posting(_pair("42.42", "42.42")).is_balanced

    def test_single_entry_is_rejected(self):
        with pytest.raises(UnbalancedEntriesError):
            validate_for_posting([FakeEntry(EntrySide.DEBIT, Decimal("1.00"))])

    def test_non_positive_amount_is_rejected(self):
        with pytest.raises(UnbalancedEntriesError):
            validate_for_posting(_pair("0.00", "0.00"))

    def test_tolerance_boundary(self):
        assert within_tolerance(Decimal("1.001"), Decimal("1.000"))
        assert not within_tolerance(Decimal("1.0011"), Decimal("1.000"))
        assert BALANCE_TOLERANCE == Decimal("0.001")


class TestSignConvention:

    def test_debit_normal_movement(self):
        assert signed_movement(Decimal("100"), Decimal("30"), NormalBalance.DEBIT) == Decimal("70")

    def test_credit_normal_movement(self):
        assert signed_movement(Decimal("100"), Decimal("30"), NormalBalance.CREDIT) == Decimal("-70")

    @pytest.mark.parametrize(
        "signed,normal,expected",
        [
            (Decimal("5"), NormalBalance.DEBIT, BalanceSide.DR),
            (Decimal("-5"), NormalBalance.DEBIT, BalanceSide.CR),
            (Decimal("5"), NormalBalance.CREDIT, BalanceSide.CR),
            (Decimal("-5"), NormalBalance.CREDIT, BalanceSide.DR),
            (Decimal("0"), NormalBalance.DEBIT, BalanceSide.DR),
            (Decimal("0"), NormalBalance.CREDIT, BalanceSide.CR),
        ],
    )
    def test_balance_side(self, signed, normal, expected):
        assert balance_side(signed, normal) == expected


class TestMoneyType:

    def test_binds_to_minor_units(self):
        assert Money().process_bind_param(Decimal("12.34"), None) == 1234
        assert Money().process_bind_param("0.05", None) == 5

    def test_reads_back_two_decimals(self):
        assert Money().process_result_value(1234, None) == Decimal("12.34")
        assert str(Money().process_result_value(500, None)) == "5.00"

    def test_rejects_sub_minor_amounts(self):
        with pytest.raises(ValueError):
            Money().process_bind_param(Decimal("0.001"), None)

    def test_refuses_floats(self):
        with pytest.raises(ValueError):
            to_decimal(0.1)

    def test_precision_helpers(self):
        assert has_money_precision(Decimal("1.10"))
        assert not has_money_precision(Decimal("1.105"))
