"""
Balance arithmetic -- pure helpers shared by the write and read paths.

Responsibility:
    Debit/credit totals and the two validation levels (draft-time tolerance,
    post-time exact equality), plus the sign convention used by every book:
    a signed balance is positive on the account's normal side.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Works on anything
    with ``side`` and ``amount`` attributes (GeneratedEntry or ORM Entry).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from ledger_kernel.db.types import ZERO, within_tolerance
from ledger_kernel.exceptions import UnbalancedEntriesError
from ledger_kernel.models.account import NormalBalance
from ledger_kernel.models.party import BalanceSide
from ledger_kernel.models.voucher import EntrySide


class HasSideAndAmount(Protocol):
    side: EntrySide
    amount: Decimal


@dataclass(frozen=True)
class EntryTotals:
    debits: Decimal
    credits: Decimal
    count: int

    @property
    def difference(self) -> Decimal:
        return self.debits - self.credits

    @property
    def is_balanced(self) -> bool:
        return self.debits == self.credits


def entry_totals(entries: Iterable[HasSideAndAmount]) -> EntryTotals:
    debits = ZERO
    credits = ZERO
    count = 0
    for entry in entries:
        count += 1
        if entry.side == EntrySide.DEBIT:
            debits += entry.amount
        else:
            credits += entry.amount
    return EntryTotals(debits=debits, credits=credits, count=count)


def _check_shape(entries: list[HasSideAndAmount]) -> None:
    if len(entries) < 2:
        raise UnbalancedEntriesError(
            f"A voucher needs at least two entries, got {len(entries)}"
        )
    for entry in entries:
        if entry.amount is None or entry.amount <= ZERO:
            raise UnbalancedEntriesError(
                f"Entry amounts must be positive, got {entry.amount}"
            )


def validate_draft_entries(entries: Iterable[HasSideAndAmount]) -> EntryTotals:
    """
    Draft-time check used by create and regenerate.

    Raises:
        UnbalancedEntriesError: fewer than two entries, a non-positive
            amount, or debits and credits differing beyond BALANCE_TOLERANCE.
    """
    entries = list(entries)
    _check_shape(entries)
    totals = entry_totals(entries)
    if not within_tolerance(totals.debits, totals.credits):
        raise UnbalancedEntriesError(
            f"Entries are unbalanced: debits {totals.debits} != credits {totals.credits}",
            debits=totals.debits,
            credits=totals.credits,
        )
    return totals


def validate_for_posting(entries: Iterable[HasSideAndAmount]) -> EntryTotals:
    """
    Post-time check: the final, authoritative one.  Requires exact equality.

    Raises:
        UnbalancedEntriesError: as validate_draft_entries, with no tolerance.
    """
    entries = list(entries)
    _check_shape(entries)
    totals = entry_totals(entries)
    if not totals.is_balanced:
        raise UnbalancedEntriesError(
            f"Cannot post unbalanced voucher: debits {totals.debits} != "
            f"credits {totals.credits}",
            debits=totals.debits,
            credits=totals.credits,
        )
    return totals


def signed_movement(
    debit: Decimal,
    credit: Decimal,
    normal_balance: NormalBalance = NormalBalance.DEBIT,
) -> Decimal:
    """Net movement expressed on the normal side (positive = towards normal)."""
    if normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


def balance_side(
    signed_balance: Decimal,
    normal_balance: NormalBalance = NormalBalance.DEBIT,
) -> BalanceSide:
    """DR/CR label for a signed balance.  Zero reports the normal side."""
    debit_side = (signed_balance >= ZERO) == (normal_balance == NormalBalance.DEBIT)
    return BalanceSide.DR if debit_side else BalanceSide.CR
