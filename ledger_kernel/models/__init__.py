"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountRole,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.company import Company
from ledger_kernel.models.party import BalanceSide, Party, PartyType
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.models.voucher import (
    Entry,
    EntrySide,
    Voucher,
    VoucherKind,
    VoucherStatus,
    VoucherType,
)

__all__ = [
    "Account",
    "AccountRole",
    "AccountType",
    "NormalBalance",
    "normal_balance_for",
    "Company",
    "Party",
    "PartyType",
    "BalanceSide",
    "SequenceCounter",
    "Voucher",
    "VoucherType",
    "VoucherKind",
    "VoucherStatus",
    "Entry",
    "EntrySide",
]
