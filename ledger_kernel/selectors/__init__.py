"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.ledger_selector import LedgerSelector, build_ledger_rows
from ledger_kernel.selectors.party_selector import PartySelector
from ledger_kernel.selectors.voucher_selector import VoucherSelector

__all__ = [
    "LedgerSelector",
    "PartySelector",
    "VoucherSelector",
    "build_ledger_rows",
]
