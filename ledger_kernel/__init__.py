"""
Ledger Kernel

A double-entry voucher ledger with:
- Template-generated, always-balanced entries
- Draft / post lifecycle with immutable posted vouchers
- Contiguous voucher numbering under concurrent posting
- Balances derived from posted entries on demand
"""

__version__ = "0.1.0"
