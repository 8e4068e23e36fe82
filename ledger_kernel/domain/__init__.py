"""Pure domain core: template engine, balance arithmetic, clock."""

from ledger_kernel.domain.balance import (
    EntryTotals,
    balance_side,
    entry_totals,
    signed_movement,
    validate_draft_entries,
    validate_for_posting,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.templates import (
    GeneratedEntry,
    JournalLineInput,
    JournalVoucherInput,
    ResolvedVoucherInput,
    Slot,
    TemplateAccounts,
    TemplatedVoucherInput,
    TemplateRegistry,
    TemplateRule,
    generate_entries,
    generate_journal_entries,
    generate_templated_entries,
    get_default_registry,
    parse_voucher_kind,
)

__all__ = [
    "EntryTotals",
    "balance_side",
    "entry_totals",
    "signed_movement",
    "validate_draft_entries",
    "validate_for_posting",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "GeneratedEntry",
    "JournalLineInput",
    "JournalVoucherInput",
    "ResolvedVoucherInput",
    "Slot",
    "TemplateAccounts",
    "TemplatedVoucherInput",
    "TemplateRegistry",
    "TemplateRule",
    "generate_entries",
    "generate_journal_entries",
    "generate_templated_entries",
    "get_default_registry",
    "parse_voucher_kind",
]
