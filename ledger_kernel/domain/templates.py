"""
Template Engine -- Pure mapping from a voucher intent to balanced entries.

Responsibility:
    Turns a resolved voucher input into the ordered list of entries it books.
    Templated vouchers (sales, purchases, receipts, payments, contras) are
    dispatched through a registry of (kind, sub_kind) -> (debit slot, credit
    slot) rules.  Journal vouchers carry caller-supplied lines, which are
    validated for balance instead of being derived.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    No database access, no clock/time, no logging.  Account identities are
    resolved beforehand (services/account_directory.py) and passed in.

Invariants enforced:
    - Every templated entry set is exactly one debit and one credit of the
      same amount, so debits equal credits with no rounding.
    - Journal lines: at least two, every amount positive, debits equal
      credits within BALANCE_TOLERANCE.
    - Amounts are never rounded or split; more than two fractional digits is
      an input error.

Failure modes:
    - InvalidTemplateInputError: unknown kind/sub_kind, missing account for a
      slot, non-positive or over-precise amount, JOURNAL sent through the
      templated variant, fewer than two journal lines.
    - UnbalancedEntriesError: journal debits and credits differ.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, has_money_precision, to_decimal, within_tolerance
from ledger_kernel.exceptions import InvalidTemplateInputError, UnbalancedEntriesError
from ledger_kernel.models.voucher import EntrySide, VoucherKind


class Slot(str, Enum):
    """Named account position a template rule debits or credits."""

    PAYMENT = "payment"
    SALES = "sales"
    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    PURCHASE = "purchase"
    EXPENSE = "expense"
    OWNER = "owner"
    CASH = "cash"
    BANK = "bank"


# Slots that only the caller can fill (the others come from role bindings)
CALLER_SLOTS = frozenset({Slot.PAYMENT, Slot.EXPENSE})


@dataclass(frozen=True)
class TemplateAccounts:
    """
    Account identities available to a template, one per slot.

    Control-account slots are filled by AccountDirectory.template_accounts();
    ``payment`` and ``expense`` are chosen per voucher by the caller.
    """

    cash: UUID | None = None
    bank: UUID | None = None
    sales: UUID | None = None
    purchase: UUID | None = None
    receivable: UUID | None = None
    payable: UUID | None = None
    owner: UUID | None = None
    payment: UUID | None = None
    expense: UUID | None = None

    def for_slot(self, slot: Slot) -> UUID | None:
        return getattr(self, slot.value)


@dataclass(frozen=True)
class TemplateRule:
    """One row of the template table."""

    kind: VoucherKind
    sub_kind: str | None
    debit: Slot
    credit: Slot
    description: str = ""

    @property
    def key(self) -> tuple[VoucherKind, str | None]:
        return (self.kind, self.sub_kind)


class TemplateRegistry:
    """
    Registry for template rules.

    Allows registration and lookup of rules by (kind, sub_kind).
    """

    def __init__(self):
        self._rules: dict[tuple[VoucherKind, str | None], TemplateRule] = {}

    def register(self, rule: TemplateRule) -> None:
        if rule.kind == VoucherKind.JOURNAL:
            raise ValueError("JOURNAL vouchers are freeform and take no template rule")
        self._rules[rule.key] = rule

    def get_rule(self, kind: VoucherKind, sub_kind: str | None) -> TemplateRule | None:
        return self._rules.get((kind, sub_kind))

    def sub_kinds(self, kind: VoucherKind) -> list[str | None]:
        """Sub-kinds registered for a kind, in registration order."""
        return [k[1] for k in self._rules if k[0] == kind]

    def list_rules(self) -> list[TemplateRule]:
        return list(self._rules.values())


def _build_default_registry() -> TemplateRegistry:
    registry = TemplateRegistry()
    for rule in (
        TemplateRule(VoucherKind.SALE, "CASH_SALE", Slot.PAYMENT, Slot.SALES,
                     "Sale settled in cash or bank"),
        TemplateRule(VoucherKind.SALE, "CREDIT_SALE", Slot.RECEIVABLE, Slot.SALES,
                     "Sale on credit"),
        TemplateRule(VoucherKind.PURCHASE, "CASH_PURCHASE", Slot.PURCHASE, Slot.PAYMENT,
                     "Purchase settled in cash or bank"),
        TemplateRule(VoucherKind.PURCHASE, "CREDIT_PURCHASE", Slot.PURCHASE, Slot.PAYABLE,
                     "Purchase on credit"),
        TemplateRule(VoucherKind.RECEIPT, None, Slot.PAYMENT, Slot.RECEIVABLE,
                     "Money received from a customer"),
        TemplateRule(VoucherKind.PAYMENT, "VENDOR_PAYMENT", Slot.PAYABLE, Slot.PAYMENT,
                     "Settle a supplier balance"),
        TemplateRule(VoucherKind.PAYMENT, "EXPENSE_PAYMENT", Slot.EXPENSE, Slot.PAYMENT,
                     "Pay an operating expense"),
        TemplateRule(VoucherKind.PAYMENT, "OWNER_WITHDRAWAL", Slot.OWNER, Slot.PAYMENT,
                     "Drawings by the owner"),
        TemplateRule(VoucherKind.CONTRA, "CASH_TO_BANK", Slot.BANK, Slot.CASH,
                     "Deposit cash into the bank"),
        TemplateRule(VoucherKind.CONTRA, "BANK_TO_CASH", Slot.CASH, Slot.BANK,
                     "Withdraw cash from the bank"),
    ):
        registry.register(rule)
    return registry


_default_registry = _build_default_registry()


def get_default_registry() -> TemplateRegistry:
    """Get the default template registry."""
    return _default_registry


@dataclass(frozen=True)
class GeneratedEntry:
    """One entry produced by the engine, before persistence."""

    account_id: UUID
    side: EntrySide
    amount: Decimal


@dataclass(frozen=True)
class JournalLineInput:
    account_id: UUID
    side: EntrySide
    amount: Decimal


@dataclass(frozen=True)
class TemplatedVoucherInput:
    """Voucher input whose entries are derived from a template rule."""

    kind: VoucherKind
    sub_kind: str | None
    amount: Decimal
    voucher_date: date
    accounts: TemplateAccounts = field(default_factory=TemplateAccounts)
    narration: str | None = None
    party_id: UUID | None = None


@dataclass(frozen=True)
class JournalVoucherInput:
    """Freeform voucher input: the caller supplies every line."""

    lines: tuple[JournalLineInput, ...]
    voucher_date: date
    narration: str | None = None
    party_id: UUID | None = None

    @property
    def kind(self) -> VoucherKind:
        return VoucherKind.JOURNAL

    @property
    def sub_kind(self) -> None:
        return None


ResolvedVoucherInput = TemplatedVoucherInput | JournalVoucherInput


def parse_voucher_kind(kind, sub_kind: str | None = None) -> VoucherKind:
    """VoucherKind from a member or its value; anything else is an input error."""
    try:
        return VoucherKind(kind)
    except ValueError as exc:
        raise InvalidTemplateInputError(str(kind), sub_kind, "unknown voucher kind") from exc


def _checked_amount(value, kind: VoucherKind, sub_kind: str | None) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise InvalidTemplateInputError(kind.value, sub_kind, str(exc)) from exc
    if not amount.is_finite() or amount <= ZERO:
        raise InvalidTemplateInputError(
            kind.value, sub_kind, f"amount must be positive, got {value}"
        )
    if not has_money_precision(amount):
        raise InvalidTemplateInputError(
            kind.value, sub_kind, f"amount {value} has more than two decimal places"
        )
    return amount


def generate_templated_entries(
    kind: VoucherKind,
    sub_kind: str | None,
    amount: Decimal,
    accounts: TemplateAccounts,
    registry: TemplateRegistry | None = None,
) -> tuple[GeneratedEntry, ...]:
    """
    Generate the debit/credit pair for a templated voucher.

    Returns:
        (debit entry, credit entry), both for ``amount``.

    Raises:
        InvalidTemplateInputError: see module docstring.
    """
    registry = registry or _default_registry
    kind = parse_voucher_kind(kind, sub_kind)
    if kind == VoucherKind.JOURNAL:
        raise InvalidTemplateInputError(
            kind.value, sub_kind, "journal vouchers take explicit lines, not a template"
        )

    rule = registry.get_rule(kind, sub_kind)
    if rule is None:
        known = ", ".join(str(s) for s in registry.sub_kinds(kind)) or "none"
        raise InvalidTemplateInputError(
            kind.value, sub_kind, f"unknown sub-kind (expected one of: {known})"
        )

    checked = _checked_amount(amount, kind, sub_kind)

    debit_account = accounts.for_slot(rule.debit)
    credit_account = accounts.for_slot(rule.credit)
    for slot, account_id in ((rule.debit, debit_account), (rule.credit, credit_account)):
        if account_id is None:
            raise InvalidTemplateInputError(
                kind.value, sub_kind, f"missing {slot.value} account"
            )

    return (
        GeneratedEntry(account_id=debit_account, side=EntrySide.DEBIT, amount=checked),
        GeneratedEntry(account_id=credit_account, side=EntrySide.CREDIT, amount=checked),
    )


def generate_journal_entries(
    lines: tuple[JournalLineInput, ...] | list[JournalLineInput],
) -> tuple[GeneratedEntry, ...]:
    """
    Validate caller-supplied journal lines and return them as entries.

    Raises:
        InvalidTemplateInputError: fewer than two lines, or a malformed line.
        UnbalancedEntriesError: debits and credits differ beyond tolerance.
    """
    kind = VoucherKind.JOURNAL
    if not lines or len(lines) < 2:
        raise InvalidTemplateInputError(
            kind.value, None, "journal vouchers need at least two lines"
        )

    entries = []
    for line in lines:
        if line.account_id is None:
            raise InvalidTemplateInputError(kind.value, None, "journal line without account")
        try:
            side = EntrySide(line.side)
        except ValueError as exc:
            raise InvalidTemplateInputError(
                kind.value, None, f"invalid side {line.side!r}"
            ) from exc
        amount = _checked_amount(line.amount, kind, None)
        entries.append(GeneratedEntry(account_id=line.account_id, side=side, amount=amount))

    debits = sum((e.amount for e in entries if e.side == EntrySide.DEBIT), ZERO)
    credits = sum((e.amount for e in entries if e.side == EntrySide.CREDIT), ZERO)
    if not within_tolerance(debits, credits):
        raise UnbalancedEntriesError(
            f"Journal is unbalanced: debits {debits} != credits {credits}",
            debits=debits,
            credits=credits,
        )
    return tuple(entries)


def generate_entries(
    voucher_input: ResolvedVoucherInput,
    registry: TemplateRegistry | None = None,
) -> tuple[GeneratedEntry, ...]:
    """Dispatch on the input variant.  Single entry point used by the draft service."""
    if isinstance(voucher_input, JournalVoucherInput):
        return generate_journal_entries(voucher_input.lines)
    if isinstance(voucher_input, TemplatedVoucherInput):
        return generate_templated_entries(
            voucher_input.kind,
            voucher_input.sub_kind,
            voucher_input.amount,
            voucher_input.accounts,
            registry,
        )
    raise TypeError(f"Unsupported voucher input: {type(voucher_input).__name__}")
