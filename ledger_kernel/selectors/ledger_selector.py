"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Account books, trial balance and profit & loss, derived from
    posted entries at query time.  There are no stored balances anywhere.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Opening balance of a book = signed sum of posted entries dated strictly
      before the window start; rows accumulate in (voucher date, creation
      order) so closing = opening + sum of the rows' signed movements.
    - Sign convention: balances are signed towards the account's normal side
      (assets and expenses debit, the rest credit) and labelled DR/CR.
    - Trial balance: total_debit == total_credit for any state reachable
      through the kernel (is_balanced is the sanity check).

Failure modes:
    - Returns empty rows and zero balances when nothing is posted.
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance import balance_side, signed_movement
from ledger_kernel.domain.dtos import (
    AccountHeader,
    LedgerRow,
    LedgerView,
    ProfitAndLoss,
    ProfitAndLossLine,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.voucher import Entry, EntrySide, Voucher, VoucherStatus, VoucherType
from ledger_kernel.selectors.base import BaseSelector, credit_sum, debit_sum, within_window


def build_ledger_rows(
    entry_rows,
    opening: Decimal,
    normal_balance: NormalBalance,
) -> tuple[list[LedgerRow], Decimal, Decimal, Decimal]:
    """
    Fold ordered entry rows into one LedgerRow per voucher.

    ``entry_rows`` must be ordered by (voucher date, voucher creation, voucher
    id) and expose voucher_id, voucher_date, voucher_number, voucher_kind,
    narration, side and amount.

    Returns:
        (rows, total_debit, total_credit, closing balance)
    """
    grouped: OrderedDict[UUID, dict] = OrderedDict()
    for row in entry_rows:
        bucket = grouped.get(row.voucher_id)
        if bucket is None:
            bucket = grouped[row.voucher_id] = {
                "row": row,
                "debit": ZERO,
                "credit": ZERO,
            }
        if row.side == EntrySide.DEBIT:
            bucket["debit"] += row.amount
        else:
            bucket["credit"] += row.amount

    balance = opening
    total_debit = ZERO
    total_credit = ZERO
    rows: list[LedgerRow] = []
    for voucher_id, bucket in grouped.items():
        head = bucket["row"]
        debit, credit = bucket["debit"], bucket["credit"]
        total_debit += debit
        total_credit += credit
        balance += signed_movement(debit, credit, normal_balance)
        rows.append(
            LedgerRow(
                voucher_date=head.voucher_date,
                voucher_id=voucher_id,
                voucher_number=head.voucher_number,
                voucher_kind=head.voucher_kind,
                narration=head.narration,
                debit=debit,
                credit=credit,
                balance=balance,
                side=balance_side(balance, normal_balance),
            )
        )
    return rows, total_debit, total_credit, balance


class LedgerSelector(BaseSelector):
    """Read-only ledger queries over posted entries."""

    def posted_entries_query(self, company_id: UUID):
        return (
            select(
                Entry.side,
                Entry.amount,
                Voucher.id.label("voucher_id"),
                Voucher.voucher_date,
                Voucher.voucher_number,
                VoucherType.code.label("voucher_kind"),
                Voucher.narration,
            )
            .join(Voucher, Entry.voucher_id == Voucher.id)
            .join(VoucherType, Voucher.voucher_type_id == VoucherType.id)
            .where(
                Voucher.company_id == company_id,
                Voucher.status == VoucherStatus.POSTED,
            )
            .order_by(
                Voucher.voucher_date,
                Voucher.created_at,
                Voucher.id,
                Entry.line_no,
            )
        )

    def account_totals(
        self,
        company_id: UUID,
        account_ids: list[UUID],
        before: date | None = None,
        party_id: UUID | None = None,
    ) -> tuple[Decimal, Decimal]:
        """(debits, credits) of posted entries on the accounts, optionally before a date."""
        query = (
            select(debit_sum(), credit_sum())
            .select_from(Entry)
            .join(Voucher, Entry.voucher_id == Voucher.id)
            .where(
                Voucher.company_id == company_id,
                Voucher.status == VoucherStatus.POSTED,
                Entry.account_id.in_(account_ids),
            )
        )
        if before is not None:
            query = query.where(Voucher.voucher_date < before)
        if party_id is not None:
            query = query.where(Entry.party_id == party_id)
        row = self.session.execute(query).one()
        return (row.debit_total or ZERO, row.credit_total or ZERO)

    def account_book(
        self,
        company_id: UUID,
        account: Account,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerView:
        """
        Running balance of one account over an inclusive date window.

        Postconditions:
            closing_balance == opening_balance + sum of signed row movements.
        """
        normal = account.normal_balance
        opening = ZERO
        if from_date is not None:
            debits, credits = self.account_totals(company_id, [account.id], before=from_date)
            opening = signed_movement(debits, credits, normal)

        query = self.posted_entries_query(company_id).where(Entry.account_id == account.id)
        entry_rows = self.session.execute(within_window(query, from_date, to_date)).all()
        rows, total_debit, total_credit, closing = build_ledger_rows(entry_rows, opening, normal)

        return LedgerView(
            account=AccountHeader(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                normal_balance=normal,
            ),
            from_date=from_date,
            to_date=to_date,
            opening_balance=opening,
            opening_side=balance_side(opening, normal),
            rows=tuple(rows),
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=closing,
            closing_side=balance_side(closing, normal),
        )

    def trial_balance(
        self,
        company_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> TrialBalance:
        """
        Posted debit and credit totals per account, ordered by account code.

        No date filter by default; with a window, only entries inside it.
        """
        query = (
            select(
                Account.id.label("account_id"),
                Account.code,
                Account.name,
                Account.account_type,
                debit_sum(),
                credit_sum(),
            )
            .select_from(Entry)
            .join(Voucher, Entry.voucher_id == Voucher.id)
            .join(Account, Entry.account_id == Account.id)
            .where(
                Voucher.company_id == company_id,
                Voucher.status == VoucherStatus.POSTED,
            )
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        results = self.session.execute(within_window(query, from_date, to_date)).all()

        rows = tuple(
            TrialBalanceRow(
                account_id=r.account_id,
                code=r.code,
                name=r.name,
                account_type=r.account_type,
                debit=r.debit_total or ZERO,
                credit=r.credit_total or ZERO,
            )
            for r in results
        )
        return TrialBalance(
            rows=rows,
            total_debit=sum((r.debit for r in rows), ZERO),
            total_credit=sum((r.credit for r in rows), ZERO),
            from_date=from_date,
            to_date=to_date,
        )

    def profit_and_loss(
        self,
        company_id: UUID,
        from_date: date,
        to_date: date,
    ) -> ProfitAndLoss:
        """
        Income (credit - debit) and expenses (debit - credit) within a window.

        Accounts with no posted activity in the window are omitted.
        """
        trial = self.trial_balance(company_id, from_date, to_date)
        income = tuple(
            ProfitAndLossLine(r.account_id, r.code, r.name, r.credit - r.debit)
            for r in trial.rows
            if r.account_type == AccountType.INCOME
        )
        expenses = tuple(
            ProfitAndLossLine(r.account_id, r.code, r.name, r.debit - r.credit)
            for r in trial.rows
            if r.account_type == AccountType.EXPENSE
        )
        return ProfitAndLoss(
            from_date=from_date,
            to_date=to_date,
            income=income,
            expenses=expenses,
            total_income=sum((line.amount for line in income), ZERO),
            total_expenses=sum((line.amount for line in expenses), ZERO),
        )
