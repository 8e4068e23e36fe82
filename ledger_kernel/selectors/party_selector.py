"""
Module: ledger_kernel.selectors.party_selector
Responsibility: Party ledgers and the receivables / payables reports.
Architecture position: Kernel > Selectors.

A party's ledger is its stored opening balance plus the posted entries on
the control accounts its type trades through (AR for customers, AP for
suppliers, both for BOTH) that carry its party_id.  Customers' ledgers are
debit-normal, suppliers' credit-normal; BOTH is presented debit-normal.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance import balance_side, signed_movement
from ledger_kernel.domain.dtos import LedgerView, PartyBalance, PartyHeader
from ledger_kernel.exceptions import PartyNotFoundError
from ledger_kernel.models.account import Account, AccountRole, NormalBalance
from ledger_kernel.models.party import BalanceSide, Party, PartyType
from ledger_kernel.models.voucher import Entry, Voucher, VoucherStatus
from ledger_kernel.selectors.base import BaseSelector, credit_sum, debit_sum, within_window
from ledger_kernel.selectors.ledger_selector import LedgerSelector, build_ledger_rows


def party_normal_balance(party_type: PartyType) -> NormalBalance:
    if PartyType(party_type) == PartyType.SUPPLIER:
        return NormalBalance.CREDIT
    return NormalBalance.DEBIT


def opening_towards(party: Party, normal: NormalBalance) -> Decimal:
    """Stored opening balance signed towards ``normal``."""
    on_normal = (party.opening_side == BalanceSide.DR) == (normal == NormalBalance.DEBIT)
    return party.opening_balance if on_normal else -party.opening_balance


class PartySelector(BaseSelector):
    """Read-only counterparty queries."""

    def get_party(self, company_id: UUID, party_id: UUID) -> Party:
        party = self.session.get(Party, party_id)
        if party is None or party.company_id != company_id:
            raise PartyNotFoundError(str(party_id))
        return party

    def _role_account_ids(self, company_id: UUID, roles) -> list[UUID]:
        return list(
            self.session.execute(
                select(Account.id).where(
                    Account.company_id == company_id,
                    Account.role.in_(list(roles)),
                )
            ).scalars()
        )

    def party_ledger(
        self,
        company_id: UUID,
        party_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerView:
        party = self.get_party(company_id, party_id)
        normal = party_normal_balance(party.party_type)
        account_ids = self._role_account_ids(company_id, party.ledger_roles)

        opening = opening_towards(party, normal)
        if from_date is not None and account_ids:
            debits, credits = LedgerSelector(self.session).account_totals(
                company_id, account_ids, before=from_date, party_id=party.id
            )
            opening += signed_movement(debits, credits, normal)

        entry_rows = []
        if account_ids:
            query = (
                LedgerSelector(self.session)
                .posted_entries_query(company_id)
                .where(Entry.account_id.in_(account_ids), Entry.party_id == party.id)
            )
            entry_rows = self.session.execute(within_window(query, from_date, to_date)).all()
        rows, total_debit, total_credit, closing = build_ledger_rows(entry_rows, opening, normal)

        return LedgerView(
            party=PartyHeader(
                party_id=party.id,
                code=party.code,
                name=party.name,
                party_type=party.party_type,
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

    def _outstanding(
        self,
        company_id: UUID,
        role: AccountRole,
        party_types: tuple[PartyType, ...],
        normal: NormalBalance,
    ) -> list[PartyBalance]:
        parties = self.session.execute(
            select(Party)
            .where(Party.company_id == company_id, Party.party_type.in_(party_types))
            .order_by(Party.code)
        ).scalars().all()
        if not parties:
            return []

        account_ids = self._role_account_ids(company_id, [role])
        movements: dict[UUID, tuple[Decimal, Decimal]] = {}
        if account_ids:
            totals = self.session.execute(
                select(Entry.party_id, debit_sum(), credit_sum())
                .join(Voucher, Entry.voucher_id == Voucher.id)
                .where(
                    Voucher.company_id == company_id,
                    Voucher.status == VoucherStatus.POSTED,
                    Entry.account_id.in_(account_ids),
                    Entry.party_id.is_not(None),
                )
                .group_by(Entry.party_id)
            ).all()
            movements = {
                r.party_id: (r.debit_total or ZERO, r.credit_total or ZERO) for r in totals
            }

        result = []
        for party in parties:
            opening = opening_towards(party, normal)
            # A BOTH party's opening sits on one control account only
            if party.party_type == PartyType.BOTH and opening < ZERO:
                opening = ZERO
            debits, credits = movements.get(party.id, (ZERO, ZERO))
            balance = opening + signed_movement(debits, credits, normal)
            if balance > ZERO:
                result.append(
                    PartyBalance(
                        party_id=party.id,
                        code=party.code,
                        name=party.name,
                        balance=balance,
                        side=balance_side(balance, normal),
                    )
                )
        return result

    def receivables(self, company_id: UUID) -> list[PartyBalance]:
        """Customers (CUSTOMER or BOTH) who owe us: positive AR balance."""
        return self._outstanding(
            company_id,
            AccountRole.AR,
            (PartyType.CUSTOMER, PartyType.BOTH),
            NormalBalance.DEBIT,
        )

    def payables(self, company_id: UUID) -> list[PartyBalance]:
        """Suppliers (SUPPLIER or BOTH) we owe: positive AP balance."""
        return self._outstanding(
            company_id,
            AccountRole.AP,
            (PartyType.SUPPLIER, PartyType.BOTH),
            NormalBalance.CREDIT,
        )
