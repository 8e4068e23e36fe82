"""
AccountDirectory -- role and code to account resolution.

Responsibility:
    Resolves business roles (CASH, BANK, SALES, PURCHASE, AR, AP, OWNER)
    and explicit account codes to account identities within a company, and
    turns a business VoucherPayload into a ResolvedVoucherInput for the
    Template Engine.

Architecture position:
    Kernel > Services.  Read-only against accounts, parties and voucher
    types; never writes.

Invariants enforced:
    - A role resolves to exactly one active account.  Zero is
      AccountNotFoundError; more than one is RoleBindingError.  Ambiguity is
      rejected, never resolved by row order.
    - Only the slots a template rule actually uses are resolved, so a
      company without (say) an OWNER account can still record sales.

Failure modes:
    - AccountNotFoundError / RoleBindingError as above (provisioning errors,
      never retried).
    - PartyNotFoundError for an unknown party code or id.
    - InvalidTemplateInputError for an unknown kind/sub_kind or a missing
      payment mode / expense account on a templated payload.
"""

from dataclasses import replace
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import PaymentMode, VoucherPayload
from ledger_kernel.domain.templates import (
    JournalLineInput,
    JournalVoucherInput,
    ResolvedVoucherInput,
    Slot,
    TemplateAccounts,
    TemplatedVoucherInput,
    parse_voucher_kind,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidTemplateInputError,
    PartyNotFoundError,
    RoleBindingError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountRole
from ledger_kernel.models.party import Party
from ledger_kernel.models.voucher import VoucherKind
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_directory")

# Role behind each control-account slot
SLOT_ROLES: dict[Slot, AccountRole] = {
    Slot.CASH: AccountRole.CASH,
    Slot.BANK: AccountRole.BANK,
    Slot.SALES: AccountRole.SALES,
    Slot.PURCHASE: AccountRole.PURCHASE,
    Slot.RECEIVABLE: AccountRole.AR,
    Slot.PAYABLE: AccountRole.AP,
    Slot.OWNER: AccountRole.OWNER,
}

PAYMENT_MODE_ROLES: dict[PaymentMode, AccountRole] = {
    PaymentMode.CASH: AccountRole.CASH,
    PaymentMode.BANK: AccountRole.BANK,
}


class AccountDirectory(BaseService):
    """
    Resolves roles and codes to accounts for one session.

    Usage:
        directory = AccountDirectory(session)
        cash_id = directory.resolve_by_role(company_id, AccountRole.CASH)
        resolved = directory.resolve_voucher_input(company_id, payload)
    """

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def account_for_role(self, company_id: UUID, role: AccountRole) -> Account:
        role = AccountRole(role)
        matches = self.session.execute(
            select(Account)
            .where(
                Account.company_id == company_id,
                Account.role == role,
                Account.is_active.is_(True),
            )
            .order_by(Account.code)
        ).scalars().all()

        if not matches:
            raise AccountNotFoundError(str(company_id), f"role {role.value}")
        if len(matches) > 1:
            codes = ", ".join(a.code for a in matches)
            logger.error(
                "role_binding_invalid",
                extra={"role": role.value, "account_codes": codes},
            )
            raise RoleBindingError(
                role.value, f"bound to {len(matches)} accounts ({codes})"
            )
        return matches[0]

    def resolve_by_role(self, company_id: UUID, role: AccountRole) -> UUID:
        return self.account_for_role(company_id, role).id

    def account_for_code(self, company_id: UUID, code: str) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
        if account is None or not account.is_active:
            raise AccountNotFoundError(str(company_id), f"code {code}")
        return account

    def resolve_by_code(self, company_id: UUID, code: str) -> UUID:
        return self.account_for_code(company_id, code).id

    def payment_account(self, company_id: UUID, mode: PaymentMode) -> UUID:
        """CASH -> the CASH-role account, BANK -> the BANK-role account."""
        return self.resolve_by_role(company_id, PAYMENT_MODE_ROLES[PaymentMode(mode)])

    def template_accounts(
        self,
        company_id: UUID,
        slots: frozenset[Slot] | set[Slot] | None = None,
    ) -> TemplateAccounts:
        """
        Resolve control-account slots into a TemplateAccounts value.

        With ``slots`` None every role-backed slot is resolved (and must
        exist); otherwise only the given ones.
        """
        wanted = SLOT_ROLES.keys() if slots is None else [s for s in slots if s in SLOT_ROLES]
        resolved = {
            slot.value: self.resolve_by_role(company_id, SLOT_ROLES[slot])
            for slot in wanted
        }
        return TemplateAccounts(**resolved)

    def resolve_party(
        self,
        company_id: UUID,
        party_code: str | None = None,
        party_id: UUID | None = None,
    ) -> Party | None:
        if party_id is None and party_code is None:
            return None
        stmt = select(Party).where(Party.company_id == company_id)
        if party_id is not None:
            stmt = stmt.where(Party.id == party_id)
        else:
            stmt = stmt.where(Party.code == party_code)
        party = self.session.execute(stmt).scalar_one_or_none()
        if party is None:
            raise PartyNotFoundError(str(party_id or party_code))
        return party

    # ------------------------------------------------------------------
    # Payload resolution
    # ------------------------------------------------------------------

    def resolve_voucher_input(
        self,
        company_id: UUID,
        payload: VoucherPayload,
    ) -> ResolvedVoucherInput:
        """
        Turn a business payload into the Template Engine's input variant.

        JOURNAL payloads resolve each line's account code; every other kind
        resolves the slots its template rule debits and credits.
        """
        party = self.resolve_party(company_id, payload.party_code, payload.party_id)
        party_id = party.id if party is not None else None
        kind = parse_voucher_kind(payload.kind, payload.sub_kind)

        if kind == VoucherKind.JOURNAL:
            lines = tuple(
                JournalLineInput(
                    account_id=self.resolve_by_code(company_id, line.account_code),
                    side=line.side,
                    amount=line.amount,
                )
                for line in payload.lines
            )
            return JournalVoucherInput(
                lines=lines,
                voucher_date=payload.voucher_date,
                narration=payload.narration,
                party_id=party_id,
            )

        rule = self.registry.get_rule(kind, payload.sub_kind)
        if rule is None:
            raise InvalidTemplateInputError(kind.value, payload.sub_kind, "unknown sub-kind")

        slots = {rule.debit, rule.credit}
        accounts = self.template_accounts(company_id, slots)
        extra = {}
        if Slot.PAYMENT in slots:
            if payload.payment_mode is None:
                raise InvalidTemplateInputError(
                    kind.value, payload.sub_kind, "payment mode is required"
                )
            extra["payment"] = self.payment_account(company_id, payload.payment_mode)
        if Slot.EXPENSE in slots:
            if not payload.expense_account_code:
                raise InvalidTemplateInputError(
                    kind.value, payload.sub_kind, "expense account is required"
                )
            extra["expense"] = self.resolve_by_code(company_id, payload.expense_account_code)

        if extra:
            accounts = replace(accounts, **extra)

        return TemplatedVoucherInput(
            kind=kind,
            sub_kind=payload.sub_kind,
            amount=payload.amount,
            voucher_date=payload.voucher_date,
            accounts=accounts,
            narration=payload.narration,
            party_id=party_id,
        )
