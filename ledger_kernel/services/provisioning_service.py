"""
ProvisioningService -- company, chart of accounts and voucher types.

Responsibility:
    Writes a company's reference data from a parsed chart configuration:
    the company row, its accounts (with template roles taken from the
    explicit role bindings), voucher types with their sequence counters,
    and opening parties.

Architecture position:
    Kernel > Services.  The kernel never imports ``ledger_config``; this
    service accepts any object shaped like ``ChartConfiguration`` (company,
    accounts, role_bindings, voucher_types, parties).

Invariants enforced:
    - Every AccountRole is bound to exactly one account, every binding names
      an account in the chart, and no account carries two roles.  Checked
      before anything is written; violations raise RoleBindingError.
    - After writing, each role is re-resolved through AccountDirectory so a
      stray role already present in the database is caught too.
    - Re-running with the same chart is a no-op (rows are matched by code).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import ConfigurationError, RoleBindingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountRole, AccountType, normal_balance_for
from ledger_kernel.models.company import Company
from ledger_kernel.models.party import BalanceSide, Party, PartyType
from ledger_kernel.models.voucher import VoucherKind, VoucherType
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService, voucher_sequence_name

logger = get_logger("services.provisioning")


def validate_role_bindings(account_codes, role_bindings) -> dict[str, AccountRole]:
    """
    Check role bindings against the chart.

    Returns:
        account code -> role, for the accounts that carry a role.

    Raises:
        RoleBindingError: on the first violation found.
    """
    codes = set(account_codes)
    by_role: dict[AccountRole, list[str]] = {}
    for binding in role_bindings:
        try:
            role = AccountRole(binding.role)
        except ValueError as exc:
            raise RoleBindingError(str(binding.role), "unknown role") from exc
        if binding.account_code not in codes:
            raise RoleBindingError(
                role.value, f"account {binding.account_code} is not in the chart"
            )
        by_role.setdefault(role, []).append(binding.account_code)

    for role in AccountRole:
        bound = by_role.get(role, [])
        if not bound:
            raise RoleBindingError(role.value, "no account bound")
        if len(bound) > 1:
            raise RoleBindingError(role.value, f"bound to {len(bound)} accounts ({', '.join(bound)})")

    roles_by_code: dict[str, AccountRole] = {}
    for role, bound in by_role.items():
        code = bound[0]
        if code in roles_by_code:
            raise RoleBindingError(
                role.value,
                f"account {code} already carries role {roles_by_code[code].value}",
            )
        roles_by_code[code] = role
    return roles_by_code


class ProvisioningService(BaseService):
    """
    Provisions reference data for one company.

    Usage:
        with session_scope() as session:
            company = ProvisioningService(session).provision(get_active_config())
    """

    def provision(self, chart) -> Company:
        roles_by_code = validate_role_bindings(
            [a.code for a in chart.accounts], chart.role_bindings
        )

        company = self._company(chart.company)
        for account_def in chart.accounts:
            self._account(company.id, account_def, roles_by_code.get(account_def.code))
        self.session.flush()

        sequences = SequenceService(self.session)
        for type_def in chart.voucher_types:
            voucher_type = self._voucher_type(company.id, type_def)
            sequences.ensure_counter(voucher_sequence_name(company.id, voucher_type.id))

        for party_def in chart.parties:
            self._party(company.id, party_def)
        self.session.flush()

        directory = AccountDirectory(self.session)
        for role in AccountRole:
            directory.account_for_role(company.id, role)

        logger.info(
            "company_provisioned",
            extra={
                "company_code": company.code,
                "company_id": str(company.id),
                "account_count": len(chart.accounts),
                "voucher_type_count": len(chart.voucher_types),
                "party_count": len(chart.parties),
            },
        )
        return company

    # ------------------------------------------------------------------
    # Get-or-create helpers
    # ------------------------------------------------------------------

    def _company(self, company_def) -> Company:
        company = self.session.execute(
            select(Company).where(Company.code == company_def.code)
        ).scalar_one_or_none()
        if company is None:
            company = Company(
                code=company_def.code,
                name=company_def.name,
                base_currency=company_def.base_currency,
                fiscal_year_start_month=company_def.fiscal_year_start_month,
            )
            self.session.add(company)
            self.session.flush()
        return company

    def _account(self, company_id: UUID, account_def, role: AccountRole | None) -> Account:
        account_type = AccountType(account_def.account_type)
        account = self.session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.code == account_def.code,
            )
        ).scalar_one_or_none()
        if account is None:
            account = Account(
                company_id=company_id,
                code=account_def.code,
                name=account_def.name,
                account_type=account_type,
                normal_balance=normal_balance_for(account_type),
                role=role,
            )
            self.session.add(account)
            return account

        if account.account_type != account_type:
            raise ConfigurationError(
                f"Account {account.code} exists as {account.account_type.value}, "
                f"chart says {account_type.value}"
            )
        if account.role != role:
            logger.info(
                "account_role_rebound",
                extra={
                    "account_code": account.code,
                    "old_role": account.role.value if account.role else None,
                    "new_role": role.value if role else None,
                },
            )
            account.role = role
        return account

    def _voucher_type(self, company_id: UUID, type_def) -> VoucherType:
        kind = VoucherKind(type_def.code)
        voucher_type = self.session.execute(
            select(VoucherType).where(
                VoucherType.company_id == company_id,
                VoucherType.code == kind,
            )
        ).scalar_one_or_none()
        if voucher_type is None:
            voucher_type = VoucherType(company_id=company_id, code=kind, name=type_def.name)
            self.session.add(voucher_type)
            self.session.flush()
        return voucher_type

    def _party(self, company_id: UUID, party_def) -> Party:
        party = self.session.execute(
            select(Party).where(
                Party.company_id == company_id,
                Party.code == party_def.code,
            )
        ).scalar_one_or_none()
        if party is None:
            opening = Decimal(str(party_def.opening_balance))
            if opening < 0:
                raise ConfigurationError(
                    f"Party {party_def.code}: opening balance must not be negative"
                )
            party = Party(
                company_id=company_id,
                code=party_def.code,
                name=party_def.name,
                party_type=PartyType(party_def.party_type),
                opening_balance=opening,
                opening_side=BalanceSide(party_def.opening_side),
                phone=party_def.phone,
                email=party_def.email,
                address=party_def.address,
            )
            self.session.add(party)
        return party
