"""
Chart configuration schema.

Defines the human-authored, reviewable source artifact for a company's
chart of accounts.  YAML files are parsed into these types by the loader,
checked by the validator, and handed to the kernel's ProvisioningService.

Key distinction:
  AccountDef   = an account and its accounting type (no role)
  RoleBinding  = the ONLY place a template role is attached to an account
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CompanyDef:
    """The tenant to provision."""

    code: str
    name: str
    base_currency: str = "INR"
    fiscal_year_start_month: int = 4


@dataclass(frozen=True)
class AccountDef:
    """One account in the chart."""

    code: str
    name: str
    account_type: str  # ASSET, LIABILITY, EQUITY, INCOME, EXPENSE


@dataclass(frozen=True)
class RoleBinding:
    """Maps a template role to a chart account code."""

    role: str  # e.g., "CASH"
    account_code: str  # e.g., "CASH"


@dataclass(frozen=True)
class VoucherTypeDef:
    code: str  # SALE, PURCHASE, RECEIPT, PAYMENT, CONTRA, JOURNAL
    name: str


@dataclass(frozen=True)
class PartyDef:
    """An opening customer or supplier."""

    code: str
    name: str
    party_type: str  # CUSTOMER, SUPPLIER, BOTH
    opening_balance: Decimal = Decimal("0")
    opening_side: str = "DR"
    phone: str | None = None
    email: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class ChartConfiguration:
    """
    A complete, versioned chart configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML,
    computed by the loader.
    """

    config_id: str
    version: int
    company: CompanyDef
    accounts: tuple[AccountDef, ...] = field(default_factory=tuple)
    role_bindings: tuple[RoleBinding, ...] = field(default_factory=tuple)
    voucher_types: tuple[VoucherTypeDef, ...] = field(default_factory=tuple)
    parties: tuple[PartyDef, ...] = field(default_factory=tuple)
    checksum: str = ""

    def binding_for(self, role: str) -> RoleBinding | None:
        for binding in self.role_bindings:
            if binding.role == role:
                return binding
        return None
