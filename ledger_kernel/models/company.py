"""
Module: ledger_kernel.models.company
Responsibility: ORM persistence for the tenant boundary.  Every account, party,
    voucher type and voucher belongs to exactly one Company.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Company(TrackedBase):
    """
    Tenant boundary.

    Single-tenant deployments provision exactly one row.
    """

    __tablename__ = "companies"

    __table_args__ = (UniqueConstraint("code", name="uq_company_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Reporting currency (ISO 4217); amounts are not converted between currencies
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    fiscal_year_start_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=4,
    )

    def __repr__(self) -> str:
        return f"<Company {self.code}: {self.name}>"
