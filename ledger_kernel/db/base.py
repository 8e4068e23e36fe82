"""
Declarative base for the ledger tables.

Every model gets a uuid4 ``id`` stored as a 36-character string, so the
same schema works on PostgreSQL and SQLite.  Annotated columns pick their
SQL type from ``Base.type_annotation_map``: a ``Mapped[Decimal]`` column is
a Money column (integer minor units), a ``Mapped[int]`` is a BigInteger.

Nothing here may import from models/, services/ or selectors/.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ledger_kernel.db.types import Money

UUID = PyUUID

# Applied only to constraints and indexes declared without a name
CONSTRAINT_NAMING = {
    "pk": "pk_%(table_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
}


def utcnow() -> datetime:
    return datetime.now(UTC)


class UUIDString(TypeDecorator):
    """UUID bound as its canonical string and loaded back as a UUID."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=CONSTRAINT_NAMING)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Money(),
        PyUUID: UUIDString(),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base for rows that carry ``created_at`` / ``updated_at``.

    ``created_at`` is stamped in Python with microseconds; draft listings
    and same-day voucher ordering use it as a tie-breaker.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )


def enum_type(enum_cls: type[Enum], length: int = 20) -> SAEnum:
    """VARCHAR column holding an Enum's *values*; no native DB enum type."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
