"""
Module: ledger_kernel.db.types
Responsibility: Monetary column type and the money helpers every layer shares.
    Centralizes precision, tolerance, and parsing so that models, the template
    engine, services, and selectors use identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Amounts live on disk as integer minor units (cents).  Sums computed by
      the database are therefore exact on every backend, SQLite included.
    - MONEY_DECIMAL_PLACES is the reporting currency's minor unit.  A value
      with more fractional digits is rejected, never silently rounded.
    - BALANCE_TOLERANCE is the single epsilon for draft-time balance checks.
      Posting compares totals exactly.
    CRITICAL: No floats anywhere in the ledger kernel.

Failure modes:
    - ValueError from Money.process_bind_param when a value carries sub-minor
      precision (the service layer validates first, so this only fires on
      out-of-band writes).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2
MINOR_UNIT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
BALANCE_TOLERANCE = Decimal("0.001")
ZERO = Decimal("0")

DEFAULT_ROUNDING = ROUND_HALF_UP


class Money(TypeDecorator):
    """
    Decimal amount stored as a BigInteger count of minor units.

    Contract:
        process_bind_param: Decimal("12.34") -> 1234.
        process_result_value: 1234 -> Decimal("12.34").
        Aggregates (SUM) over Money columns come back through the same
        result processor because SQLAlchemy's sum() keeps the argument type.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = to_decimal(value)
        minor = amount.scaleb(MONEY_DECIMAL_PLACES)
        if minor != minor.to_integral_value():
            raise ValueError(
                f"Amount {amount} has more than {MONEY_DECIMAL_PLACES} decimal places"
            )
        return int(minor)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-MONEY_DECIMAL_PLACES).quantize(MINOR_UNIT)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert an int, str or Decimal into a Decimal.

    Floats are refused: a float has already lost the exact amount.

    Raises:
        ValueError: on floats, booleans, or unparsable strings.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Amounts must be Decimal, int or str, not {type(value).__name__}")
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def has_money_precision(value: Decimal) -> bool:
    """True iff value has no digits below the minor unit."""
    return value == value.quantize(MINOR_UNIT, rounding=DEFAULT_ROUNDING)


def within_tolerance(debits: Decimal, credits: Decimal) -> bool:
    """Draft-time balance check shared by create, regenerate and journal input."""
    return abs(debits - credits) <= BALANCE_TOLERANCE
