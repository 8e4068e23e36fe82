"""Database layer - engine, base classes, money type, and immutability guards."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_serializable_session_factory,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.db.types import BALANCE_TOLERANCE, MONEY_DECIMAL_PLACES, Money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_serializable_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "MONEY_DECIMAL_PLACES",
    "BALANCE_TOLERANCE",
]
