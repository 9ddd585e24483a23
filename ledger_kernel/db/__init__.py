"""Database layer - engine, base classes, money helpers, and immutability."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, get_session_factory
from ledger_kernel.db.types import ZERO, to_money, validate_amount

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ZERO",
    "to_money",
    "validate_amount",
]
