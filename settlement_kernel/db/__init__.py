"""Database layer - engine, base classes, types, and immutability."""

from settlement_kernel.db.base import UUID, Base, TrackedBase, UUIDString, UTCDateTime
from settlement_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from settlement_kernel.db.types import Money, Quantity, round_money, to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
    "Money",
    "Quantity",
    "round_money",
    "to_decimal",
]
