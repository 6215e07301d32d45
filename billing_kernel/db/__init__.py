"""Database layer - engine, base classes, types, and immutability."""

from billing_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from billing_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from billing_kernel.db.types import Money, Sequence, money_close, round_money

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Sequence",
    "money_close",
    "round_money",
]
