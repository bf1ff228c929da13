"""Database layer - engine, base classes, types, and dialect helpers."""

from stock_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from stock_kernel.db.dialect import clamped_add, dialect_insert
from stock_kernel.db.engine import create_tables, get_engine, get_session
from stock_kernel.db.types import Counter, Price, ShortCode

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Counter",
    "Price",
    "ShortCode",
    "dialect_insert",
    "clamped_add",
]
