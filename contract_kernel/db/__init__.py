"""Database layer - engine, base classes, types, immutability."""

from contract_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from contract_kernel.db.engine import create_tables, get_engine, get_session
from contract_kernel.db.types import UTCDateTime

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "UTCDateTime",
]
