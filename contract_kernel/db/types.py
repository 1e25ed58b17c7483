"""
Module: contract_kernel.db.types
Responsibility: Column types shared by every contract kernel model.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/, or domain/.

Invariants enforced:
    - Timestamps are always timezone-aware UTC when read back, on every
      backend.  SQLite stores datetimes without an offset; UTCDateTime
      normalizes on write and re-attaches UTC on read.
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

