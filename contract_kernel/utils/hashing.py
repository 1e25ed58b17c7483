"""
Deterministic hashing utilities.

All hashing in the contract kernel must be deterministic and reproducible:
the audit ledger recomputes every hash when it validates a chain, possibly
years later and on a different database backend.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Normalize so 100 and 100.000000000 hash identically
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return canonical_timestamp(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if hasattr(obj, "value") and isinstance(obj.value, str):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC at microsecond precision.  Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, there is no whitespace, and Decimal, datetime, date,
    UUID and str-valued enums have one fixed representation each.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict | None) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload or {})
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_entry(
    contract_id: UUID | str,
    seq: int,
    action: str,
    actor_id: UUID | str,
    role_at_time: str,
    created_at: datetime,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash for one audit entry.

    The hash covers every attributable field plus the previous entry's hash,
    so altering, reordering or removing any entry breaks every later hash.
    """
    components = [
        str(contract_id),
        str(seq),
        action,
        str(actor_id),
        role_at_time,
        canonical_timestamp(created_at),
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
