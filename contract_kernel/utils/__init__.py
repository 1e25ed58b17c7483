"""Utility functions for the contract kernel."""

from contract_kernel.utils.hashing import (
    canonical_timestamp,
    canonicalize_json,
    hash_audit_entry,
    hash_payload,
)

__all__ = [
    "canonical_timestamp",
    "canonicalize_json",
    "hash_audit_entry",
    "hash_payload",
]
