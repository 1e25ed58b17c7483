"""
Contract Kernel - approval workflow for negotiated contracts

A versioned, append-only approval pipeline with:
- Legal -> Finance -> Client approval, locked per contract
- Optimistic conditional writes for every status transition
- Full auditability via per-contract hash chains
- Separate internal and client-facing rejection remarks
"""

__version__ = "0.1.0"
