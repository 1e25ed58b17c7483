"""Selectors for the contract kernel (read side)."""

from contract_kernel.selectors.base import BaseSelector
from contract_kernel.selectors.contract_selector import ContractSelector

__all__ = [
    "BaseSelector",
    "ContractSelector",
]
