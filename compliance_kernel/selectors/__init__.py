"""Read-only query selectors."""

from compliance_kernel.selectors.base import BaseSelector
from compliance_kernel.selectors.ledger_selector import LedgerSelector
from compliance_kernel.selectors.pool_selector import PoolSelector

__all__ = [
    "BaseSelector",
    "LedgerSelector",
    "PoolSelector",
]
