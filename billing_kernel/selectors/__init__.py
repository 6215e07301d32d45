"""Read-only selectors over the billing kernel tables."""

from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.ledger_selector import (
    CategoryTotal,
    LedgerEntryRecord,
    LedgerSelector,
    LedgerTotals,
)

__all__ = [
    "BaseSelector",
    "CategoryTotal",
    "LedgerEntryRecord",
    "LedgerSelector",
    "LedgerTotals",
]
