"""Kernel services: flush-only writers used inside a caller's transaction."""

from billing_kernel.services.base import BaseService
from billing_kernel.services.category_service import CategoryRegistry
from billing_kernel.services.ledger_service import LedgerService
from billing_kernel.services.sequence_service import SequenceService

__all__ = [
    "BaseService",
    "CategoryRegistry",
    "LedgerService",
    "SequenceService",
]
