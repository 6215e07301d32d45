"""
Pure domain layer.

Value objects and the clock abstraction with NO dependencies on the ORM,
the database or I/O.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.values import (
    Domain,
    LedgerEntryDraft,
    LedgerReference,
    ReferenceKind,
    TransactionType,
    parse_amount,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Domain",
    "LedgerEntryDraft",
    "LedgerReference",
    "ReferenceKind",
    "TransactionType",
    "parse_amount",
]
