"""
Billing Kernel

An append-only, multi-domain clinic ledger with:
- Positive-magnitude ledger entries (direction carried by type)
- Find-or-create account categories keyed by (domain, name, type)
- Monotonic insertion sequence for deterministic report ordering
- Balances derived from ledger history, never stored
"""

__version__ = "0.1.0"
