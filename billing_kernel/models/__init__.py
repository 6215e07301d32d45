"""ORM models for the billing kernel."""

from billing_kernel.models.category import AccountCategory
from billing_kernel.models.ledger import LedgerTransaction
from billing_kernel.models.payment_method import PaymentMethod
from billing_kernel.models.sequence import SequenceCounter

__all__ = [
    "AccountCategory",
    "LedgerTransaction",
    "PaymentMethod",
    "SequenceCounter",
]
