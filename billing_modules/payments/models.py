"""
Payment Domain Models (``billing_modules.payments.models``).

Frozen dataclasses for payments and the summaries built from them.

Invariants enforced
-------------------
* ``Payment.amount`` is signed: positive = payment, negative = refund.
* All monetary fields use ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_modules.invoicing.models import Invoice


@dataclass(frozen=True)
class Payment:
    id: UUID
    payment_number: str
    patient_id: UUID
    domain: str
    amount: Decimal
    payment_method_id: UUID
    payment_date: date
    received_by_id: UUID
    invoice_id: UUID | None = None
    notes: str | None = None
    receipt_number: str | None = None
    original_payment_id: UUID | None = None

    @property
    def is_refund(self) -> bool:
        return self.amount < 0


@dataclass(frozen=True)
class MethodBreakdown:
    count: int
    total: Decimal


@dataclass(frozen=True)
class PatientPaymentSummary:
    """Money position of one patient across all their invoices."""

    patient_id: UUID
    total_paid: Decimal
    total_due: Decimal
    total_invoiced: Decimal
    payment_percentage: Decimal
    recent_payments: tuple[Payment, ...] = field(default_factory=tuple)
    outstanding_invoices: tuple[Invoice, ...] = field(default_factory=tuple)

    @property
    def has_outstanding_balance(self) -> bool:
        return self.total_due > 0


@dataclass(frozen=True)
class DailyPaymentSummary:
    """Desk takings for one day, refunds netted in."""

    date: date
    total_amount: Decimal
    total_count: int
    average_payment: Decimal
    method_breakdown: dict[str, MethodBreakdown] = field(default_factory=dict)
    payments: tuple[Payment, ...] = field(default_factory=tuple)
