"""
Invoicing Domain Models (``billing_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects for patients, invoices, invoice lines and
installments, plus the status vocabularies and the pure status derivations
shared by the tracker and the tests.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``derive_invoice_status`` / ``derive_patient_status`` are the only places
  the status mappings are written down.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

ZERO = Decimal("0")


class InvoiceKind(str, Enum):
    """What an invoice bills for; drives income category and domain."""

    REGISTRATION = "registration"
    CONSULTATION = "consultation"
    VISION_TEST = "vision_test"
    MEDICINE = "medicine"
    OPERATION = "operation"
    EYEWEAR = "eyewear"
    OTHER = "other"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle; refunds may move it backward."""

    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PatientPaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class LineItemType(str, Enum):
    """Line item types; CONSULTATION lines make a payment commissionable."""

    REGISTRATION = "registration"
    CONSULTATION = "consultation"
    VISION_TEST = "vision_test"
    MEDICINE = "medicine"
    OPERATION = "operation"
    EYEWEAR = "eyewear"
    SERVICE = "service"
    OTHER = "other"


def derive_invoice_status(paid: Decimal, due: Decimal) -> InvoiceStatus:
    """``due <= 0 -> paid``; ``paid > 0 -> partially_paid``; else pending."""
    if due <= ZERO:
        return InvoiceStatus.PAID
    if paid > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PENDING


def derive_patient_status(due_total: Decimal, paid_total: Decimal) -> PatientPaymentStatus:
    """Aggregate status over all of a patient's invoices and payments."""
    if due_total <= ZERO:
        return PatientPaymentStatus.PAID
    if paid_total > ZERO:
        return PatientPaymentStatus.PARTIAL
    return PatientPaymentStatus.PENDING


@dataclass(frozen=True)
class Patient:
    id: UUID
    patient_code: str
    name: str
    payment_status: PatientPaymentStatus = PatientPaymentStatus.PENDING
    registration_status: RegistrationStatus = RegistrationStatus.PENDING


@dataclass(frozen=True)
class LineItemSpec:
    """Input for one invoice line; ``amount`` defaults to quantity x price."""

    item_type: LineItemType | str
    description: str
    unit_price: Decimal
    quantity: Decimal = Decimal("1")

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class InvoiceLine:
    id: UUID
    invoice_id: UUID
    line_number: int
    item_type: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Invoice:
    """A patient invoice with its running paid/due figures."""

    id: UUID
    patient_id: UUID
    invoice_number: str
    kind: InvoiceKind
    domain: str
    issue_date: date
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    due_date: date | None = None
    appointment_id: UUID | None = None
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Installment:
    """
    One scheduled part-payment of an invoice.

    ``balance`` is derived, never stored.
    """

    id: UUID
    invoice_id: UUID
    installment_no: int
    installment_amount: Decimal
    paid_amount: Decimal
    status: InstallmentStatus
    due_date: date | None = None
    paid_date: date | None = None

    @property
    def balance(self) -> Decimal:
        return self.installment_amount - self.paid_amount
