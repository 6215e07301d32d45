"""
Payment ORM Models (``billing_modules.payments.orm``).

Responsibility
--------------
Persistence for payments and refunds.  Rows are immutable after insert
(see ``billing_kernel.db.immutability``); a refund is a new row with a
negative amount pointing at the original through ``original_payment_id``.

Architecture position
---------------------
**Modules layer** -- persistence.  MUST NOT be imported by ``billing_kernel``
except for immutability listener registration.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.models.payment_method import PaymentMethod


class PaymentModel(TrackedBase):
    """
    ORM model for patient payments and refunds.

    Guarantees:
        - payment_number is unique (uq_payments_number).
        - amount != 0; the sign distinguishes payment from refund.
        - Exactly one ledger entry references each row.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_number", name="uq_payments_number"),
        CheckConstraint("amount <> 0", name="ck_payments_amount_non_zero"),
        Index("idx_payments_patient", "patient_id"),
        Index("idx_payments_invoice", "invoice_id"),
        Index("idx_payments_date", "payment_date"),
    )

    payment_number: Mapped[str] = mapped_column(String(30), nullable=False)
    patient_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("patients.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True
    )
    domain: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payment_methods.id"), nullable=False
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    receipt_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    original_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=True
    )
    received_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    payment_method: Mapped["PaymentMethod"] = relationship(lazy="joined")

    @property
    def is_refund(self) -> bool:
        return self.amount < 0

    def to_dto(self):
        from billing_modules.payments.models import Payment

        return Payment(
            id=self.id,
            payment_number=self.payment_number,
            patient_id=self.patient_id,
            domain=self.domain,
            amount=self.amount,
            payment_method_id=self.payment_method_id,
            payment_date=self.payment_date,
            received_by_id=self.received_by_id,
            invoice_id=self.invoice_id,
            notes=self.notes,
            receipt_number=self.receipt_number,
            original_payment_id=self.original_payment_id,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.payment_number} {self.amount}>"
