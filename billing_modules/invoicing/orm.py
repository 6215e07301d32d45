"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for patients, invoices, invoice lines and
installments.  Maps to the frozen dataclasses in ``models.py``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``billing_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_modules.invoicing.models import (
    InstallmentStatus,
    InvoiceKind,
    InvoiceStatus,
    PatientPaymentStatus,
    RegistrationStatus,
)


# ---------------------------------------------------------------------------
# 1. PatientModel
# ---------------------------------------------------------------------------


class PatientModel(TrackedBase):
    """
    ORM model for patients.

    Only the billing-facing fields live here; demographics belong to the
    registration workflow.

    Guarantees:
        - patient_code is unique (uq_patients_code).
        - payment_status is recomputed by InvoiceTracker after every payment.
    """

    __tablename__ = "patients"

    __table_args__ = (
        UniqueConstraint("patient_code", name="uq_patients_code"),
    )

    patient_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PatientPaymentStatus.PENDING.value, nullable=False
    )
    registration_status: Mapped[str] = mapped_column(
        String(20), default=RegistrationStatus.PENDING.value, nullable=False
    )

    invoices: Mapped[list["InvoiceModel"]] = relationship(
        back_populates="patient",
        order_by="InvoiceModel.issue_date",
    )

    def to_dto(self):
        from billing_modules.invoicing.models import Patient

        return Patient(
            id=self.id,
            patient_code=self.patient_code,
            name=self.name,
            payment_status=PatientPaymentStatus(self.payment_status),
            registration_status=RegistrationStatus(self.registration_status),
        )

    def __repr__(self) -> str:
        return f"<PatientModel {self.patient_code}: {self.name}>"


# ---------------------------------------------------------------------------
# 2. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for patient invoices.

    Guarantees:
        - invoice_number is unique (uq_invoices_number).
        - paid_amount / due_amount / status are written only by
          InvoiceTracker.reconcile().
        - Monetary fields use Decimal (Numeric(38,9) via type_annotation_map).
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_number"),
        CheckConstraint("total_amount >= 0", name="ck_invoices_total_non_negative"),
        Index("idx_invoices_patient", "patient_id"),
        Index("idx_invoices_status", "status"),
    )

    patient_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("patients.id"), nullable=False
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[str] = mapped_column(
        String(20), default=InvoiceKind.OTHER.value, nullable=False
    )
    domain: Mapped[str] = mapped_column(String(20), nullable=False)
    appointment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("appointments.id"), nullable=True
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    due_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.PENDING.value, nullable=False
    )

    patient: Mapped["PatientModel"] = relationship(back_populates="invoices")
    lines: Mapped[list["InvoiceLineModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineModel.line_number",
    )
    installments: Mapped[list["InstallmentModel"]] = relationship(
        back_populates="invoice",
        order_by="InstallmentModel.installment_no",
    )

    def has_line_of_type(self, item_type: str) -> bool:
        return any(line.item_type == item_type for line in self.lines)

    def to_dto(self):
        from billing_modules.invoicing.models import Invoice

        return Invoice(
            id=self.id,
            patient_id=self.patient_id,
            invoice_number=self.invoice_number,
            kind=InvoiceKind(self.kind),
            domain=self.domain,
            issue_date=self.issue_date,
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            due_amount=self.due_amount,
            status=InvoiceStatus(self.status),
            due_date=self.due_date,
            appointment_id=self.appointment_id,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return (
            f"<InvoiceModel {self.invoice_number} total={self.total_amount} "
            f"paid={self.paid_amount} due={self.due_amount} {self.status}>"
        )


# ---------------------------------------------------------------------------
# 3. InvoiceLineModel
# ---------------------------------------------------------------------------


class InvoiceLineModel(TrackedBase):
    """ORM model for invoice line items."""

    __tablename__ = "invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_lines_number"),
        Index("idx_invoice_lines_type", "item_type"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="lines")

    def to_dto(self):
        from billing_modules.invoicing.models import InvoiceLine

        return InvoiceLine(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            item_type=self.item_type,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
        )


# ---------------------------------------------------------------------------
# 4. InstallmentModel
# ---------------------------------------------------------------------------


class InstallmentModel(TrackedBase):
    """
    ORM model for invoice installments.

    Guarantees:
        - (invoice_id, installment_no) is unique.
        - paid_amount <= installment_amount (ck_installments_paid_le_amount).
        - There is no balance column; ``balance`` is derived.
    """

    __tablename__ = "installments"

    __table_args__ = (
        UniqueConstraint("invoice_id", "installment_no", name="uq_installments_invoice_no"),
        CheckConstraint("installment_amount > 0", name="ck_installments_amount_positive"),
        CheckConstraint(
            "paid_amount <= installment_amount", name="ck_installments_paid_le_amount"
        ),
        Index("idx_installments_status_due", "status", "due_date"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    installment_no: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(10), default=InstallmentStatus.PENDING.value, nullable=False
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="installments")

    @property
    def balance(self) -> Decimal:
        return self.installment_amount - self.paid_amount

    def to_dto(self):
        from billing_modules.invoicing.models import Installment

        return Installment(
            id=self.id,
            invoice_id=self.invoice_id,
            installment_no=self.installment_no,
            installment_amount=self.installment_amount,
            paid_amount=self.paid_amount,
            status=InstallmentStatus(self.status),
            due_date=self.due_date,
            paid_date=self.paid_date,
        )

    def __repr__(self) -> str:
        return (
            f"<InstallmentModel #{self.installment_no} "
            f"{self.paid_amount}/{self.installment_amount} {self.status}>"
        )
