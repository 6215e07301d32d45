"""
InvoiceTracker -- per-invoice paid/due bookkeeping and patient status.

Responsibility:
    Registers invoices produced by upstream billing workflows and keeps
    their paid / due / status figures consistent with the payment history.
    Reconciliation always recomputes from the full history (SUM over every
    payment and refund linked to the invoice), never from an incremental
    delta, so many small payments and refunds cannot drift.

Architecture position:
    Modules > Invoicing.  Flush-only (BaseService); PaymentProcessor owns
    the transaction.

Invariants enforced:
    - due = clamp(total - paid, 0, total) after every reconciliation.
    - status follows derive_invoice_status(paid, due).
    - patient.payment_status follows derive_patient_status over ALL of the
      patient's invoices and payments.

Failure modes:
    - PatientNotFoundError / InvoiceNotFoundError on unknown ids.
    - ValidationError / InvalidAmountError on malformed invoices.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from billing_kernel.db.types import ZERO, money_close
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import Domain
from billing_kernel.exceptions import (
    InvalidAmountError,
    InvoiceNotFoundError,
    PatientNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.invoicing.models import (
    InvoiceKind,
    InvoiceStatus,
    LineItemSpec,
    PatientPaymentStatus,
    RegistrationStatus,
    derive_invoice_status,
    derive_patient_status,
)
from billing_modules.invoicing.orm import InvoiceLineModel, InvoiceModel, PatientModel
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.orm import PaymentModel

logger = get_logger("modules.invoicing.tracker")

INVOICE_NUMBER_SEQUENCE = "invoice_number"


class InvoiceTracker(BaseService[InvoiceModel]):
    """
    Invoice and due tracker.

    Contract:
        Every method flushes within the caller's transaction.

    Guarantees:
        - reconcile() is idempotent: calling it twice with no new payments
          changes nothing.
    """

    def __init__(
        self,
        session,
        config: PaymentConfig | None = None,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session)
        self._config = config or PaymentConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)

    # =========================================================================
    # Patients
    # =========================================================================

    def register_patient(self, patient_code: str, name: str, actor_id: UUID) -> PatientModel:
        """Create the billing record of a patient."""
        if not patient_code or not patient_code.strip():
            raise ValidationError("patient_code is required", field="patient_code")
        if not name or not name.strip():
            raise ValidationError("name is required", field="name")

        patient = PatientModel(
            patient_code=patient_code.strip(),
            name=name.strip(),
            payment_status=PatientPaymentStatus.PENDING.value,
            registration_status=RegistrationStatus.PENDING.value,
            created_by_id=actor_id,
        )
        self.session.add(patient)
        self.session.flush()
        logger.info(
            "patient_registered",
            extra={"patient_id": str(patient.id), "patient_code": patient.patient_code},
        )
        return patient

    def get_patient(self, patient_id: UUID) -> PatientModel:
        patient = self.session.get(PatientModel, patient_id)
        if patient is None:
            raise PatientNotFoundError(str(patient_id))
        return patient

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        patient_id: UUID,
        kind: InvoiceKind | str,
        lines: Sequence[LineItemSpec],
        actor_id: UUID,
        discount_amount: Decimal = ZERO,
        invoice_number: str | None = None,
        domain: Domain | str | None = None,
        appointment_id: UUID | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
    ) -> InvoiceModel:
        """
        Register an invoice.

        subtotal = sum(line amounts); total = subtotal - discount;
        due = total; status pending.  The ledger domain defaults to the
        configured domain for ``kind``.
        """
        try:
            kind = InvoiceKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown invoice kind: {kind!r}", field="kind") from None
        self.get_patient(patient_id)

        if not lines:
            raise ValidationError("An invoice needs at least one line item", field="lines")
        for spec in lines:
            if spec.quantity <= ZERO:
                raise InvalidAmountError(spec.quantity, field="quantity")
            if spec.unit_price < ZERO:
                raise ValidationError(
                    f"unit_price cannot be negative, got {spec.unit_price}",
                    field="unit_price",
                )

        subtotal = sum((spec.amount for spec in lines), ZERO)
        if discount_amount < ZERO or discount_amount > subtotal:
            raise ValidationError(
                f"discount_amount must be between 0 and {subtotal}, got {discount_amount}",
                field="discount_amount",
            )
        total = subtotal - discount_amount

        resolved_domain = (
            Domain.parse(domain) if domain is not None
            else Domain.parse(self._config.domain_for_kind(kind.value))
        )
        number = invoice_number or self._sequences.next_number(
            INVOICE_NUMBER_SEQUENCE,
            self._config.invoice_number_prefix,
            self._config.number_width,
        )

        invoice = InvoiceModel(
            patient_id=patient_id,
            invoice_number=number,
            kind=kind.value,
            domain=resolved_domain.value,
            appointment_id=appointment_id,
            issue_date=issue_date or self._clock.today(),
            due_date=due_date,
            subtotal=subtotal,
            discount_amount=discount_amount,
            total_amount=total,
            paid_amount=ZERO,
            due_amount=total,
            status=derive_invoice_status(ZERO, total).value,
            created_by_id=actor_id,
        )
        for line_number, spec in enumerate(lines, start=1):
            invoice.lines.append(
                InvoiceLineModel(
                    line_number=line_number,
                    item_type=str(getattr(spec.item_type, "value", spec.item_type)),
                    description=spec.description,
                    quantity=spec.quantity,
                    unit_price=spec.unit_price,
                    amount=spec.amount,
                    created_by_id=actor_id,
                )
            )
        self.session.add(invoice)
        self.session.flush()

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": number,
                "patient_id": str(patient_id),
                "kind": kind.value,
                "domain": resolved_domain.value,
                "total_amount": str(total),
                "line_count": len(lines),
            },
        )
        return invoice

    def get_invoice(self, invoice_id: UUID, lock: bool = False) -> InvoiceModel:
        """
        Fetch an invoice; ``lock=True`` takes a row lock (SELECT ... FOR
        UPDATE) and refreshes the instance from the database.
        """
        stmt = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        invoice = self.session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def registration_invoice(self, patient_id: UUID) -> InvoiceModel | None:
        """The patient's first registration invoice, if any."""
        return self.session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.patient_id == patient_id,
                InvoiceModel.kind == InvoiceKind.REGISTRATION.value,
            )
            .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
            .limit(1)
        ).scalar_one_or_none()

    def outstanding_invoices(self, patient_id: UUID) -> list[InvoiceModel]:
        """Invoices of the patient that are not paid and still carry a due."""
        return list(
            self.session.execute(
                select(InvoiceModel)
                .where(
                    InvoiceModel.patient_id == patient_id,
                    InvoiceModel.status != InvoiceStatus.PAID.value,
                    InvoiceModel.due_amount > ZERO,
                )
                .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
            ).scalars().all()
        )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def paid_to_date(self, invoice_id: UUID) -> Decimal:
        """SUM of every payment and refund linked to the invoice."""
        total = self.session.execute(
            select(func.coalesce(func.sum(PaymentModel.amount), ZERO))
            .where(PaymentModel.invoice_id == invoice_id)
        ).scalar_one()
        return Decimal(total)

    def reconcile(self, invoice: InvoiceModel, actor_id: UUID | None = None) -> InvoiceModel:
        """
        Recompute paid / due / status from the full payment history.

        Postconditions:
            - paid_amount == SUM(payments.amount for this invoice).
            - due_amount == clamp(total - paid, 0, total).
        """
        paid = self.paid_to_date(invoice.id)
        total = invoice.total_amount
        due = min(total, max(ZERO, total - paid))
        status = derive_invoice_status(paid, due)

        previous_status = invoice.status
        invoice.paid_amount = paid
        invoice.due_amount = due
        invoice.status = status.value
        if actor_id is not None:
            invoice.updated_by_id = actor_id
        self.session.flush()

        if not money_close(paid + due, total, self._config.currency_epsilon):
            # Overpayment or a refund larger than the amount paid.
            logger.warning(
                "invoice_paid_due_mismatch",
                extra={
                    "invoice_id": str(invoice.id),
                    "total_amount": str(total),
                    "paid_amount": str(paid),
                    "due_amount": str(due),
                },
            )

        logger.info(
            "invoice_reconciled",
            extra={
                "invoice_id": str(invoice.id),
                "paid_amount": str(paid),
                "due_amount": str(due),
                "status": status.value,
                "previous_status": previous_status,
            },
        )
        return invoice

    def refresh_patient_status(
        self,
        patient: PatientModel,
        actor_id: UUID | None = None,
    ) -> PatientPaymentStatus:
        """
        Recompute the patient's aggregate payment status.

        due_total sums due over ALL of the patient's invoices; paid_total
        sums ALL of the patient's payments net of refunds.
        """
        due_total = Decimal(
            self.session.execute(
                select(func.coalesce(func.sum(InvoiceModel.due_amount), ZERO))
                .where(InvoiceModel.patient_id == patient.id)
            ).scalar_one()
        )
        paid_total = Decimal(
            self.session.execute(
                select(func.coalesce(func.sum(PaymentModel.amount), ZERO))
                .where(PaymentModel.patient_id == patient.id)
            ).scalar_one()
        )

        status = derive_patient_status(due_total, paid_total)
        if patient.payment_status != status.value:
            patient.payment_status = status.value
            if actor_id is not None:
                patient.updated_by_id = actor_id
            self.session.flush()

        logger.debug(
            "patient_status_refreshed",
            extra={
                "patient_id": str(patient.id),
                "due_total": str(due_total),
                "paid_total": str(paid_total),
                "payment_status": status.value,
            },
        )
        return status

    def refresh_registration_status(
        self,
        patient: PatientModel,
        actor_id: UUID | None = None,
    ) -> RegistrationStatus:
        """Registration completes once the registration invoice is paid."""
        invoice = self.registration_invoice(patient.id)
        if (
            invoice is not None
            and invoice.status == InvoiceStatus.PAID.value
            and patient.registration_status != RegistrationStatus.COMPLETED.value
        ):
            patient.registration_status = RegistrationStatus.COMPLETED.value
            if actor_id is not None:
                patient.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "patient_registration_completed",
                extra={"patient_id": str(patient.id), "invoice_id": str(invoice.id)},
            )
        return RegistrationStatus(patient.registration_status)
