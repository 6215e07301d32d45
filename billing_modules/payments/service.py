"""
PaymentProcessor -- the payment desk's entry point.

Responsibility:
    Orchestrates every money-in / money-back operation: writes the payment
    record, appends its single ledger entry, reconciles the invoice and
    installment it settles, refreshes the patient's aggregate status and
    derives the practitioner commission.

Architecture position:
    Modules > Payments.  Composes kernel services (SequenceService,
    CategoryRegistry, LedgerService) and module services (InvoiceTracker,
    InstallmentTracker, CommissionCalculator), all sharing one session.

Invariants enforced:
    - One unit of work per public operation: commit on success, rollback
      and re-raise on any failure.  Collaborators only flush.
    - All validation runs before the first write.
    - The invoice (and installment / original payment) row is locked
      before it is validated.
    - One ledger entry per payment or refund, tagged with its reference.

Failure modes:
    - ValidationError family: bad amount, foreign invoice, refund of a
      refund.
    - NotFoundError family: unknown patient / invoice / installment /
      payment / payment method.
    - StateConflictError family: paid invoice or installment, amount over
      due or balance, inactive payment method.
    - NoIncomeCategoryError when the domain has no usable income category.

Audit relevance:
    Logs ``payment_processed`` / ``refund_processed`` with amounts as
    strings; LogContext carries the actor and invoice.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from billing_kernel.db.types import ZERO, percentage_of, round_money
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import (
    Domain,
    LedgerEntryDraft,
    LedgerReference,
    TransactionType,
    parse_amount,
)
from billing_kernel.exceptions import (
    AmountExceedsDueError,
    InvoiceAlreadyPaidError,
    InvoiceNotFoundError,
    InvoiceOwnershipError,
    NoIncomeCategoryError,
    PaymentMethodInactiveError,
    PaymentMethodNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.category import AccountCategory
from billing_kernel.models.payment_method import PaymentMethod
from billing_kernel.services.category_service import CategoryRegistry
from billing_kernel.services.ledger_service import LedgerService
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.commission.service import CommissionCalculator
from billing_modules.invoicing.installments import InstallmentTracker
from billing_modules.invoicing.models import InvoiceStatus
from billing_modules.invoicing.orm import InvoiceModel
from billing_modules.invoicing.tracker import InvoiceTracker
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.models import (
    DailyPaymentSummary,
    MethodBreakdown,
    Payment,
    PatientPaymentSummary,
)
from billing_modules.payments.orm import PaymentModel

logger = get_logger("modules.payments.service")


class PaymentProcessor:
    """
    Payment desk operations.

    Transaction boundary: this service commits on success, rolls back on
    failure.  Every collaborator flushes inside the same session so a
    failure at any step leaves no partial writes.
    """

    def __init__(
        self,
        session: Session,
        config: PaymentConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or PaymentConfig.with_defaults()
        self._clock = clock or SystemClock()

        self._sequences = SequenceService(session)
        self._categories = CategoryRegistry(session, self._clock)
        self._ledger = LedgerService(
            session, self._clock, self._categories, self._sequences
        )
        self._invoices = InvoiceTracker(
            session, self._config, self._clock, self._sequences
        )
        self._installments = InstallmentTracker(
            session, self._config, self._clock, self._invoices
        )
        self._commissions = CommissionCalculator(session, self._config, self._clock)

    # =========================================================================
    # Payment methods
    # =========================================================================

    def add_payment_method(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        is_active: bool = True,
    ) -> PaymentMethod:
        """Register a tender type (cash, card, ...)."""
        try:
            if not code or not code.strip():
                raise ValidationError("Payment method code is required", field="code")
            method = PaymentMethod(
                code=code.strip(),
                name=name,
                is_active=is_active,
                created_by_id=actor_id,
            )
            self._session.add(method)
            self._session.flush()
            self._session.commit()
            logger.info(
                "payment_method_added",
                extra={"payment_method_id": str(method.id), "code": method.code},
            )
            return method
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Payments
    # =========================================================================

    def process_payment(
        self,
        patient_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        invoice_id: UUID | None = None,
        payment_date: date | None = None,
        notes: str | None = None,
        receipt_number: str | None = None,
    ) -> Payment:
        """
        Record a payment, optionally against an invoice.

        Postconditions:
            - One payments row and one income ledger entry exist for it.
            - The invoice (if any) is reconciled and the patient's status
              refreshed.
            - A commission exists when the invoice chain supports one.
        """
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            try:
                payment = self._apply_payment(
                    patient_id=patient_id,
                    amount=amount,
                    payment_method_id=payment_method_id,
                    actor_id=actor_id,
                    invoice_id=invoice_id,
                    payment_date=payment_date,
                    notes=notes,
                    receipt_number=receipt_number,
                )
                result = payment.to_dto()
                self._session.commit()
                logger.info(
                    "payment_committed",
                    extra={"payment_id": str(result.id), "payment_number": result.payment_number},
                )
                return result
            except Exception:
                self._session.rollback()
                raise

    def process_partial_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
        payment_date: date | None = None,
        receipt_number: str | None = None,
    ) -> Payment:
        """Pay part of an invoice's due amount."""
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            try:
                amount = parse_amount(amount)
                invoice = self._invoices.get_invoice(invoice_id, lock=True)
                if invoice.status == InvoiceStatus.PAID.value:
                    raise InvoiceAlreadyPaidError(str(invoice.id))
                if amount > invoice.due_amount:
                    raise AmountExceedsDueError(str(invoice.id), amount, invoice.due_amount)

                payment = self._apply_payment(
                    patient_id=invoice.patient_id,
                    amount=amount,
                    payment_method_id=payment_method_id,
                    actor_id=actor_id,
                    invoice_id=invoice.id,
                    payment_date=payment_date,
                    notes=notes,
                    receipt_number=receipt_number,
                )
                result = payment.to_dto()
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    def process_installment_payment(
        self,
        installment_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        payment_date: date | None = None,
        notes: str | None = None,
        receipt_number: str | None = None,
    ) -> Payment:
        """
        Pay (part of) one installment.

        The payment is recorded against the installment's invoice, then
        the installment's paid_amount is advanced in the same unit.
        """
        with LogContext.bind(actor_id=actor_id, installment_id=installment_id):
            try:
                amount = parse_amount(amount)
                installment = self._installments.get(installment_id, lock=True)
                self._installments.check_payable(installment, amount)
                invoice = self._invoices.get_invoice(installment.invoice_id)

                payment = self._apply_payment(
                    patient_id=invoice.patient_id,
                    amount=amount,
                    payment_method_id=payment_method_id,
                    actor_id=actor_id,
                    invoice_id=invoice.id,
                    payment_date=payment_date,
                    notes=notes,
                    receipt_number=receipt_number,
                )
                self._installments.apply(
                    installment, amount, payment.payment_date, actor_id
                )
                result = payment.to_dto()
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    def process_registration_payment(
        self,
        patient_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        payment_date: date | None = None,
        notes: str | None = None,
        receipt_number: str | None = None,
    ) -> Payment:
        """Pay the patient's registration invoice; completes registration once paid."""
        with LogContext.bind(actor_id=actor_id):
            try:
                patient = self._invoices.get_patient(patient_id)
                invoice = self._invoices.registration_invoice(patient.id)
                if invoice is None:
                    raise InvoiceNotFoundError(f"registration invoice of patient {patient_id}")

                payment = self._apply_payment(
                    patient_id=patient.id,
                    amount=amount,
                    payment_method_id=payment_method_id,
                    actor_id=actor_id,
                    invoice_id=invoice.id,
                    payment_date=payment_date,
                    notes=notes,
                    receipt_number=receipt_number,
                )
                self._invoices.refresh_registration_status(patient, actor_id)
                result = payment.to_dto()
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Refunds
    # =========================================================================

    def process_refund(
        self,
        original_payment_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        refund_date: date | None = None,
        receipt_number: str | None = None,
    ) -> Payment:
        """
        Give money back against an earlier payment.

        Creates a payment row with amount = -magnitude and an expense
        ledger entry of +magnitude in the refund category.  The magnitude
        is not capped by the original payment.
        """
        with LogContext.bind(actor_id=actor_id, payment_id=original_payment_id):
            try:
                magnitude = parse_amount(amount)
                original = self._locked_payment(original_payment_id)
                if original.is_refund:
                    raise ValidationError(
                        f"Payment {original.payment_number} is itself a refund",
                        field="original_payment_id",
                    )
                method = self._active_method(payment_method_id)
                patient = self._invoices.get_patient(original.patient_id)
                invoice = None
                if original.invoice_id is not None:
                    invoice = self._invoices.get_invoice(original.invoice_id, lock=True)

                refund_date = refund_date or self._clock.today()
                refund = self._new_payment(
                    patient_id=patient.id,
                    invoice_id=original.invoice_id,
                    domain=original.domain,
                    amount=-magnitude,
                    method=method,
                    payment_date=refund_date,
                    actor_id=actor_id,
                    notes=reason,
                    receipt_number=receipt_number,
                    original_payment_id=original.id,
                )

                category = self._categories.find_or_create(
                    original.domain,
                    self._config.refund_category,
                    TransactionType.EXPENSE,
                    actor_id,
                )
                self._ledger.append(
                    LedgerEntryDraft(
                        domain=original.domain,
                        type=TransactionType.EXPENSE,
                        amount=magnitude,
                        category=category.id,
                        transaction_date=refund_date,
                        reference=LedgerReference.refund(refund.id),
                        payment_method_id=method.id,
                        description=f"Refund {refund.payment_number} of {original.payment_number}",
                        meta={
                            "payment_number": refund.payment_number,
                            "original_payment_number": original.payment_number,
                            "patient_id": str(patient.id),
                        },
                    ),
                    actor_id,
                )

                if invoice is not None:
                    self._invoices.reconcile(invoice, actor_id)
                self._invoices.refresh_patient_status(patient, actor_id)

                logger.info(
                    "refund_processed",
                    extra={
                        "payment_id": str(refund.id),
                        "payment_number": refund.payment_number,
                        "original_payment_id": str(original.id),
                        "amount": str(refund.amount),
                        "domain": original.domain,
                    },
                )
                result = refund.to_dto()
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Summaries (read-only)
    # =========================================================================

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self._session.get(PaymentModel, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment.to_dto()

    def payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        rows = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.invoice_id == invoice_id)
            .order_by(PaymentModel.payment_date, PaymentModel.payment_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def patient_payment_summary(self, patient_id: UUID) -> PatientPaymentSummary:
        """Paid, due and invoiced totals for one patient, with recent activity."""
        patient = self._invoices.get_patient(patient_id)

        total_paid = Decimal(
            self._session.execute(
                select(func.coalesce(func.sum(PaymentModel.amount), ZERO))
                .where(PaymentModel.patient_id == patient.id)
            ).scalar_one()
        )
        total_invoiced, total_due = self._session.execute(
            select(
                func.coalesce(func.sum(InvoiceModel.total_amount), ZERO),
                func.coalesce(func.sum(InvoiceModel.due_amount), ZERO),
            ).where(InvoiceModel.patient_id == patient.id)
        ).one()
        total_invoiced = Decimal(total_invoiced)
        total_due = Decimal(total_due)

        recent = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.patient_id == patient.id)
            .order_by(PaymentModel.payment_date.desc(), PaymentModel.payment_number.desc())
            .limit(self._config.recent_payments_limit)
        ).scalars().all()

        return PatientPaymentSummary(
            patient_id=patient.id,
            total_paid=total_paid,
            total_due=total_due,
            total_invoiced=total_invoiced,
            payment_percentage=percentage_of(total_paid, total_invoiced),
            recent_payments=tuple(p.to_dto() for p in recent),
            outstanding_invoices=tuple(
                inv.to_dto() for inv in self._invoices.outstanding_invoices(patient.id)
            ),
        )

    def daily_payment_summary(self, day: date | None = None) -> DailyPaymentSummary:
        """Takings for ``day`` (default today), refunds netted in."""
        day = day or self._clock.today()
        rows = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.payment_date == day)
            .order_by(PaymentModel.payment_number)
        ).scalars().all()

        total = sum((row.amount for row in rows), ZERO)
        count = len(rows)
        average = round_money(total / count) if count else round_money(ZERO)

        counts: dict[str, int] = defaultdict(int)
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for row in rows:
            code = row.payment_method.code
            counts[code] += 1
            totals[code] += row.amount

        return DailyPaymentSummary(
            date=day,
            total_amount=total,
            total_count=count,
            average_payment=average,
            method_breakdown={
                code: MethodBreakdown(count=counts[code], total=totals[code])
                for code in sorted(counts)
            },
            payments=tuple(row.to_dto() for row in rows),
        )

    # =========================================================================
    # Internals -- run inside the caller's unit of work
    # =========================================================================

    def _apply_payment(
        self,
        patient_id: UUID,
        amount: Decimal,
        payment_method_id: UUID,
        actor_id: UUID,
        invoice_id: UUID | None,
        payment_date: date | None,
        notes: str | None,
        receipt_number: str | None,
    ) -> PaymentModel:
        amount = parse_amount(amount)
        patient = self._invoices.get_patient(patient_id)
        method = self._active_method(payment_method_id)

        invoice = None
        if invoice_id is not None:
            invoice = self._invoices.get_invoice(invoice_id, lock=True)
            if invoice.patient_id != patient.id:
                raise InvoiceOwnershipError(str(invoice.id), str(patient.id))
            if amount > invoice.due_amount:
                raise AmountExceedsDueError(str(invoice.id), amount, invoice.due_amount)

        domain = Domain.parse(invoice.domain if invoice else self._config.default_domain)
        payment_date = payment_date or self._clock.today()

        payment = self._new_payment(
            patient_id=patient.id,
            invoice_id=invoice.id if invoice else None,
            domain=domain.value,
            amount=amount,
            method=method,
            payment_date=payment_date,
            actor_id=actor_id,
            notes=notes,
            receipt_number=receipt_number,
        )

        category = self._income_category(domain, invoice.kind if invoice else None)
        self._ledger.append(
            LedgerEntryDraft(
                domain=domain,
                type=TransactionType.INCOME,
                amount=amount,
                category=category.id,
                transaction_date=payment_date,
                reference=LedgerReference.payment(payment.id),
                payment_method_id=method.id,
                description=f"Payment {payment.payment_number}",
                meta={
                    "payment_number": payment.payment_number,
                    "patient_id": str(patient.id),
                    "invoice_number": invoice.invoice_number if invoice else None,
                },
            ),
            actor_id,
        )

        if invoice is not None:
            self._invoices.reconcile(invoice, actor_id)
        self._invoices.refresh_patient_status(patient, actor_id)
        if invoice is not None:
            self._commissions.compute_commission(payment, actor_id)

        logger.info(
            "payment_processed",
            extra={
                "payment_id": str(payment.id),
                "payment_number": payment.payment_number,
                "patient_id": str(patient.id),
                "invoice_id": str(invoice.id) if invoice else None,
                "amount": str(amount),
                "domain": domain.value,
                "category": category.name,
            },
        )
        return payment

    def _new_payment(
        self,
        patient_id: UUID,
        invoice_id: UUID | None,
        domain: str,
        amount: Decimal,
        method: PaymentMethod,
        payment_date: date,
        actor_id: UUID,
        notes: str | None = None,
        receipt_number: str | None = None,
        original_payment_id: UUID | None = None,
    ) -> PaymentModel:
        number = self._sequences.next_number(
            SequenceService.PAYMENT_NUMBER,
            self._config.payment_number_prefix,
            self._config.number_width,
        )
        payment = PaymentModel(
            payment_number=number,
            patient_id=patient_id,
            invoice_id=invoice_id,
            domain=domain,
            amount=amount,
            payment_method_id=method.id,
            payment_date=payment_date,
            notes=notes,
            receipt_number=receipt_number,
            original_payment_id=original_payment_id,
            received_by_id=actor_id,
            created_by_id=actor_id,
        )
        payment.payment_method = method
        self._session.add(payment)
        self._session.flush()
        return payment

    def _income_category(self, domain: Domain, kind: str | None) -> AccountCategory:
        """
        Configured category for ``kind``; falls back to the domain's first
        active income category when it is missing or inactive.
        """
        name = self._config.category_for_kind(kind)
        category = self._categories.find(domain, name, TransactionType.INCOME)
        if category is not None and category.is_active:
            return category

        fallback = self._categories.first_active(domain, TransactionType.INCOME)
        if fallback is None:
            raise NoIncomeCategoryError(domain.value, requested=name)
        logger.warning(
            "income_category_fallback",
            extra={
                "domain": domain.value,
                "requested": name,
                "fallback": fallback.name,
                "reason": "inactive" if category is not None else "missing",
            },
        )
        return fallback

    def _active_method(self, payment_method_id: UUID) -> PaymentMethod:
        method = self._session.get(PaymentMethod, payment_method_id)
        if method is None:
            raise PaymentMethodNotFoundError(str(payment_method_id))
        if not method.is_active:
            raise PaymentMethodInactiveError(str(payment_method_id))
        return method

    def _locked_payment(self, payment_id: UUID) -> PaymentModel:
        payment = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.id == payment_id)
            .with_for_update(of=PaymentModel)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment
