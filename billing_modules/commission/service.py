"""
CommissionCalculator -- practitioner commissions derived from payments.

Responsibility:
    Derives at most one commission per payment, for payments against an
    invoice that carries a consultation line and whose appointment names a
    practitioner.  Anything short of that chain is a silent no-op.

Architecture position:
    Modules > Commission.  Flush-only; invoked by PaymentProcessor inside
    its unit of work.

Invariants enforced:
    - One commission per payment: uq_commissions_payment plus a savepoint
      insert.  A concurrent insert that loses the race re-reads the winner.
    - Fee schedule present -> amount = practitioner_fee,
      percentage = practitioner_fee / base_price * 100.
      Otherwise amount = payment.amount * rate / 100, percentage = rate.

Failure modes:
    - CommissionNotFoundError / CommissionAlreadyPaidError from mark_paid().
    - Missing links in the payment chain are NOT errors; they return None.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from billing_kernel.db.types import ZERO, percentage_of, round_money
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    CommissionAlreadyPaidError,
    CommissionNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.commission.models import CommissionQuote, CommissionStatus
from billing_modules.commission.orm import (
    AppointmentModel,
    CommissionModel,
    FeeScheduleModel,
    PractitionerModel,
)
from billing_modules.invoicing.orm import InvoiceModel
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.orm import PaymentModel

logger = get_logger("modules.commission.service")

SOURCE_FEE_SCHEDULE = "fee_schedule"
SOURCE_DEFAULT_RATE = "default_rate"


def quote(
    payment_amount: Decimal,
    fee_schedule: FeeScheduleModel | None,
    default_rate: Decimal,
) -> CommissionQuote:
    """The commission owed on ``payment_amount``.  Pure function."""
    if fee_schedule is not None:
        return CommissionQuote(
            amount=fee_schedule.practitioner_fee,
            percentage=percentage_of(fee_schedule.practitioner_fee, fee_schedule.base_price),
            source=SOURCE_FEE_SCHEDULE,
        )
    return CommissionQuote(
        amount=round_money(payment_amount * default_rate / Decimal("100")),
        percentage=default_rate,
        source=SOURCE_DEFAULT_RATE,
    )


class CommissionCalculator(BaseService[CommissionModel]):
    """
    Commission derivation and settlement.

    Contract:
        Flush-only; the caller owns the transaction.

    Guarantees:
        - compute_commission() is idempotent per payment.
    """

    def __init__(
        self,
        session,
        config: PaymentConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._config = config or PaymentConfig.with_defaults()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Derivation
    # =========================================================================

    def compute_commission(
        self,
        payment: PaymentModel,
        actor_id: UUID,
    ) -> CommissionModel | None:
        """
        Derive the commission for ``payment`` if its chain supports one.

        Returns the (new or existing) commission, or None when the payment
        has no invoice, the invoice no appointment or consultation line, or
        the appointment no practitioner.
        """
        practitioner_id = self._commissionable_practitioner(payment)
        if practitioner_id is None:
            return None

        existing = self.for_payment(payment.id)
        if existing is not None:
            logger.debug(
                "commission_already_exists",
                extra={"payment_id": str(payment.id), "commission_id": str(existing.id)},
            )
            return existing

        result = quote(
            payment.amount,
            self.active_fee_schedule(self._config.commission_service_type),
            self._config.default_commission_rate,
        )

        savepoint = self.session.begin_nested()
        try:
            commission = CommissionModel(
                practitioner_id=practitioner_id,
                payment_id=payment.id,
                amount=result.amount,
                percentage=result.percentage,
                earned_date=payment.payment_date,
                status=CommissionStatus.PENDING.value,
                created_by_id=actor_id,
            )
            self.session.add(commission)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "commission_insert_race_lost",
                extra={"payment_id": str(payment.id)},
            )
            existing = self.for_payment(payment.id)
            if existing is None:
                raise
            return existing

        logger.info(
            "commission_created",
            extra={
                "commission_id": str(commission.id),
                "payment_id": str(payment.id),
                "practitioner_id": str(practitioner_id),
                "amount": str(result.amount),
                "percentage": str(result.percentage),
                "source": result.source,
            },
        )
        return commission

    def _commissionable_practitioner(self, payment: PaymentModel) -> UUID | None:
        if payment.invoice_id is None or payment.amount <= ZERO:
            return None
        invoice = self.session.get(InvoiceModel, payment.invoice_id)
        if invoice is None or invoice.appointment_id is None:
            return None
        appointment = self.session.get(AppointmentModel, invoice.appointment_id)
        if appointment is None or appointment.practitioner_id is None:
            return None
        if not invoice.has_line_of_type(self._config.commissionable_item_type):
            return None
        return appointment.practitioner_id

    def active_fee_schedule(self, service_type: str) -> FeeScheduleModel | None:
        """The oldest active schedule for ``service_type``."""
        return self.session.execute(
            select(FeeScheduleModel)
            .where(
                FeeScheduleModel.service_type == service_type,
                FeeScheduleModel.is_active.is_(True),
            )
            .order_by(FeeScheduleModel.created_at)
            .limit(1)
        ).scalars().first()

    # =========================================================================
    # Queries and settlement
    # =========================================================================

    def for_payment(self, payment_id: UUID) -> CommissionModel | None:
        return self.session.execute(
            select(CommissionModel).where(CommissionModel.payment_id == payment_id)
        ).scalar_one_or_none()

    def get(self, commission_id: UUID) -> CommissionModel:
        commission = self.session.get(CommissionModel, commission_id)
        if commission is None:
            raise CommissionNotFoundError(str(commission_id))
        return commission

    def pending_for_practitioner(self, practitioner_id: UUID) -> list[CommissionModel]:
        return list(
            self.session.execute(
                select(CommissionModel)
                .where(
                    CommissionModel.practitioner_id == practitioner_id,
                    CommissionModel.status == CommissionStatus.PENDING.value,
                )
                .order_by(CommissionModel.earned_date, CommissionModel.created_at)
            ).scalars().all()
        )

    def mark_paid(
        self,
        commission_id: UUID,
        actor_id: UUID,
        paid_date: date | None = None,
    ) -> CommissionModel:
        commission = self.get(commission_id)
        if commission.status == CommissionStatus.PAID.value:
            raise CommissionAlreadyPaidError(str(commission.id))
        commission.status = CommissionStatus.PAID.value
        commission.paid_date = paid_date or self._clock.today()
        commission.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "commission_paid",
            extra={
                "commission_id": str(commission.id),
                "practitioner_id": str(commission.practitioner_id),
                "amount": str(commission.amount),
            },
        )
        return commission

    # =========================================================================
    # Collaborator records (seeded by scheduling workflows)
    # =========================================================================

    def add_practitioner(self, code: str, name: str, actor_id: UUID) -> PractitionerModel:
        if not code or not name:
            raise ValidationError("Practitioner code and name are required", field="code")
        practitioner = PractitionerModel(code=code, name=name, created_by_id=actor_id)
        self.session.add(practitioner)
        self.session.flush()
        return practitioner

    def add_appointment(
        self,
        patient_id: UUID,
        practitioner_id: UUID | None,
        actor_id: UUID,
        scheduled_at: datetime | None = None,
    ) -> AppointmentModel:
        appointment = AppointmentModel(
            patient_id=patient_id,
            practitioner_id=practitioner_id,
            scheduled_at=scheduled_at,
            created_by_id=actor_id,
        )
        self.session.add(appointment)
        self.session.flush()
        return appointment

    def add_fee_schedule(
        self,
        service_type: str,
        base_price: Decimal,
        practitioner_fee: Decimal,
        actor_id: UUID,
        is_active: bool = True,
    ) -> FeeScheduleModel:
        if base_price <= ZERO:
            raise ValidationError("base_price must be positive", field="base_price")
        if practitioner_fee < ZERO:
            raise ValidationError(
                "practitioner_fee cannot be negative", field="practitioner_fee"
            )
        now = self._clock.now()
        schedule = FeeScheduleModel(
            service_type=service_type,
            base_price=base_price,
            practitioner_fee=practitioner_fee,
            is_active=is_active,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(schedule)
        self.session.flush()
        return schedule
