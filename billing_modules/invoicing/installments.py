"""
InstallmentTracker -- splitting an invoice into scheduled part-payments.

Responsibility:
    Creates installment plans over an invoice's due amount and applies
    payments to individual installments.

Architecture position:
    Modules > Invoicing.  Flush-only; PaymentProcessor owns the transaction
    for installment payments.

Invariants enforced:
    - paid_amount <= installment_amount (checked here and by a table
      constraint).
    - status flips to paid exactly once, when paid_amount reaches
      installment_amount; paid_date is stamped at that moment only.
    - balance is derived (installment_amount - paid_amount); no column
      stores it.
    - A plan's amounts sum to the invoice due within the currency epsilon.

Failure modes:
    - InstallmentNotFoundError on unknown ids.
    - InstallmentAlreadyPaidError / AmountExceedsInstallmentBalanceError
      from apply().
    - InvoiceAlreadyPaidError / InstallmentPlanExistsError /
      InvalidInstallmentPlanError from create_plan().
"""

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

from sqlalchemy import func, select

from billing_kernel.db.types import ZERO, money_close, round_money
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import parse_amount
from billing_kernel.exceptions import (
    AmountExceedsInstallmentBalanceError,
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    InstallmentPlanExistsError,
    InvalidInstallmentPlanError,
    InvoiceAlreadyPaidError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.invoicing.models import InstallmentStatus, InvoiceStatus
from billing_modules.invoicing.orm import InstallmentModel
from billing_modules.invoicing.tracker import InvoiceTracker
from billing_modules.payments.config import PaymentConfig

logger = get_logger("modules.invoicing.installments")


class InstallmentTracker(BaseService[InstallmentModel]):
    """
    Installment plans and their payment state.

    Non-goals:
        - Does not write payments or ledger entries; PaymentProcessor does.
    """

    def __init__(
        self,
        session,
        config: PaymentConfig | None = None,
        clock: Clock | None = None,
        invoices: InvoiceTracker | None = None,
    ):
        super().__init__(session)
        self._config = config or PaymentConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._invoices = invoices or InvoiceTracker(session, self._config, self._clock)

    # =========================================================================
    # Plans
    # =========================================================================

    def create_plan(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        amounts: Sequence[Decimal] | None = None,
        count: int | None = None,
        first_due_date: date | None = None,
        interval_days: int = 30,
    ) -> list[InstallmentModel]:
        """
        Split the invoice's current due amount into installments.

        Pass either explicit ``amounts`` (must sum to the due amount) or a
        ``count`` of equal parts; rounding remainder goes on the last part.
        """
        invoice = self._invoices.get_invoice(invoice_id, lock=True)
        due = invoice.due_amount

        if invoice.status == InvoiceStatus.PAID.value or due <= ZERO:
            raise InvoiceAlreadyPaidError(str(invoice.id))
        if self._plan_size(invoice.id) > 0:
            raise InstallmentPlanExistsError(str(invoice.id))
        if (amounts is None) == (count is None):
            raise InvalidInstallmentPlanError(
                str(invoice.id), "pass exactly one of amounts or count"
            )
        if interval_days < 0:
            raise InvalidInstallmentPlanError(str(invoice.id), "interval_days cannot be negative")

        if amounts is not None:
            parts = [parse_amount(a, field="amounts") for a in amounts]
            if not parts:
                raise InvalidInstallmentPlanError(str(invoice.id), "no amounts given")
            planned = sum(parts, ZERO)
            if not money_close(planned, due, self._config.currency_epsilon):
                raise InvalidInstallmentPlanError(
                    str(invoice.id),
                    f"amounts sum to {planned}, invoice due is {due}",
                )
        else:
            parts = self.split_evenly(due, count, str(invoice.id))

        start = first_due_date or self._clock.today()
        installments = []
        for number, part in enumerate(parts, start=1):
            installment = InstallmentModel(
                invoice_id=invoice.id,
                installment_no=number,
                installment_amount=part,
                paid_amount=ZERO,
                status=InstallmentStatus.PENDING.value,
                due_date=start + timedelta(days=interval_days * (number - 1)),
                created_by_id=actor_id,
            )
            self.session.add(installment)
            installments.append(installment)
        self.session.flush()

        logger.info(
            "installment_plan_created",
            extra={
                "invoice_id": str(invoice.id),
                "installment_count": len(parts),
                "amounts": [str(p) for p in parts],
                "due_amount": str(due),
            },
        )
        return installments

    @staticmethod
    def split_evenly(due: Decimal, count: int | None, invoice_id: str = "") -> list[Decimal]:
        """``count`` parts of ``due`` to the cent; the last absorbs the remainder."""
        if count is None or count < 1:
            raise InvalidInstallmentPlanError(invoice_id, "count must be at least 1")
        base = round_money(due / count, rounding=ROUND_DOWN)
        if base <= ZERO:
            raise InvalidInstallmentPlanError(invoice_id, f"due {due} too small for {count} parts")
        last = due - base * (count - 1)
        return [base] * (count - 1) + [last]

    def plan_for_invoice(self, invoice_id: UUID) -> list[InstallmentModel]:
        return list(
            self.session.execute(
                select(InstallmentModel)
                .where(InstallmentModel.invoice_id == invoice_id)
                .order_by(InstallmentModel.installment_no)
            ).scalars().all()
        )

    def _plan_size(self, invoice_id: UUID) -> int:
        return self.session.execute(
            select(func.count(InstallmentModel.id))
            .where(InstallmentModel.invoice_id == invoice_id)
        ).scalar_one()

    # =========================================================================
    # Installments
    # =========================================================================

    def get(self, installment_id: UUID, lock: bool = False) -> InstallmentModel:
        stmt = select(InstallmentModel).where(InstallmentModel.id == installment_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        installment = self.session.execute(stmt).scalar_one_or_none()
        if installment is None:
            raise InstallmentNotFoundError(str(installment_id))
        return installment

    def check_payable(self, installment: InstallmentModel, amount: Decimal) -> None:
        """Raise unless ``amount`` can be applied to ``installment``."""
        amount = parse_amount(amount)
        if installment.status == InstallmentStatus.PAID.value:
            raise InstallmentAlreadyPaidError(str(installment.id))
        if amount > installment.balance:
            raise AmountExceedsInstallmentBalanceError(
                str(installment.id), amount, installment.balance
            )

    def apply(
        self,
        installment: InstallmentModel,
        amount: Decimal,
        paid_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> InstallmentModel:
        """
        Add ``amount`` to the installment's paid_amount.

        Postconditions:
            - status == paid iff paid_amount >= installment_amount.
            - paid_date set on the transition to paid, never changed after.
        """
        amount = parse_amount(amount)
        self.check_payable(installment, amount)

        installment.paid_amount = installment.paid_amount + amount
        if installment.paid_amount >= installment.installment_amount:
            installment.status = InstallmentStatus.PAID.value
            installment.paid_date = paid_date or self._clock.today()
        if actor_id is not None:
            installment.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "installment_payment_applied",
            extra={
                "installment_id": str(installment.id),
                "invoice_id": str(installment.invoice_id),
                "amount": str(amount),
                "paid_amount": str(installment.paid_amount),
                "balance": str(installment.balance),
                "status": installment.status,
            },
        )
        return installment

    def overdue(self, as_of: date | None = None) -> list[InstallmentModel]:
        """Unpaid installments whose due date is before ``as_of``."""
        as_of = as_of or self._clock.today()
        return list(
            self.session.execute(
                select(InstallmentModel)
                .where(
                    InstallmentModel.status != InstallmentStatus.PAID.value,
                    InstallmentModel.due_date.is_not(None),
                    InstallmentModel.due_date < as_of,
                )
                .order_by(InstallmentModel.due_date, InstallmentModel.installment_no)
            ).scalars().all()
        )
