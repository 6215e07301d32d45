"""
FundService -- per-domain fund movements and manual ledger entries.

Responsibility:
    Records money moved into or out of a domain's account outside the
    invoice flow (fund-in / fund-out vouchers), plus manual income and
    expense entries such as supplier purchases or utility bills.

Architecture position:
    Modules > Funds.  Owns its transaction boundary like PaymentProcessor;
    kernel services only flush.

Invariants enforced:
    - A voucher and its single ledger entry are written in one unit.
    - fund_in -> income under the configured Fund In category;
      fund_out -> expense under the Fund Out category.
    - Manual entries carry a ``manual`` reference with a fresh id.

Failure modes:
    - InvalidAmountError / ValidationError on bad input.
    - InvalidDomainError on an unknown domain.
    - PaymentMethodNotFoundError for an unknown payment method.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import (
    Domain,
    LedgerEntryDraft,
    LedgerReference,
    ReferenceKind,
    TransactionType,
    parse_amount,
)
from billing_kernel.exceptions import (
    PaymentMethodNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.ledger import LedgerTransaction
from billing_kernel.models.payment_method import PaymentMethod
from billing_kernel.selectors.ledger_selector import LedgerEntryRecord, LedgerSelector
from billing_kernel.services.category_service import CategoryRegistry
from billing_kernel.services.ledger_service import LedgerService
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.funds.config import FundConfig
from billing_modules.funds.models import FundDirection, FundMovement
from billing_modules.funds.orm import FundMovementModel

logger = get_logger("modules.funds.service")


class FundService:
    """
    Fund desk operations.

    Transaction boundary: this service commits on success, rolls back on
    failure.
    """

    def __init__(
        self,
        session: Session,
        config: FundConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or FundConfig.with_defaults()
        self._clock = clock or SystemClock()

        self._sequences = SequenceService(session)
        self._categories = CategoryRegistry(session, self._clock)
        self._ledger = LedgerService(
            session, self._clock, self._categories, self._sequences
        )
        self._selector = LedgerSelector(session)

    # =========================================================================
    # Fund movements
    # =========================================================================

    def fund_in(
        self,
        domain: Domain | str,
        amount: Decimal,
        purpose: str,
        actor_id: UUID,
        description: str | None = None,
        movement_date: date | None = None,
    ) -> FundMovement:
        """Money put into the domain's account (credit)."""
        return self._move(
            FundDirection.FUND_IN, domain, amount, purpose, actor_id,
            description, movement_date,
        )

    def fund_out(
        self,
        domain: Domain | str,
        amount: Decimal,
        purpose: str,
        actor_id: UUID,
        description: str | None = None,
        movement_date: date | None = None,
    ) -> FundMovement:
        """Money taken out of the domain's account (debit)."""
        return self._move(
            FundDirection.FUND_OUT, domain, amount, purpose, actor_id,
            description, movement_date,
        )

    def _move(
        self,
        direction: FundDirection,
        domain: Domain | str,
        amount: Decimal,
        purpose: str,
        actor_id: UUID,
        description: str | None,
        movement_date: date | None,
    ) -> FundMovement:
        with LogContext.bind(actor_id=actor_id):
            try:
                domain = Domain.parse(domain)
                amount = parse_amount(amount)
                if not purpose or not purpose.strip():
                    raise ValidationError("purpose is required", field="purpose")
                movement_date = movement_date or self._clock.today()

                if direction == FundDirection.FUND_IN:
                    sequence, prefix = SequenceService.FUND_IN_VOUCHER, self._config.fund_in_prefix
                    entry_type, category = TransactionType.INCOME, self._config.fund_in_category
                else:
                    sequence, prefix = SequenceService.FUND_OUT_VOUCHER, self._config.fund_out_prefix
                    entry_type, category = TransactionType.EXPENSE, self._config.fund_out_category

                voucher_no = self._sequences.next_number(
                    sequence, prefix, self._config.number_width
                )
                movement = FundMovementModel(
                    voucher_no=voucher_no,
                    domain=domain.value,
                    direction=direction.value,
                    amount=amount,
                    purpose=purpose.strip(),
                    description=description,
                    movement_date=movement_date,
                    created_by_id=actor_id,
                )
                self._session.add(movement)
                self._session.flush()

                entry = self._ledger.append(
                    LedgerEntryDraft(
                        domain=domain,
                        type=entry_type,
                        amount=amount,
                        category=category,
                        transaction_date=movement_date,
                        reference=LedgerReference.fund_movement(movement.id),
                        description=f"{voucher_no}: {movement.purpose}",
                        meta={"voucher_no": voucher_no},
                    ),
                    actor_id,
                )

                logger.info(
                    "fund_movement_recorded",
                    extra={
                        "fund_movement_id": str(movement.id),
                        "voucher_no": voucher_no,
                        "direction": direction.value,
                        "domain": domain.value,
                        "amount": str(amount),
                    },
                )
                result = movement.to_dto(ledger_transaction_id=entry.id)
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    def fund_history(
        self,
        domain: Domain | str,
        from_date: date | None = None,
        to_date: date | None = None,
        direction: FundDirection | str | None = None,
    ) -> list[FundMovement]:
        """Vouchers of a domain, oldest first."""
        domain = Domain.parse(domain)
        stmt = (
            select(FundMovementModel, LedgerTransaction.id)
            .outerjoin(
                LedgerTransaction,
                and_(
                    LedgerTransaction.reference_kind == ReferenceKind.FUND_MOVEMENT.value,
                    LedgerTransaction.reference_id == FundMovementModel.id,
                ),
            )
            .where(FundMovementModel.domain == domain.value)
            .order_by(FundMovementModel.movement_date, FundMovementModel.voucher_no)
        )
        if from_date is not None:
            stmt = stmt.where(FundMovementModel.movement_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(FundMovementModel.movement_date <= to_date)
        if direction is not None:
            stmt = stmt.where(FundMovementModel.direction == FundDirection(direction).value)

        return [
            movement.to_dto(ledger_transaction_id=entry_id)
            for movement, entry_id in self._session.execute(stmt).all()
        ]

    # =========================================================================
    # Manual entries
    # =========================================================================

    def record_expense(
        self,
        domain: Domain | str,
        amount: Decimal,
        category: UUID | str,
        actor_id: UUID,
        description: str | None = None,
        payment_method_id: UUID | None = None,
        expense_date: date | None = None,
    ) -> LedgerEntryRecord:
        """Book a manual expense (e.g. a supplier purchase)."""
        return self._manual_entry(
            TransactionType.EXPENSE, domain, amount, category, actor_id,
            description, payment_method_id, expense_date,
        )

    def record_income(
        self,
        domain: Domain | str,
        amount: Decimal,
        category: UUID | str,
        actor_id: UUID,
        description: str | None = None,
        payment_method_id: UUID | None = None,
        income_date: date | None = None,
    ) -> LedgerEntryRecord:
        """Book manual income that has no patient invoice (e.g. walk-in sales)."""
        return self._manual_entry(
            TransactionType.INCOME, domain, amount, category, actor_id,
            description, payment_method_id, income_date,
        )

    def _manual_entry(
        self,
        type: TransactionType,
        domain: Domain | str,
        amount: Decimal,
        category: UUID | str,
        actor_id: UUID,
        description: str | None,
        payment_method_id: UUID | None,
        entry_date: date | None,
    ) -> LedgerEntryRecord:
        with LogContext.bind(actor_id=actor_id):
            try:
                domain = Domain.parse(domain)
                amount = parse_amount(amount)
                if payment_method_id is not None:
                    if self._session.get(PaymentMethod, payment_method_id) is None:
                        raise PaymentMethodNotFoundError(str(payment_method_id))

                reference = LedgerReference.manual(uuid4())
                self._ledger.append(
                    LedgerEntryDraft(
                        domain=domain,
                        type=type,
                        amount=amount,
                        category=category,
                        transaction_date=entry_date or self._clock.today(),
                        reference=reference,
                        payment_method_id=payment_method_id,
                        description=description,
                    ),
                    actor_id,
                )
                record = self._selector.entry_for_reference(reference)
                self._session.commit()
                logger.info(
                    "manual_entry_recorded",
                    extra={
                        "domain": domain.value,
                        "type": type.value,
                        "amount": str(amount),
                        "category": record.category_name,
                    },
                )
                return record
            except Exception:
                self._session.rollback()
                raise
