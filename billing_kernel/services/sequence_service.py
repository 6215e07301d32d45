"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for ledger entry
    ordering (``seq``), payment numbers (PAY-000001) and fund vouchers
    (FI-000001 / FO-000001).  Uses a dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) so concurrent payments
    never receive the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by LedgerService, PaymentProcessor and FundService.

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  MAX(seq) + 1 is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.logging_config import get_logger
from billing_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic sequences via locked counter row.
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for
          the same sequence.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    # Well-known sequence names
    LEDGER_TRANSACTION = "ledger_transaction"
    PAYMENT_NUMBER = "payment_number"
    FUND_IN_VOUCHER = "fund_in_voucher"
    FUND_OUT_VOUCHER = "fund_out_voucher"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the sequence row (creating it on first use), increments the
        counter and returns the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this sequence name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; another transaction may create it simultaneously.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(self, sequence_name: str, prefix: str, width: int = 6) -> str:
        """Allocate the next value formatted as ``{prefix}-{value:0{width}d}``."""
        return f"{prefix}-{self.next_value(sequence_name):0{width}d}"

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: Only for tests and data migrations.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        else:
            counter.current_value = value

        self._session.flush()
