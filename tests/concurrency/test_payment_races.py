"""
Multi-connection race tests for the payment and fund desks.

Each worker thread owns a session; a Barrier releases them together so
the invoice row lock and the sequence counter lock are actually
contended.  Requires PostgreSQL (SQLite ignores FOR UPDATE).

Run with: DATABASE_URL=postgresql://... pytest tests/concurrency -v
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from billing_kernel.domain.values import TransactionType
from billing_kernel.exceptions import AmountExceedsDueError, InvoiceAlreadyPaidError
from billing_kernel.selectors.ledger_selector import LedgerSelector
from billing_kernel.services.category_service import CategoryRegistry
from billing_modules.funds.service import FundService
from billing_modules.invoicing.models import LineItemSpec
from billing_modules.invoicing.tracker import InvoiceTracker
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.service import PaymentProcessor

pytestmark = pytest.mark.postgres


@pytest.fixture
def open_invoice(session, deterministic_clock, test_actor_id):
    """Factory: a committed consultation invoice of ``total`` plus a cash method."""
    config = PaymentConfig.with_defaults()
    CategoryRegistry(session, deterministic_clock).find_or_create(
        "facility", "Consultation", TransactionType.INCOME, test_actor_id
    )
    session.commit()
    method = PaymentProcessor(session, config, deterministic_clock).add_payment_method(
        "cash", "Cash", test_actor_id
    )
    invoices = InvoiceTracker(session, config, deterministic_clock)
    patient = invoices.register_patient("P-RACE", "Race Patient", test_actor_id)

    def _create(total: Decimal):
        invoice = invoices.create_invoice(
            patient.id,
            "consultation",
            [LineItemSpec("consultation", "Consultation", total)],
            test_actor_id,
        )
        session.commit()
        return invoice, method

    return _create


def _run_parallel(session_factory, workers: int, work):
    """Run ``work(session)`` on ``workers`` threads released together."""
    barrier = Barrier(workers)

    def _worker(_):
        sess = session_factory()
        try:
            barrier.wait()
            return work(sess)
        finally:
            sess.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_worker, range(workers)))


class TestConcurrentPayments:

    def test_only_one_overlapping_payment_wins(
        self, session, session_factory, open_invoice, deterministic_clock, test_actor_id,
    ):
        invoice, method = open_invoice(Decimal("100"))

        def pay(sess):
            processor = PaymentProcessor(sess, PaymentConfig.with_defaults(), deterministic_clock)
            try:
                return processor.process_partial_payment(
                    invoice.id, Decimal("60"), method.id, test_actor_id
                )
            except (AmountExceedsDueError, InvoiceAlreadyPaidError) as exc:
                return exc

        results = _run_parallel(session_factory, 5, pay)

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(r, AmountExceedsDueError) for r in results if r not in successes)

        session.expire_all()
        assert invoice.paid_amount == Decimal("60")
        assert invoice.due_amount == Decimal("40")
        assert LedgerSelector(session).totals("facility").income == Decimal("60")

    def test_parallel_payments_get_distinct_numbers(
        self, session, session_factory, open_invoice, deterministic_clock, test_actor_id,
    ):
        invoice, method = open_invoice(Decimal("100"))

        def pay(sess):
            processor = PaymentProcessor(sess, PaymentConfig.with_defaults(), deterministic_clock)
            return processor.process_partial_payment(
                invoice.id, Decimal("10"), method.id, test_actor_id
            )

        payments = _run_parallel(session_factory, 10, pay)

        numbers = sorted(p.payment_number for p in payments)
        assert numbers == [f"PAY-{n:06d}" for n in range(1, 11)]
        session.expire_all()
        assert invoice.status == "paid"
        assert invoice.due_amount == Decimal("0")


class TestConcurrentFundMovements:

    def test_vouchers_unique_and_balance_exact(
        self, session, session_factory, deterministic_clock, test_actor_id,
    ):
        def deposit(sess):
            return FundService(sess, clock=deterministic_clock).fund_in(
                "pharmacy", Decimal("25"), "Float top-up", test_actor_id
            )

        movements = _run_parallel(session_factory, 8, deposit)

        assert len({m.voucher_no for m in movements}) == 8
        assert LedgerSelector(session).balance_as_of(
            "pharmacy", deterministic_clock.today()
        ) == Decimal("200")
