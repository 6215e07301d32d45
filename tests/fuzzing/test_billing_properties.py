"""
Property-based tests for billing invariants.

Properties:
- split_evenly() always sums to the due amount, to the cent
- Statement balances follow balance[d] = balance[d-1] + credit - debit
- After any sequence of valid payments: paid + due == total, the status
  agrees with the amounts, and the ledger grew by exactly the amount paid
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from billing_kernel.domain.values import TransactionType
from billing_kernel.exceptions import InvalidInstallmentPlanError
from billing_kernel.selectors.ledger_selector import LedgerSelector, LedgerTotals
from billing_kernel.services.category_service import CategoryRegistry
from billing_modules.invoicing.installments import InstallmentTracker
from billing_modules.invoicing.models import InvoiceStatus, LineItemSpec
from billing_modules.invoicing.tracker import InvoiceTracker
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.service import PaymentProcessor
from billing_modules.reporting.statements import build_statement_rows

cents = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("5000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestSplitProperties:

    @given(due=cents, count=st.integers(min_value=1, max_value=24))
    @settings(max_examples=300)
    def test_parts_sum_to_due(self, due, count):
        if due < Decimal("0.01") * count:
            with pytest.raises(InvalidInstallmentPlanError):
                InstallmentTracker.split_evenly(due, count)
            return

        parts = InstallmentTracker.split_evenly(due, count)

        assert len(parts) == count
        assert sum(parts) == due
        assert all(p > 0 for p in parts)
        assert len(set(parts[:-1])) <= 1
        assert parts[-1] >= parts[0]


class TestStatementProperties:

    @given(
        opening=st.decimals(min_value=Decimal("-10000"), max_value=Decimal("10000"), places=2),
        days=st.lists(
            st.tuples(cents, cents, cents, cents),
            min_size=1,
            max_size=40,
        ),
        skip=st.sets(st.integers(min_value=0, max_value=39)),
    )
    @settings(max_examples=200)
    def test_balance_recurrence(self, opening, days, skip):
        start = date(2024, 1, 1)
        end = start + timedelta(days=len(days) - 1)
        daily = {
            start + timedelta(days=i): LedgerTotals(
                income=income, expense=expense, fund_in=fund_in, fund_out=fund_out
            )
            for i, (income, expense, fund_in, fund_out) in enumerate(days)
            if i not in skip
        }

        rows, totals = build_statement_rows(opening, daily, start, end)

        assert len(rows) == len(days)
        previous = opening
        for row in rows:
            assert row.balance == previous + row.total_credit - row.total_debit
            previous = row.balance
        assert rows[-1].balance == opening + totals.total_credit - totals.total_debit


@pytest.mark.slow
class TestPaymentProperties:

    @pytest.fixture
    def desk(self, session, deterministic_clock, test_actor_id):
        config = PaymentConfig.with_defaults()
        CategoryRegistry(session, deterministic_clock).find_or_create(
            "facility", "Consultation", TransactionType.INCOME, test_actor_id
        )
        session.commit()
        processor = PaymentProcessor(session, config, deterministic_clock)
        method = processor.add_payment_method("cash", "Cash", test_actor_id)
        return {
            "processor": processor,
            "invoices": InvoiceTracker(session, config, deterministic_clock),
            "ledger": LedgerSelector(session),
            "method": method,
        }

    @given(
        amounts=st.lists(cents, min_size=1, max_size=8),
        extra=st.decimals(min_value=Decimal("0"), max_value=Decimal("500"), places=2),
    )
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    def test_paid_plus_due_is_total(self, session, desk, test_actor_id, amounts, extra):
        invoices = desk["invoices"]
        processor = desk["processor"]
        total = sum(amounts) + extra

        patient = invoices.register_patient(f"P-{uuid4().hex[:12]}", "Fuzz Patient", test_actor_id)
        invoice = invoices.create_invoice(
            patient.id,
            "consultation",
            [LineItemSpec("consultation", "Consultation", total)],
            test_actor_id,
        )
        session.commit()
        income_before = desk["ledger"].totals("facility").income

        for amount in amounts:
            processor.process_partial_payment(
                invoice.id, amount, desk["method"].id, test_actor_id
            )
            assert invoice.paid_amount + invoice.due_amount == invoice.total_amount

        assert invoice.paid_amount == sum(amounts)
        assert invoice.due_amount == extra
        expected = InvoiceStatus.PAID if extra == 0 else InvoiceStatus.PARTIALLY_PAID
        assert invoice.status == expected.value
        assert desk["ledger"].totals("facility").income - income_before == sum(amounts)
