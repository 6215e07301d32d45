"""
Tests for LedgerSelector -- balances and totals derived from the ledger.

Validates:
- balance_as_of() counts every entry on or before the cutoff
- totals() separates fund movements from income and expense
- category_totals() ordering and fund-movement exclusion
- entries() ordering by (transaction_date, seq) and filters
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.values import LedgerEntryDraft, LedgerReference
from billing_kernel.selectors.ledger_selector import LedgerSelector
from billing_kernel.services.ledger_service import LedgerService


@pytest.fixture
def selector(session) -> LedgerSelector:
    return LedgerSelector(session)


@pytest.fixture
def post(session, deterministic_clock, test_actor_id):
    """Append a ledger entry; fund=True books it as a fund movement."""
    service = LedgerService(session, deterministic_clock)

    def _post(domain, type, amount, category, day, fund=False):
        reference = (
            LedgerReference.fund_movement(uuid4()) if fund else LedgerReference.manual(uuid4())
        )
        row = service.append(
            LedgerEntryDraft(
                domain=domain,
                type=type,
                amount=Decimal(amount),
                category=category,
                transaction_date=day,
                reference=reference,
            ),
            test_actor_id,
        )
        session.commit()
        return row

    return _post


@pytest.fixture
def pharmacy_book(post):
    post("pharmacy", "income", "500", "Medicine Sales", date(2024, 1, 1))
    post("pharmacy", "expense", "200", "Medicine Purchase", date(2024, 1, 1))
    post("pharmacy", "income", "1000", "Fund In", date(2024, 1, 2), fund=True)
    post("pharmacy", "income", "300", "Medicine Sales", date(2024, 1, 3))
    post("pharmacy", "expense", "150", "Fund Out", date(2024, 1, 3), fund=True)
    post("eyewear", "income", "999", "Lens Sales", date(2024, 1, 1))


class TestBalances:

    @pytest.mark.parametrize(
        "cutoff, expected",
        [
            (date(2023, 12, 31), "0"),
            (date(2024, 1, 1), "300"),
            (date(2024, 1, 2), "1300"),
            (date(2024, 1, 3), "1450"),
        ],
    )
    def test_balance_as_of(self, selector, pharmacy_book, cutoff, expected):
        assert selector.balance_as_of("pharmacy", cutoff) == Decimal(expected)

    def test_empty_domain(self, selector):
        assert selector.balance_as_of("operations", date(2024, 1, 1)) == Decimal("0")

    def test_totals_split_fund_movements(self, selector, pharmacy_book):
        totals = selector.totals("pharmacy")
        assert totals.income == Decimal("800")
        assert totals.expense == Decimal("200")
        assert totals.fund_in == Decimal("1000")
        assert totals.fund_out == Decimal("150")
        assert totals.total_credit == Decimal("1800")
        assert totals.total_debit == Decimal("350")
        assert totals.net == Decimal("1450")

    def test_totals_in_range(self, selector, pharmacy_book):
        totals = selector.totals("pharmacy", date(2024, 1, 2), date(2024, 1, 3))
        assert totals.income == Decimal("300")
        assert totals.fund_in == Decimal("1000")
        assert totals.expense == Decimal("0")

    def test_daily_totals_only_days_with_entries(self, selector, pharmacy_book):
        by_day = selector.daily_totals("pharmacy", date(2023, 12, 31), date(2024, 1, 3))
        assert sorted(by_day) == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert by_day[date(2024, 1, 3)].net == Decimal("150")


class TestCategoryTotals:

    def test_largest_first_without_funds(self, selector, pharmacy_book):
        rows = selector.category_totals("pharmacy")
        assert [(r.category_name, r.total, r.entry_count) for r in rows] == [
            ("Medicine Sales", Decimal("800"), 2),
            ("Medicine Purchase", Decimal("200"), 1),
        ]

    def test_include_fund_movements(self, selector, pharmacy_book):
        names = [r.category_name for r in selector.category_totals("pharmacy", include_fund_movements=True)]
        assert names[0] == "Fund In"
        assert "Fund Out" in names

    def test_filter_by_type(self, selector, pharmacy_book):
        rows = selector.category_totals("pharmacy", type="expense")
        assert [r.category_name for r in rows] == ["Medicine Purchase"]

    def test_category_total(self, selector, pharmacy_book):
        assert selector.category_total("pharmacy", "Medicine Sales", "income") == Decimal("800")
        assert selector.category_total(
            "pharmacy", "Medicine Sales", "income", to_date=date(2024, 1, 1)
        ) == Decimal("500")
        assert selector.category_total("pharmacy", "Unknown", "income") == Decimal("0")


class TestEntries:

    def test_ordered_by_date_then_seq(self, selector, post):
        late = post("facility", "income", "10", "Consultation", date(2024, 1, 5))
        first = post("facility", "income", "20", "Consultation", date(2024, 1, 4))
        second = post("facility", "expense", "5", "Utilities", date(2024, 1, 4))

        assert [e.id for e in selector.entries("facility")] == [first.id, second.id, late.id]

    def test_filters(self, selector, pharmacy_book):
        assert len(selector.entries("pharmacy", type="expense")) == 2
        assert len(selector.entries("pharmacy", reference_kind="fund_movement")) == 2
        assert len(selector.entries("pharmacy", from_date=date(2024, 1, 3))) == 2

    def test_entry_for_reference(self, selector, post):
        row = post("facility", "income", "10", "Consultation", date(2024, 1, 1))
        record = selector.entry_for_reference(LedgerReference("manual", row.reference_id))
        assert record.id == row.id
        assert record.category_name == "Consultation"
        assert selector.entry_for_reference(LedgerReference.payment(uuid4())) is None
