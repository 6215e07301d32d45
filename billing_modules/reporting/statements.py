"""
Pure report transformation functions.

These functions turn ledger aggregates (``LedgerTotals`` per day or per
month) into report rows.  ZERO I/O. ZERO side effects.

All monetary values are Decimal.  Functions follow the purity convention
of ``billing_kernel/domain/``:
- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

import calendar
from collections.abc import Iterator, Mapping
from datetime import date, timedelta
from decimal import Decimal

from billing_kernel.db.types import percentage_of
from billing_kernel.exceptions import InvalidDateRangeError, ValidationError
from billing_kernel.selectors.ledger_selector import LedgerTotals
from billing_modules.reporting.models import (
    ProductLineResult,
    StatementRow,
    StatementTotals,
    TrendPoint,
)

# =========================================================================
# Calendar helpers
# =========================================================================


def days_between(from_date: date, to_date: date) -> Iterator[date]:
    """Every date from ``from_date`` to ``to_date`` inclusive."""
    if to_date < from_date:
        raise InvalidDateRangeError(from_date, to_date)
    day = from_date
    while day <= to_date:
        yield day
        day += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be 1-12, got {month}", field="month")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trailing_months(as_of: date, count: int) -> list[tuple[int, int]]:
    """The ``count`` months ending with as_of's month, oldest first."""
    return [
        shift_month(as_of.year, as_of.month, -offset)
        for offset in range(count - 1, -1, -1)
    ]


# =========================================================================
# Daily statement
# =========================================================================


def build_statement_rows(
    opening_balance: Decimal,
    daily: Mapping[date, LedgerTotals],
    from_date: date,
    to_date: date,
) -> tuple[tuple[StatementRow, ...], StatementTotals]:
    """
    One row per day of the range, days without entries included.

    balance[d] = balance[d - 1] + total_credit[d] - total_debit[d], seeded
    by ``opening_balance``.
    """
    rows = []
    balance = opening_balance
    period = LedgerTotals()
    for day in days_between(from_date, to_date):
        totals = daily.get(day) or LedgerTotals()
        balance = balance + totals.total_credit - totals.total_debit
        rows.append(
            StatementRow(
                date=day,
                fund_in=totals.fund_in,
                income=totals.income,
                fund_out=totals.fund_out,
                expense=totals.expense,
                total_credit=totals.total_credit,
                total_debit=totals.total_debit,
                balance=balance,
            )
        )
        period.income += totals.income
        period.expense += totals.expense
        period.fund_in += totals.fund_in
        period.fund_out += totals.fund_out

    return tuple(rows), StatementTotals(
        fund_in=period.fund_in,
        income=period.income,
        fund_out=period.fund_out,
        expense=period.expense,
        total_credit=period.total_credit,
        total_debit=period.total_debit,
    )


# =========================================================================
# Profit and trend
# =========================================================================


def margin(sales: Decimal, purchases: Decimal, decimal_places: int = 2) -> Decimal:
    """(sales - purchases) / sales * 100; zero when there are no sales."""
    return percentage_of(sales - purchases, sales, decimal_places)


def product_line_result(
    name: str,
    sales: Decimal,
    purchases: Decimal,
    decimal_places: int = 2,
) -> ProductLineResult:
    return ProductLineResult(
        name=name,
        sales=sales,
        purchases=purchases,
        profit=sales - purchases,
        margin=margin(sales, purchases, decimal_places),
    )


def build_trend(
    by_month: Mapping[tuple[int, int], LedgerTotals],
    months: list[tuple[int, int]],
) -> tuple[TrendPoint, ...]:
    """Income/expense per month in the given order; missing months are zero."""
    points = []
    for year, month in months:
        totals = by_month.get((year, month)) or LedgerTotals()
        points.append(
            TrendPoint(year=year, month=month, income=totals.income, expense=totals.expense)
        )
    return tuple(points)
