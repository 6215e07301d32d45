"""
Reporting Domain Models (``billing_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass DTOs for every report the module produces: the daily
statement, the monthly report, the balance sheet and the analytics view.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``StatementRow.balance`` is the running balance at the end of the row's
  day: previous balance + total_credit - total_debit.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from billing_kernel.selectors.ledger_selector import CategoryTotal

ZERO = Decimal("0")


# =========================================================================
# Daily statement
# =========================================================================


@dataclass(frozen=True)
class StatementRow:
    """One day of a domain's statement."""

    date: date
    fund_in: Decimal
    income: Decimal
    fund_out: Decimal
    expense: Decimal
    total_credit: Decimal
    total_debit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class StatementTotals:
    fund_in: Decimal = ZERO
    income: Decimal = ZERO
    fund_out: Decimal = ZERO
    expense: Decimal = ZERO
    total_credit: Decimal = ZERO
    total_debit: Decimal = ZERO


@dataclass(frozen=True)
class DailyStatement:
    """
    Day-by-day statement of a domain over a date range.

    opening_balance is the balance at the end of the day before from_date;
    closing_balance equals the last row's balance.
    """

    domain: str
    from_date: date
    to_date: date
    opening_balance: Decimal
    rows: tuple[StatementRow, ...]
    totals: StatementTotals
    closing_balance: Decimal


# =========================================================================
# Monthly report
# =========================================================================


@dataclass(frozen=True)
class MonthlyReport:
    """
    Income and expense of one calendar month, fund movements excluded.

    balance is the domain balance at the end of the month, fund movements
    included.
    """

    domain: str
    year: int
    month: int
    income: Decimal
    expense: Decimal
    profit: Decimal
    balance: Decimal


# =========================================================================
# Balance sheet
# =========================================================================


@dataclass(frozen=True)
class LedgerSummary:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    fund_in: Decimal = ZERO
    fund_out: Decimal = ZERO
    balance: Decimal = ZERO

    @property
    def profit(self) -> Decimal:
        return self.income - self.expense


@dataclass(frozen=True)
class ProductLineResult:
    """Sales, purchases and margin of one product line."""

    name: str
    sales: Decimal
    purchases: Decimal
    profit: Decimal
    margin: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    """
    Cumulative position of a domain plus the current-month slice.

    ``current_month.balance`` is the month's net movement, not a
    cumulative balance.
    """

    domain: str
    as_of: date
    totals: LedgerSummary
    category_profits: tuple[ProductLineResult, ...]
    current_month: LedgerSummary
    current_month_profits: tuple[ProductLineResult, ...] = field(default_factory=tuple)


# =========================================================================
# Analytics
# =========================================================================


@dataclass(frozen=True)
class TrendPoint:
    year: int
    month: int
    income: Decimal
    expense: Decimal

    @property
    def profit(self) -> Decimal:
        return self.income - self.expense


@dataclass(frozen=True)
class Analytics:
    """Trailing trend, category breakdown and product-line margins."""

    domain: str
    as_of: date
    trend: tuple[TrendPoint, ...]
    category_breakdown: tuple[CategoryTotal, ...]
    product_lines: tuple[ProductLineResult, ...]
    profit_margin: Decimal
