"""
Reporting Module Service (``billing_modules.reporting.service``).

Responsibility
--------------
Produces the per-domain reports -- daily statement, monthly report,
balance sheet and analytics -- by bridging ``LedgerSelector`` aggregates
to the pure functions in ``statements.py``.  Read-only: nothing is
written, nothing is locked.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config``.

Invariants enforced
-------------------
* Every figure derives from ledger history; no stored balances are read.
* daily statement: balance[d] = balance[d-1] + credit - debit, seeded by
  balance_as_of(domain, from_date - 1 day).
* monthly report: income/expense exclude fund movements; balance includes
  them.

Failure modes
-------------
* InvalidDateRangeError when to_date < from_date.
* ValidationError on a month outside 1-12.
* InvalidDomainError on an unknown domain.

Audit relevance
---------------
Structured log events for every report, carrying domain and period.
"""

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import Domain, TransactionType
from billing_kernel.exceptions import InvalidDateRangeError
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.ledger_selector import LedgerSelector, LedgerTotals
from billing_modules.reporting.config import ReportingConfig
from billing_modules.reporting.models import (
    Analytics,
    BalanceSheet,
    DailyStatement,
    LedgerSummary,
    MonthlyReport,
    ProductLineResult,
)
from billing_modules.reporting.statements import (
    build_statement_rows,
    build_trend,
    margin,
    month_bounds,
    product_line_result,
    trailing_months,
)

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Domain report generation.

    Contract
    --------
    * Every public method returns a frozen report DTO.
    * All methods are read-only.

    Non-goals
    ---------
    * No snapshot pinning: callers wanting a frozen view wrap the calls in
      one transaction themselves.
    * No rendering or export formatting.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)

    # =========================================================================
    # Public API
    # =========================================================================

    def daily_statement(
        self,
        domain: Domain | str,
        from_date: date,
        to_date: date,
    ) -> DailyStatement:
        """Day-by-day credits, debits and running balance over a range."""
        domain = Domain.parse(domain)
        if to_date < from_date:
            raise InvalidDateRangeError(from_date, to_date)

        opening = self._ledger.balance_as_of(domain, from_date - timedelta(days=1))
        daily = self._ledger.daily_totals(domain, from_date, to_date)
        rows, totals = build_statement_rows(opening, daily, from_date, to_date)

        statement = DailyStatement(
            domain=domain.value,
            from_date=from_date,
            to_date=to_date,
            opening_balance=opening,
            rows=rows,
            totals=totals,
            closing_balance=rows[-1].balance if rows else opening,
        )
        logger.info(
            "daily_statement_generated",
            extra={
                "domain": domain.value,
                "from_date": from_date.isoformat(),
                "to_date": to_date.isoformat(),
                "row_count": len(rows),
                "opening_balance": str(opening),
                "closing_balance": str(statement.closing_balance),
            },
        )
        return statement

    def monthly_report(self, domain: Domain | str, year: int, month: int) -> MonthlyReport:
        """Income, expense and profit of one month, plus the month-end balance."""
        domain = Domain.parse(domain)
        first, last = month_bounds(year, month)
        totals = self._ledger.totals(domain, first, last)

        report = MonthlyReport(
            domain=domain.value,
            year=year,
            month=month,
            income=totals.income,
            expense=totals.expense,
            profit=totals.income - totals.expense,
            balance=self._ledger.balance_as_of(domain, last),
        )
        logger.info(
            "monthly_report_generated",
            extra={
                "domain": domain.value,
                "year": year,
                "month": month,
                "profit": str(report.profit),
            },
        )
        return report

    def balance_sheet(self, domain: Domain | str) -> BalanceSheet:
        """Cumulative totals, product-line profits and the current month."""
        domain = Domain.parse(domain)
        today = self._clock.today()
        month_start, month_end = month_bounds(today.year, today.month)

        cumulative = self._ledger.totals(domain)
        current = self._ledger.totals(domain, month_start, month_end)

        sheet = BalanceSheet(
            domain=domain.value,
            as_of=today,
            totals=self._summary(cumulative),
            category_profits=self._product_lines(domain),
            current_month=self._summary(current),
            current_month_profits=self._product_lines(domain, month_start, month_end),
        )
        logger.info(
            "balance_sheet_generated",
            extra={
                "domain": domain.value,
                "balance": str(sheet.totals.balance),
                "product_line_count": len(sheet.category_profits),
            },
        )
        return sheet

    def analytics(self, domain: Domain | str) -> Analytics:
        """
        Trailing monthly trend (oldest first), category breakdown of the
        current month and product-line margins.
        """
        domain = Domain.parse(domain)
        today = self._clock.today()
        months = trailing_months(today, self._config.trend_months)
        window_start = month_bounds(*months[0])[0]
        window_end = month_bounds(*months[-1])[1]

        by_month: dict[tuple[int, int], LedgerTotals] = {}
        for day, totals in self._ledger.daily_totals(domain, window_start, window_end).items():
            bucket = by_month.setdefault((day.year, day.month), LedgerTotals())
            bucket.income += totals.income
            bucket.expense += totals.expense
            bucket.fund_in += totals.fund_in
            bucket.fund_out += totals.fund_out

        month_start, month_end = month_bounds(today.year, today.month)
        breakdown = self._ledger.category_totals(domain, month_start, month_end)

        lines = self._product_lines(domain)
        sales = sum((line.sales for line in lines), Decimal("0"))
        purchases = sum((line.purchases for line in lines), Decimal("0"))

        result = Analytics(
            domain=domain.value,
            as_of=today,
            trend=build_trend(by_month, months),
            category_breakdown=tuple(breakdown),
            product_lines=lines,
            profit_margin=margin(sales, purchases, self._config.display_precision),
        )
        logger.info(
            "analytics_generated",
            extra={
                "domain": domain.value,
                "trend_months": len(result.trend),
                "category_count": len(result.category_breakdown),
                "profit_margin": str(result.profit_margin),
            },
        )
        return result

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @staticmethod
    def _summary(totals: LedgerTotals) -> LedgerSummary:
        return LedgerSummary(
            income=totals.income,
            expense=totals.expense,
            fund_in=totals.fund_in,
            fund_out=totals.fund_out,
            balance=totals.net,
        )

    def _product_lines(
        self,
        domain: Domain,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> tuple[ProductLineResult, ...]:
        results = []
        for line in self._config.lines_for(domain):
            sales = self._ledger.category_total(
                domain, line.sales_category, TransactionType.INCOME, from_date, to_date
            )
            purchases = self._ledger.category_total(
                domain, line.purchase_category, TransactionType.EXPENSE, from_date, to_date
            )
            results.append(
                product_line_result(
                    line.name, sales, purchases, self._config.display_precision
                )
            )
        return tuple(results)
