"""
Reporting Module.

Read-only domain reports derived purely from ledger history.
"""

from billing_modules.reporting.config import ProductLine, ReportingConfig
from billing_modules.reporting.models import (
    Analytics,
    BalanceSheet,
    DailyStatement,
    LedgerSummary,
    MonthlyReport,
    ProductLineResult,
    StatementRow,
    StatementTotals,
    TrendPoint,
)

__all__ = [
    "Analytics",
    "BalanceSheet",
    "DailyStatement",
    "LedgerSummary",
    "MonthlyReport",
    "ProductLine",
    "ProductLineResult",
    "ReportingConfig",
    "StatementRow",
    "StatementTotals",
    "TrendPoint",
]
