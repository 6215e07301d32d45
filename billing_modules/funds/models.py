"""
Fund Desk Domain Models (``billing_modules.funds.models``).

Fund-in / fund-out are cash movements into or out of a domain's account
that are not tied to an invoice (owner top-ups, bank transfers, petty cash
withdrawals).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class FundDirection(str, Enum):
    FUND_IN = "fund_in"
    FUND_OUT = "fund_out"


@dataclass(frozen=True)
class FundMovement:
    id: UUID
    voucher_no: str
    domain: str
    direction: FundDirection
    amount: Decimal
    purpose: str
    movement_date: date
    description: str | None = None
    ledger_transaction_id: UUID | None = None
