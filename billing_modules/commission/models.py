"""
Commission Domain Models (``billing_modules.commission.models``).

Frozen dataclasses for practitioners, fee schedules and the commissions
derived from consultation payments.  Pure data, zero I/O.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class CommissionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class Practitioner:
    id: UUID
    code: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class FeeSchedule:
    """Price list entry splitting a service's price into practitioner fee."""

    id: UUID
    service_type: str
    base_price: Decimal
    practitioner_fee: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class Commission:
    """Amount owed to a practitioner for one payment."""

    id: UUID
    practitioner_id: UUID
    payment_id: UUID
    amount: Decimal
    percentage: Decimal
    earned_date: date
    status: CommissionStatus = CommissionStatus.PENDING
    paid_date: date | None = None


@dataclass(frozen=True)
class CommissionQuote:
    """
    Pure result of the commission rule, before persistence.

    ``source`` is ``fee_schedule`` or ``default_rate``.
    """

    amount: Decimal
    percentage: Decimal
    source: str
