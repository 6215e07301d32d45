"""
Commission Module.

Practitioner commissions derived from consultation payments.
"""

from billing_modules.commission.models import (
    Commission,
    CommissionQuote,
    CommissionStatus,
    FeeSchedule,
    Practitioner,
)

__all__ = [
    "Commission",
    "CommissionQuote",
    "CommissionStatus",
    "FeeSchedule",
    "Practitioner",
]
