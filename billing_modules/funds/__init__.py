"""
Fund Desk Module.

Fund-in / fund-out vouchers and manual ledger entries per domain.
"""

from billing_modules.funds.config import FundConfig
from billing_modules.funds.models import FundDirection, FundMovement

__all__ = ["FundConfig", "FundDirection", "FundMovement"]
