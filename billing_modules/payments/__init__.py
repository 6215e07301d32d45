"""
Payments Module.

Payment, refund and installment processing; the desk's entry point is
``billing_modules.payments.service.PaymentProcessor``.
"""

from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.models import (
    DailyPaymentSummary,
    MethodBreakdown,
    PatientPaymentSummary,
    Payment,
)

__all__ = [
    "DailyPaymentSummary",
    "MethodBreakdown",
    "PatientPaymentSummary",
    "Payment",
    "PaymentConfig",
]
