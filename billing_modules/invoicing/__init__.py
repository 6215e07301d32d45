"""
Invoicing Module.

Patient invoices, their paid/due reconciliation, and installment plans.
"""

from billing_modules.invoicing.models import (
    Installment,
    InstallmentStatus,
    Invoice,
    InvoiceKind,
    InvoiceLine,
    InvoiceStatus,
    LineItemSpec,
    LineItemType,
    Patient,
    PatientPaymentStatus,
    RegistrationStatus,
)

__all__ = [
    "Installment",
    "InstallmentStatus",
    "Invoice",
    "InvoiceKind",
    "InvoiceLine",
    "InvoiceStatus",
    "LineItemSpec",
    "LineItemType",
    "Patient",
    "PatientPaymentStatus",
    "RegistrationStatus",
]
