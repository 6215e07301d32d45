"""
Billing Modules -- clinic workflows built on ``billing_kernel``.

Subpackages:
    invoicing   Invoices, reconciliation, installment plans.
    payments    The payment desk (PaymentProcessor).
    commission  Practitioner commissions.
    funds       Fund movements and manual entries.
    reporting   Statements, monthly reports, balance sheet, analytics.

Modules may import the kernel; the kernel never imports modules except
through ``_orm_registry`` for schema creation.
"""
