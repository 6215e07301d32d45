"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payment desks show the reason a payment was refused ("invoice already paid",
"amount exceeds due").  Callers must catch by TYPE and read structured
attributes, never parse message strings:

    try:
        processor.process_payment(...)
    except AmountExceedsDueError as e:
        api_response(code=e.code, due=e.due_amount, invoice=e.invoice_id)

Every exception:
  1. Has a ``code`` class attribute (machine-readable, API-safe)
  2. Stores its context as attributes (entity ids, amounts, reasons)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidDomainError
    |   +-- CategoryMismatchError
    |   +-- InvoiceOwnershipError
    |   +-- InvalidDateRangeError
    |   +-- InvalidInstallmentPlanError
    |
    +-- NotFoundError
    |   +-- PatientNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- InstallmentNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- PaymentMethodNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- CommissionNotFoundError
    |
    +-- StateConflictError
    |   +-- InvoiceAlreadyPaidError
    |   +-- InstallmentAlreadyPaidError
    |   +-- AmountExceedsDueError
    |   +-- AmountExceedsInstallmentBalanceError
    |   +-- InstallmentPlanExistsError
    |   +-- CommissionAlreadyPaidError
    |   +-- PaymentMethodInactiveError
    |
    +-- ConfigurationError
    |   +-- NoIncomeCategoryError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
PROPAGATION
===============================================================================

Validation errors are raised before any write.  Any error raised inside a
unit of work (PaymentProcessor, FundService) rolls the whole unit back; the
caller observes either full success or the pre-operation state.  Nothing is
retried automatically.
"""

from decimal import Decimal


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Validation errors


class ValidationError(BillingKernelError):
    """A required field is missing or a value is invalid."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidAmountError(ValidationError):
    """Monetary amount must be a finite, strictly positive number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal | None, field: str = "amount"):
        self.amount = str(amount) if amount is not None else None
        super().__init__(
            f"{field} must be a positive number, got {self.amount}",
            field=field,
        )


class InvalidDomainError(ValidationError):
    """Ledger domain is not one of the known books of account."""

    code: str = "INVALID_DOMAIN"

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Unknown ledger domain: {domain!r}", field="domain")


class CategoryMismatchError(ValidationError):
    """Category does not belong to the entry's domain or type."""

    code: str = "CATEGORY_MISMATCH"

    def __init__(self, category_id: str, expected: str, actual: str):
        self.category_id = category_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Category {category_id} is {actual}, expected {expected}",
            field="category",
        )


class InvoiceOwnershipError(ValidationError):
    """Invoice does not belong to the paying patient."""

    code: str = "INVOICE_OWNERSHIP"

    def __init__(self, invoice_id: str, patient_id: str):
        self.invoice_id = invoice_id
        self.patient_id = patient_id
        super().__init__(
            f"Invoice {invoice_id} does not belong to patient {patient_id}",
            field="invoice_id",
        )


class InvalidDateRangeError(ValidationError):
    """Report range end precedes its start."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, from_date, to_date):
        self.from_date = from_date
        self.to_date = to_date
        super().__init__(
            f"to_date {to_date} is before from_date {from_date}",
            field="to_date",
        )


class InvalidInstallmentPlanError(ValidationError):
    """Installment amounts cannot be reconciled with the invoice due."""

    code: str = "INVALID_INSTALLMENT_PLAN"

    def __init__(self, invoice_id: str, reason: str):
        self.invoice_id = invoice_id
        self.reason = reason
        super().__init__(
            f"Invalid installment plan for invoice {invoice_id}: {reason}"
        )


# Not-found errors


class NotFoundError(BillingKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class PatientNotFoundError(NotFoundError):
    code: str = "PATIENT_NOT_FOUND"
    entity_type = "Patient"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type = "Invoice"


class InstallmentNotFoundError(NotFoundError):
    code: str = "INSTALLMENT_NOT_FOUND"
    entity_type = "Installment"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type = "Payment"


class PaymentMethodNotFoundError(NotFoundError):
    code: str = "PAYMENT_METHOD_NOT_FOUND"
    entity_type = "PaymentMethod"


class CategoryNotFoundError(NotFoundError):
    code: str = "CATEGORY_NOT_FOUND"
    entity_type = "AccountCategory"


class CommissionNotFoundError(NotFoundError):
    code: str = "COMMISSION_NOT_FOUND"
    entity_type = "Commission"


# State conflicts


class StateConflictError(BillingKernelError):
    """Operation conflicts with the current state of an entity."""

    code: str = "STATE_CONFLICT"


class InvoiceAlreadyPaidError(StateConflictError):
    """Invoice has no outstanding due amount."""

    code: str = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already fully paid")


class InstallmentAlreadyPaidError(StateConflictError):
    """Installment was already settled."""

    code: str = "INSTALLMENT_ALREADY_PAID"

    def __init__(self, installment_id: str):
        self.installment_id = installment_id
        super().__init__(f"Installment {installment_id} has already been paid")


class AmountExceedsDueError(StateConflictError):
    """Payment amount is larger than the invoice due amount."""

    code: str = "AMOUNT_EXCEEDS_DUE"

    def __init__(self, invoice_id: str, amount: Decimal, due_amount: Decimal):
        self.invoice_id = invoice_id
        self.amount = str(amount)
        self.due_amount = str(due_amount)
        super().__init__(
            f"Payment amount {amount} exceeds due amount {due_amount} "
            f"on invoice {invoice_id}"
        )


class AmountExceedsInstallmentBalanceError(StateConflictError):
    """Payment amount is larger than the installment balance."""

    code: str = "AMOUNT_EXCEEDS_INSTALLMENT_BALANCE"

    def __init__(self, installment_id: str, amount: Decimal, balance: Decimal):
        self.installment_id = installment_id
        self.amount = str(amount)
        self.balance = str(balance)
        super().__init__(
            f"Payment amount {amount} exceeds installment balance {balance} "
            f"on installment {installment_id}"
        )


class InstallmentPlanExistsError(StateConflictError):
    """Invoice already carries an installment plan."""

    code: str = "INSTALLMENT_PLAN_EXISTS"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} already has an installment plan")


class CommissionAlreadyPaidError(StateConflictError):
    code: str = "COMMISSION_ALREADY_PAID"

    def __init__(self, commission_id: str):
        self.commission_id = commission_id
        super().__init__(f"Commission {commission_id} is already paid")


class PaymentMethodInactiveError(StateConflictError):
    code: str = "PAYMENT_METHOD_INACTIVE"

    def __init__(self, payment_method_id: str):
        self.payment_method_id = payment_method_id
        super().__init__(f"Payment method {payment_method_id} is inactive")


# Configuration errors


class ConfigurationError(BillingKernelError):
    """Reference data needed to complete an operation is missing."""

    code: str = "CONFIGURATION_ERROR"


class NoIncomeCategoryError(ConfigurationError):
    """Domain has no usable (active) income category."""

    code: str = "NO_INCOME_CATEGORY"

    def __init__(self, domain: str, requested: str | None = None):
        self.domain = domain
        self.requested = requested
        super().__init__(
            f"No active income category available in domain {domain!r}"
            + (f" (requested {requested!r})" if requested else "")
        )


# Immutability errors


class ImmutabilityError(BillingKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger transactions and payments are immutable from creation; a refund
    is a new record, never an edit.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
