"""
Values -- Immutable domain value objects for the billing ledger.

Responsibility:
    Provides the closed vocabularies of the ledger (domains, transaction
    types, reference kinds) and the tagged ledger reference that links a
    ledger entry to the record that caused it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A LedgerReference is a (kind, id) pair where kind is one of
      payment / refund / fund_movement / manual.  There is no untyped
      "source entity" column.
    - A LedgerEntryDraft always carries a strictly positive Decimal amount;
      direction is expressed by TransactionType, never by sign.

Failure modes:
    - InvalidDomainError for an unknown domain string.
    - InvalidAmountError for non-positive amounts.
    - ValidationError for unknown transaction types / reference kinds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from billing_kernel.exceptions import (
    InvalidAmountError,
    InvalidDomainError,
    ValidationError,
)


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a caller-supplied amount into a finite, strictly positive Decimal.

    Floats go through ``str`` so ``0.1`` stays ``Decimal("0.1")``.

    Raises:
        InvalidAmountError: missing, non-numeric, NaN, infinite or <= 0.
    """
    if value is None:
        raise InvalidAmountError(None, field=field)
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value) if isinstance(value, float) else value)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmountError(value, field=field) from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(amount, field=field)
    return amount


class Domain(str, Enum):
    """Books of account kept by the clinic."""

    FACILITY = "facility"
    PHARMACY = "pharmacy"
    EYEWEAR = "eyewear"
    OPERATIONS = "operations"

    @classmethod
    def parse(cls, value: "Domain | str") -> "Domain":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidDomainError(str(value)) from None


class TransactionType(str, Enum):
    """Direction of a ledger entry."""

    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def parse(cls, value: "TransactionType | str") -> "TransactionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown transaction type: {value!r}", field="type"
            ) from None


class ReferenceKind(str, Enum):
    """What kind of record a ledger entry was written for."""

    PAYMENT = "payment"
    REFUND = "refund"
    FUND_MOVEMENT = "fund_movement"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class LedgerReference:
    """
    Tagged link from a ledger entry to its source record.

    Guarantees:
        - Immutable and hashable.
        - (kind, id) is unique across the ledger; the store enforces it.
    """

    kind: ReferenceKind
    id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ReferenceKind):
            try:
                object.__setattr__(self, "kind", ReferenceKind(self.kind))
            except ValueError:
                raise ValidationError(
                    f"Unknown ledger reference kind: {self.kind!r}",
                    field="reference_kind",
                ) from None

    @classmethod
    def payment(cls, payment_id: UUID) -> LedgerReference:
        return cls(ReferenceKind.PAYMENT, payment_id)

    @classmethod
    def refund(cls, payment_id: UUID) -> LedgerReference:
        return cls(ReferenceKind.REFUND, payment_id)

    @classmethod
    def fund_movement(cls, movement_id: UUID) -> LedgerReference:
        return cls(ReferenceKind.FUND_MOVEMENT, movement_id)

    @classmethod
    def manual(cls, entry_id: UUID) -> LedgerReference:
        return cls(ReferenceKind.MANUAL, entry_id)


@dataclass(frozen=True)
class LedgerEntryDraft:
    """
    An entry about to be appended to the ledger.

    ``category`` is either a category UUID or a category name; the ledger
    service resolves it through the category registry.
    """

    domain: Domain
    type: TransactionType
    amount: Decimal
    category: UUID | str
    transaction_date: date
    reference: LedgerReference
    payment_method_id: UUID | None = None
    description: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "domain", Domain.parse(self.domain))
        object.__setattr__(self, "type", TransactionType.parse(self.type))
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                f"Ledger amounts must be Decimal, got {type(self.amount).__name__}",
                field="amount",
            )
        if not self.amount.is_finite() or self.amount <= 0:
            raise InvalidAmountError(self.amount)
