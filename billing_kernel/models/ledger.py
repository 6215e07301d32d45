"""
Module: billing_kernel.models.ledger
Responsibility: ORM model for the append-only, multi-domain ledger.
Architecture position: Kernel > Models.  Imports from db/ and domain/ only.

Invariants enforced:
    - amount > 0 (ck_ledger_amount_positive); direction is carried by type.
    - (reference_kind, reference_id) is unique: one ledger entry per payment,
      refund, fund movement or manual entry.
    - seq is unique and allocated by SequenceService; reporting orders by
      (transaction_date, seq).
    - Rows are immutable after insert (db/immutability.py).

Audit relevance:
    Every balance, statement and report is a pure function of this table.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.domain.values import (
    Domain,
    LedgerReference,
    ReferenceKind,
    TransactionType,
)

if TYPE_CHECKING:
    from billing_kernel.models.category import AccountCategory


class LedgerTransaction(TrackedBase):
    """
    One monetary movement in one ledger domain.

    Contract:
        Rows are written only through LedgerService.append() and are never
        updated or deleted.

    Guarantees:
        - category belongs to the same domain and has the same type.
        - reference identifies exactly one source record.

    Non-goals:
        - No stored running balance; balances are derived by LedgerSelector.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        UniqueConstraint("reference_kind", "reference_id", name="uq_ledger_reference"),
        UniqueConstraint("seq", name="uq_ledger_seq"),
        CheckConstraint("amount > 0", name="ck_ledger_amount_positive"),
        Index("idx_ledger_domain_date", "domain", "transaction_date"),
        Index("idx_ledger_category", "category_id"),
    )

    domain: Mapped[Domain] = mapped_column(
        String(20),
        nullable=False,
    )

    type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    category_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_categories.id"),
        nullable=False,
    )

    # Null for fund movements
    payment_method_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payment_methods.id"),
        nullable=True,
    )

    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    reference_kind: Mapped[ReferenceKind] = mapped_column(
        String(20),
        nullable=False,
    )

    reference_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    meta: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    category: Mapped["AccountCategory"] = relationship(lazy="joined")

    @property
    def reference(self) -> LedgerReference:
        return LedgerReference(ReferenceKind(self.reference_kind), self.reference_id)

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction #{self.seq} {self.domain} {self.type} "
            f"{self.amount} {self.transaction_date}>"
        )
