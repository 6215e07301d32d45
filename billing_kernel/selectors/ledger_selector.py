"""
Module: billing_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: domain balances, per-day and
    per-category aggregates, and ordered entry listings.  Balances are a
    derived view over LedgerTransaction rows -- nothing is stored.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/values.py and selectors/base.py.

Invariants enforced:
    - balance_as_of(domain, t) == sum(income, date <= t) - sum(expense,
      date <= t) over every entry of the domain, fund movements included.
    - Entry listings are ordered by (transaction_date, seq).
    - All amounts returned are Decimal (never float).

Failure modes:
    - Returns zero totals / empty lists when no entries match.
    - InvalidDomainError on an unknown domain string.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from billing_kernel.domain.values import (
    Domain,
    LedgerReference,
    ReferenceKind,
    TransactionType,
)
from billing_kernel.models.category import AccountCategory
from billing_kernel.models.ledger import LedgerTransaction
from billing_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerEntryRecord:
    """Read-side view of one ledger entry."""

    id: UUID
    seq: int
    domain: str
    type: str
    amount: Decimal
    category_id: UUID
    category_name: str
    payment_method_id: UUID | None
    transaction_date: date
    reference_kind: str
    reference_id: UUID
    description: str | None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class LedgerTotals:
    """
    Income/expense split into invoice-driven and fund-movement money.

    ``income`` and ``expense`` exclude fund movements; ``fund_in`` and
    ``fund_out`` are the fund-movement entries alone.
    """

    income: Decimal = ZERO
    expense: Decimal = ZERO
    fund_in: Decimal = ZERO
    fund_out: Decimal = ZERO

    @property
    def total_credit(self) -> Decimal:
        return self.income + self.fund_in

    @property
    def total_debit(self) -> Decimal:
        return self.expense + self.fund_out

    @property
    def net(self) -> Decimal:
        return self.total_credit - self.total_debit

    def add(self, type: str, reference_kind: str, amount: Decimal) -> None:
        is_fund = reference_kind == ReferenceKind.FUND_MOVEMENT.value
        if type == TransactionType.INCOME.value:
            if is_fund:
                self.fund_in += amount
            else:
                self.income += amount
        else:
            if is_fund:
                self.fund_out += amount
            else:
                self.expense += amount


@dataclass(frozen=True)
class CategoryTotal:
    """Sum of one category's entries over a period."""

    category_id: UUID
    category_name: str
    type: str
    total: Decimal
    entry_count: int


class LedgerSelector(BaseSelector[LedgerTransaction]):
    """
    Selector for ledger queries -- the authoritative balance computation.

    Guarantees:
        - No stored balances.  Every figure is computed at query time.
        - Results are deterministic for a given ledger state.

    Non-goals:
        - No locking; concurrent writers may be observed mid-report.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _in_range(stmt, from_date: date | None, to_date: date | None):
        if from_date is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date <= to_date)
        return stmt

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def balance_as_of(self, domain: Domain | str, cutoff: date) -> Decimal:
        """
        Domain balance at end of ``cutoff``.

        Returns:
            sum(income) - sum(expense) for entries dated on or before cutoff.
        """
        totals = self.totals(domain, to_date=cutoff)
        return totals.net

    def totals(
        self,
        domain: Domain | str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerTotals:
        """Income / expense / fund totals for a domain over an optional range."""
        domain = Domain.parse(domain)
        stmt = (
            select(
                LedgerTransaction.type,
                LedgerTransaction.reference_kind,
                func.coalesce(func.sum(LedgerTransaction.amount), ZERO),
            )
            .where(LedgerTransaction.domain == domain.value)
            .group_by(LedgerTransaction.type, LedgerTransaction.reference_kind)
        )
        stmt = self._in_range(stmt, from_date, to_date)

        totals = LedgerTotals()
        for type_, kind, amount in self.session.execute(stmt).all():
            totals.add(type_, kind, Decimal(amount))
        return totals

    def daily_totals(
        self,
        domain: Domain | str,
        from_date: date,
        to_date: date,
    ) -> dict[date, LedgerTotals]:
        """Per-day totals for days that carry at least one entry."""
        domain = Domain.parse(domain)
        stmt = (
            select(
                LedgerTransaction.transaction_date,
                LedgerTransaction.type,
                LedgerTransaction.reference_kind,
                func.coalesce(func.sum(LedgerTransaction.amount), ZERO),
            )
            .where(LedgerTransaction.domain == domain.value)
            .group_by(
                LedgerTransaction.transaction_date,
                LedgerTransaction.type,
                LedgerTransaction.reference_kind,
            )
        )
        stmt = self._in_range(stmt, from_date, to_date)

        by_day: dict[date, LedgerTotals] = {}
        for day, type_, kind, amount in self.session.execute(stmt).all():
            by_day.setdefault(day, LedgerTotals()).add(type_, kind, Decimal(amount))
        return by_day

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def category_totals(
        self,
        domain: Domain | str,
        from_date: date | None = None,
        to_date: date | None = None,
        type: TransactionType | str | None = None,
        include_fund_movements: bool = False,
    ) -> list[CategoryTotal]:
        """
        Per-category sums, largest first (ties by category name).
        """
        domain = Domain.parse(domain)
        stmt = (
            select(
                AccountCategory.id,
                AccountCategory.name,
                LedgerTransaction.type,
                func.coalesce(func.sum(LedgerTransaction.amount), ZERO),
                func.count(LedgerTransaction.id),
            )
            .join(AccountCategory, LedgerTransaction.category_id == AccountCategory.id)
            .where(LedgerTransaction.domain == domain.value)
            .group_by(AccountCategory.id, AccountCategory.name, LedgerTransaction.type)
        )
        stmt = self._in_range(stmt, from_date, to_date)
        if type is not None:
            stmt = stmt.where(LedgerTransaction.type == TransactionType.parse(type).value)
        if not include_fund_movements:
            stmt = stmt.where(
                LedgerTransaction.reference_kind != ReferenceKind.FUND_MOVEMENT.value
            )

        rows = [
            CategoryTotal(
                category_id=cat_id,
                category_name=name,
                type=type_,
                total=Decimal(total),
                entry_count=int(count),
            )
            for cat_id, name, type_, total, count in self.session.execute(stmt).all()
        ]
        rows.sort(key=lambda r: (-r.total, r.category_name))
        return rows

    def category_total(
        self,
        domain: Domain | str,
        category_name: str,
        type: TransactionType | str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> Decimal:
        """Sum of entries booked under the named category."""
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)
        stmt = (
            select(func.coalesce(func.sum(LedgerTransaction.amount), ZERO))
            .join(AccountCategory, LedgerTransaction.category_id == AccountCategory.id)
            .where(
                LedgerTransaction.domain == domain.value,
                LedgerTransaction.type == type.value,
                AccountCategory.name == category_name,
            )
        )
        stmt = self._in_range(stmt, from_date, to_date)
        return Decimal(self.session.execute(stmt).scalar_one())

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def entries(
        self,
        domain: Domain | str,
        from_date: date | None = None,
        to_date: date | None = None,
        type: TransactionType | str | None = None,
        reference_kind: ReferenceKind | str | None = None,
    ) -> list[LedgerEntryRecord]:
        """Entries of a domain ordered by (transaction_date, seq)."""
        domain = Domain.parse(domain)
        stmt = (
            select(LedgerTransaction, AccountCategory.name)
            .join(AccountCategory, LedgerTransaction.category_id == AccountCategory.id)
            .where(LedgerTransaction.domain == domain.value)
        )
        stmt = self._in_range(stmt, from_date, to_date)
        if type is not None:
            stmt = stmt.where(LedgerTransaction.type == TransactionType.parse(type).value)
        if reference_kind is not None:
            stmt = stmt.where(
                LedgerTransaction.reference_kind == ReferenceKind(reference_kind).value
            )
        stmt = stmt.order_by(LedgerTransaction.transaction_date, LedgerTransaction.seq)

        return [
            self._to_record(row, name)
            for row, name in self.session.execute(stmt).unique().all()
        ]

    def entry_for_reference(self, reference: LedgerReference) -> LedgerEntryRecord | None:
        """The single ledger entry written for ``reference``, if any."""
        result = self.session.execute(
            select(LedgerTransaction, AccountCategory.name)
            .join(AccountCategory, LedgerTransaction.category_id == AccountCategory.id)
            .where(
                LedgerTransaction.reference_kind == reference.kind.value,
                LedgerTransaction.reference_id == reference.id,
            )
        ).unique().one_or_none()
        if result is None:
            return None
        row, name = result
        return self._to_record(row, name)

    @staticmethod
    def _to_record(row: LedgerTransaction, category_name: str) -> LedgerEntryRecord:
        return LedgerEntryRecord(
            id=row.id,
            seq=row.seq,
            domain=row.domain,
            type=row.type,
            amount=row.amount,
            category_id=row.category_id,
            category_name=category_name,
            payment_method_id=row.payment_method_id,
            transaction_date=row.transaction_date,
            reference_kind=row.reference_kind,
            reference_id=row.reference_id,
            description=row.description,
            meta=dict(row.meta or {}),
        )
