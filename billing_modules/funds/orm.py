"""
Fund Desk ORM Models (``billing_modules.funds.orm``).

Fund movements are vouchers; each has exactly one ledger entry
(``reference_kind = fund_movement``) and is immutable after insert.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_modules.funds.models import FundDirection


class FundMovementModel(TrackedBase):
    """
    ORM model for fund-in / fund-out vouchers.

    Guarantees:
        - voucher_no is unique (uq_fund_movements_voucher).
        - amount > 0; direction carries the sign.
    """

    __tablename__ = "fund_movements"

    __table_args__ = (
        UniqueConstraint("voucher_no", name="uq_fund_movements_voucher"),
        CheckConstraint("amount > 0", name="ck_fund_movements_amount_positive"),
        Index("idx_fund_movements_domain_date", "domain", "movement_date"),
    )

    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)
    domain: Mapped[str] = mapped_column(String(20), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    purpose: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)

    def to_dto(self, ledger_transaction_id=None):
        from billing_modules.funds.models import FundMovement

        return FundMovement(
            id=self.id,
            voucher_no=self.voucher_no,
            domain=self.domain,
            direction=FundDirection(self.direction),
            amount=self.amount,
            purpose=self.purpose,
            movement_date=self.movement_date,
            description=self.description,
            ledger_transaction_id=ledger_transaction_id,
        )

    def __repr__(self) -> str:
        return f"<FundMovementModel {self.voucher_no} {self.direction} {self.amount}>"
