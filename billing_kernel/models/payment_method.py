"""Payment methods (cash, card, mobile wallet, ...)."""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class PaymentMethod(TrackedBase):
    """
    A way money can be tendered at the desk.

    Contract:
        code is unique.  Payments may only reference active methods.
    """

    __tablename__ = "payment_methods"

    __table_args__ = (
        UniqueConstraint("code", name="uq_payment_method_code"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PaymentMethod {self.code}>"
