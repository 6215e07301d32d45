"""
Account categories -- the chart of income and expense heads per domain.

Each ledger domain keeps its own list of categories ("Consultation",
"Medicine Sales", "Refunds", "Fund In", ...).  A category is identified by
(domain, name, type); the unique constraint backs the registry's
find-or-create upsert.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.values import Domain, TransactionType


class AccountCategory(TrackedBase):
    """
    A named income or expense head inside one ledger domain.

    Contract:
        (domain, name, type) is unique (uq_category_domain_name_type).
        Categories are deactivated, never deleted, so historical ledger
        entries keep resolving.

    Guarantees:
        - type is income or expense.
        - New categories are active.
    """

    __tablename__ = "account_categories"

    __table_args__ = (
        UniqueConstraint("domain", "name", "type", name="uq_category_domain_name_type"),
        Index("idx_category_domain_type", "domain", "type"),
    )

    domain: Mapped[Domain] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AccountCategory {self.domain}:{self.type}:{self.name}>"
