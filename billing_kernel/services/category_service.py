"""
CategoryRegistry -- per-domain income/expense categories.

Responsibility:
    Resolves the category a ledger entry is booked under, either by id or by
    name.  Name resolution is an idempotent find-or-create keyed by
    (domain, name, type); the unique constraint on account_categories is the
    arbiter when two transactions race to create the same category.

Architecture position:
    Kernel > Services.  Used by LedgerService, PaymentProcessor and
    FundService.

Invariants enforced:
    - A category resolved for an entry belongs to the entry's domain and
      carries the entry's type (CategoryMismatchError otherwise).
    - Categories are never deleted; deactivate() hides them from fallback
      selection only.

Failure modes:
    - CategoryNotFoundError when an id does not exist.
    - CategoryMismatchError on domain/type disagreement.
    - ValidationError on an empty name or on create() of a duplicate.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import Domain, TransactionType
from billing_kernel.exceptions import (
    CategoryMismatchError,
    CategoryNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.category import AccountCategory
from billing_kernel.services.base import BaseService

logger = get_logger("services.category")


class CategoryRegistry(BaseService[AccountCategory]):
    """
    Registry of account categories.

    Contract:
        Flush-only; the caller owns the transaction.

    Guarantees:
        - find_or_create() never produces two rows for the same
          (domain, name, type), even under concurrent callers.
        - first_active() is deterministic: oldest first, then by name.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, category_id: UUID) -> AccountCategory:
        category = self.session.get(AccountCategory, category_id)
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        return category

    def find(
        self,
        domain: Domain | str,
        name: str,
        type: TransactionType | str,
    ) -> AccountCategory | None:
        """Exact (domain, name, type) lookup, active or not."""
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)
        return self.session.execute(
            select(AccountCategory).where(
                AccountCategory.domain == domain.value,
                AccountCategory.name == name,
                AccountCategory.type == type.value,
            )
        ).scalar_one_or_none()

    def first_active(
        self,
        domain: Domain | str,
        type: TransactionType | str,
    ) -> AccountCategory | None:
        """The domain's oldest active category of ``type`` (ties by name)."""
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)
        return self.session.execute(
            select(AccountCategory)
            .where(
                AccountCategory.domain == domain.value,
                AccountCategory.type == type.value,
                AccountCategory.is_active.is_(True),
            )
            .order_by(AccountCategory.created_at, AccountCategory.name)
            .limit(1)
        ).scalar_one_or_none()

    def list_categories(
        self,
        domain: Domain | str,
        type: TransactionType | str | None = None,
        active_only: bool = False,
    ) -> list[AccountCategory]:
        domain = Domain.parse(domain)
        stmt = select(AccountCategory).where(AccountCategory.domain == domain.value)
        if type is not None:
            stmt = stmt.where(AccountCategory.type == TransactionType.parse(type).value)
        if active_only:
            stmt = stmt.where(AccountCategory.is_active.is_(True))
        stmt = stmt.order_by(AccountCategory.type, AccountCategory.name)
        return list(self.session.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        domain: Domain | str,
        id_or_name: UUID | str,
        type: TransactionType | str,
        actor_id: UUID,
    ) -> AccountCategory:
        """
        Resolve a category reference for an entry of (domain, type).

        A UUID is fetched and checked against domain and type.  A name is
        found or created.
        """
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)

        if isinstance(id_or_name, UUID):
            category = self.get(id_or_name)
            if category.domain != domain.value:
                raise CategoryMismatchError(
                    str(category.id), expected=domain.value, actual=category.domain
                )
            if category.type != type.value:
                raise CategoryMismatchError(
                    str(category.id), expected=type.value, actual=category.type
                )
            return category

        return self.find_or_create(domain, id_or_name, type, actor_id)

    def find_or_create(
        self,
        domain: Domain | str,
        name: str,
        type: TransactionType | str,
        actor_id: UUID,
        description: str | None = None,
    ) -> AccountCategory:
        """
        Idempotent upsert keyed by (domain, name, type).

        The insert runs in a savepoint; losing a race to a concurrent
        insert rolls back only the savepoint and re-reads the winner.
        """
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)
        name = self._clean_name(name)

        existing = self.find(domain, name, type)
        if existing is not None:
            return existing

        savepoint = self.session.begin_nested()
        try:
            category = self._new(domain, name, type, actor_id, description)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "category_create_race_retry",
                extra={"domain": domain.value, "category_name": name, "type": type.value},
            )
            category = self.find(domain, name, type)
            if category is None:
                raise
            return category

        logger.info(
            "category_created",
            extra={
                "category_id": str(category.id),
                "domain": domain.value,
                "category_name": name,
                "type": type.value,
            },
        )
        return category

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create(
        self,
        domain: Domain | str,
        name: str,
        type: TransactionType | str,
        actor_id: UUID,
        description: str | None = None,
        is_active: bool = True,
    ) -> AccountCategory:
        """Explicitly create a category; duplicates are rejected."""
        domain = Domain.parse(domain)
        type = TransactionType.parse(type)
        name = self._clean_name(name)

        if self.find(domain, name, type) is not None:
            raise ValidationError(
                f"Category {name!r} already exists for {domain.value}/{type.value}",
                field="name",
            )

        category = self._new(domain, name, type, actor_id, description, is_active)
        self.session.flush()
        logger.info(
            "category_created",
            extra={
                "category_id": str(category.id),
                "domain": domain.value,
                "category_name": name,
                "type": type.value,
                "is_active": is_active,
            },
        )
        return category

    def deactivate(self, category_id: UUID, actor_id: UUID) -> AccountCategory:
        return self._set_active(category_id, actor_id, False)

    def activate(self, category_id: UUID, actor_id: UUID) -> AccountCategory:
        return self._set_active(category_id, actor_id, True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_active(self, category_id: UUID, actor_id: UUID, active: bool) -> AccountCategory:
        category = self.get(category_id)
        if category.is_active != active:
            category.is_active = active
            category.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "category_activated" if active else "category_deactivated",
                extra={"category_id": str(category.id), "domain": category.domain},
            )
        return category

    def _new(
        self,
        domain: Domain,
        name: str,
        type: TransactionType,
        actor_id: UUID,
        description: str | None,
        is_active: bool = True,
    ) -> AccountCategory:
        now = self._clock.now()
        category = AccountCategory(
            domain=domain.value,
            name=name,
            type=type.value,
            is_active=is_active,
            description=description,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(category)
        return category

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Category name is required", field="name")
        return cleaned
