"""
LedgerService -- the single write path into the ledger.

Responsibility:
    Appends validated LedgerTransaction rows.  There is no update and no
    delete: corrections are new entries (a refund is an expense entry, not
    an edit of the original income).

Architecture position:
    Kernel > Services.  Called by PaymentProcessor and FundService.

Invariants enforced:
    - amount > 0, known domain and type (LedgerEntryDraft validation).
    - category belongs to the entry's domain and has the entry's type.
    - seq allocated from SequenceService, never MAX(seq) + 1.
    - (reference_kind, reference_id) unique -- a second append for the same
      source record fails with IntegrityError and aborts the caller's unit.

Failure modes:
    - InvalidAmountError / InvalidDomainError / ValidationError from the
      draft.
    - CategoryNotFoundError / CategoryMismatchError from the registry.
    - IntegrityError on a duplicate reference.

Audit relevance:
    Each append logs ``ledger_entry_appended`` with domain, type, amount,
    category and reference.
"""

from uuid import UUID

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import LedgerEntryDraft
from billing_kernel.logging_config import get_logger
from billing_kernel.models.ledger import LedgerTransaction
from billing_kernel.services.base import BaseService
from billing_kernel.services.category_service import CategoryRegistry
from billing_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")


class LedgerService(BaseService[LedgerTransaction]):
    """
    Append-only ledger store.

    Contract:
        append() flushes one row inside the caller's transaction.

    Non-goals:
        - No balance queries (see LedgerSelector).
        - No commit/rollback.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        categories: CategoryRegistry | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._categories = categories or CategoryRegistry(session, self._clock)
        self._sequences = sequences or SequenceService(session)

    def append(self, entry: LedgerEntryDraft, actor_id: UUID) -> LedgerTransaction:
        """
        Append ``entry`` to the ledger.

        Postconditions:
            - Exactly one LedgerTransaction row exists for entry.reference.
            - row.seq is greater than every previously allocated seq.
        """
        category = self._categories.resolve(
            entry.domain, entry.category, entry.type, actor_id
        )
        seq = self._sequences.next_value(SequenceService.LEDGER_TRANSACTION)

        now = self._clock.now()
        row = LedgerTransaction(
            domain=entry.domain.value,
            type=entry.type.value,
            amount=entry.amount,
            category_id=category.id,
            payment_method_id=entry.payment_method_id,
            transaction_date=entry.transaction_date,
            reference_kind=entry.reference.kind.value,
            reference_id=entry.reference.id,
            description=entry.description,
            meta=dict(entry.meta),
            seq=seq,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        row.category = category
        self.session.add(row)
        self.session.flush()

        logger.info(
            "ledger_entry_appended",
            extra={
                "ledger_transaction_id": str(row.id),
                "seq": seq,
                "domain": row.domain,
                "type": row.type,
                "amount": str(row.amount),
                "category": category.name,
                "reference_kind": row.reference_kind,
                "reference_id": str(row.reference_id),
                "transaction_date": row.transaction_date.isoformat(),
            },
        )
        return row
