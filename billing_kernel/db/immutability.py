"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Money records must be tamper-proof.  A ledger entry or a payment, once
written, is never edited or deleted; a correction is a new record (a refund,
a compensating expense) that leaves a visible trail.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _reject_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _reject_delete() --> ImmutabilityViolationError

If a check fails the flush aborts and the database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable          | Why
--------------------|-------------------------|---------------------------------
LedgerTransaction   | ALWAYS (from creation)  | Balances are derived from it
Payment             | ALWAYS (from creation)  | Invoice paid amounts sum over it
FundMovement        | ALWAYS (from creation)  | Voucher backing a ledger entry

updated_at / updated_by_id changes are tolerated; they are audit metadata,
not money.

===============================================================================
USAGE
===============================================================================

    from billing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from billing_kernel.exceptions import ImmutabilityViolationError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _reject_update(mapper, connection, target):
    """Block any non-audit field change on an immutable record."""
    changed = _changed_fields(target)
    if not changed:
        return

    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "field": changed[0],
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"Cannot modify field '{changed[0]}'; record is append-only",
    )


def _reject_delete(mapper, connection, target):
    """Block deletion of an immutable record."""
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason="Record is append-only and cannot be deleted",
    )


def _immutable_models() -> list[type]:
    # Inline imports: models import from db.
    from billing_kernel.models.ledger import LedgerTransaction
    from billing_modules.funds.orm import FundMovementModel
    from billing_modules.payments.orm import PaymentModel

    return [LedgerTransaction, PaymentModel, FundMovementModel]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    for model in _immutable_models():
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for model in _immutable_models():
        _safe_remove_listener(model, "before_update", _reject_update)
        _safe_remove_listener(model, "before_delete", _reject_delete)
