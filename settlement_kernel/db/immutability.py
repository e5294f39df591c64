"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

A settled delivery or a consumed deduction is evidence that money has been
paid.  If such a record could be edited after the fact, the conservation
property (every payment equals the sum of the records it consumed) could be
broken silently, and a record could be paid twice.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                  | Why
--------------------|---------------------------------|----------------------------------
PaymentTransaction  | ALWAYS (from creation)          | Ledger entry, basis of payout
DeliveryRecord      | After status = settled          | Paid; must never be re-valued
DeductionRecord     | After status = consumed         | Recovered; must never be re-billed

updated_at / updated_by_id / version are audit and concurrency metadata,
not settlement data, and may still change.

===============================================================================
USAGE
===============================================================================

    from settlement_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup; idempotent

To temporarily disable (TESTS ONLY):

    from settlement_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from settlement_kernel.exceptions import ImmutabilityViolationError
from settlement_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Fields that may change on an otherwise frozen record
_MUTABLE_METADATA = frozenset({"updated_at", "updated_by_id", "version"})


def _was_terminal_before(target, terminal_status: str) -> bool:
    """
    True if the record had already reached ``terminal_status`` before the
    pending flush.

    Logic:
        1. Status changing FROM terminal -> anything: already terminal.
        2. Status unchanged AND currently terminal: already terminal.
        3. Status changing TO terminal: this flush IS the transition; allowed.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        return status_history.deleted[0] == terminal_status
    if not status_history.added:
        return target.status == terminal_status
    return False


def _block_frozen_changes(target, entity_type: str, reason: str) -> None:
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _MUTABLE_METADATA:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type=entity_type,
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on {reason}",
            )


def _check_payment_transaction_immutability(mapper, connection, target):
    """PaymentTransactions can never be updated."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PaymentTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PaymentTransaction",
        entity_id=str(target.id),
        reason="Payment transactions are immutable",
    )


def _check_payment_transaction_delete(mapper, connection, target):
    """PaymentTransactions can never be deleted."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PaymentTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PaymentTransaction",
        entity_id=str(target.id),
        reason="Payment transactions cannot be deleted",
    )


def _check_delivery_immutability(mapper, connection, target):
    """
    Prevent updates to settled DeliveryRecords.

    The pending -> settled transition itself is allowed; anything after it
    is not, including a status change back to pending.
    """
    from settlement_kernel.models.delivery import DeliveryStatus

    if _was_terminal_before(target, DeliveryStatus.SETTLED.value):
        _block_frozen_changes(target, "DeliveryRecord", "settled delivery")


def _check_delivery_delete(mapper, connection, target):
    """Settled DeliveryRecords cannot be deleted."""
    from settlement_kernel.models.delivery import DeliveryStatus

    if _was_terminal_before(target, DeliveryStatus.SETTLED.value):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "DeliveryRecord",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="DeliveryRecord",
            entity_id=str(target.id),
            reason="Settled deliveries cannot be deleted",
        )


def _check_deduction_immutability(mapper, connection, target):
    """Prevent updates to consumed DeductionRecords."""
    from settlement_kernel.models.deduction import DeductionStatus

    if _was_terminal_before(target, DeductionStatus.CONSUMED.value):
        _block_frozen_changes(target, "DeductionRecord", "consumed deduction")


def _check_deduction_delete(mapper, connection, target):
    """Consumed DeductionRecords cannot be deleted."""
    from settlement_kernel.models.deduction import DeductionStatus

    if _was_terminal_before(target, DeductionStatus.CONSUMED.value):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "DeductionRecord",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="DeductionRecord",
            entity_id=str(target.id),
            reason="Consumed deductions cannot be deleted",
        )


def _listeners():
    from settlement_kernel.models.deduction import DeductionRecord
    from settlement_kernel.models.delivery import DeliveryRecord
    from settlement_kernel.models.payment_transaction import PaymentTransaction

    return (
        (PaymentTransaction, "before_update", _check_payment_transaction_immutability),
        (PaymentTransaction, "before_delete", _check_payment_transaction_delete),
        (DeliveryRecord, "before_update", _check_delivery_immutability),
        (DeliveryRecord, "before_delete", _check_delivery_delete),
        (DeductionRecord, "before_update", _check_deduction_immutability),
        (DeductionRecord, "before_delete", _check_deduction_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once: a listener already attached is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to stage a forbidden state.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
