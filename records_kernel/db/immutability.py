"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

A record's remarks history is its audit trail: who received, edited,
rejected or timed out the document, and when.  Clerks must never be able to
rewrite it, only add to it.  The tracking ID printed on the receiving log
must never drift from the record it identifies.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_flush]  --> _check_history_deletion_before_flush() --+
         |                                                       |
         v                                                       v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | What is frozen                      | When
--------------------|-------------------------------------|----------------------
RemarksHistoryEntry | Every column                        | ALWAYS (from creation)
RemarksHistoryEntry | Row existence                       | Unless parent deleted
Record              | tracking_id, record_type            | ALWAYS (from creation)
Record              | date_time_out                       | Once it is set

===============================================================================
USAGE
===============================================================================

Called automatically during application startup:

    from records_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from records_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from records_kernel.exceptions import ImmutabilityViolationError
from records_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Record columns that never change once the row exists
RECORD_FROZEN_FIELDS = ("tracking_id", "record_type")


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_history_deletion_before_flush(session, flush_context, instances):
    """
    Block removal of history entries unless the owning record goes too.

    Runs in SessionEvents.before_flush, BEFORE the flush plan is finalized.
    Covers both ``session.delete(entry)`` and removing an entry from
    ``Record.history`` (delete-orphan).
    """
    from records_kernel.models.record import Record, RemarksHistoryEntry

    deleted = list(session.deleted)
    deleted_record_ids = {obj.id for obj in deleted if isinstance(obj, Record)}

    for obj in deleted:
        if not isinstance(obj, RemarksHistoryEntry):
            continue
        if obj.record_id in deleted_record_ids:
            continue
        raise _blocked(
            "RemarksHistoryEntry",
            str(obj.id),
            "DELETE",
            "Remarks history is append-only and cannot be deleted",
        )

    for obj in list(session.dirty):
        if not isinstance(obj, Record):
            continue
        if get_history(obj, "history").deleted:
            raise _blocked(
                "RemarksHistoryEntry",
                str(obj.id),
                "DELETE",
                "Remarks history entries cannot be removed from a record",
            )


def _check_history_entry_immutability(mapper, connection, target):
    """Prevent any update to a RemarksHistoryEntry."""
    from records_kernel.models.record import RemarksHistoryEntry

    if not isinstance(target, RemarksHistoryEntry):
        return

    raise _blocked(
        "RemarksHistoryEntry",
        str(target.id),
        "UPDATE",
        "Remarks history entries are immutable and cannot be modified",
    )


def _check_record_immutability(mapper, connection, target):
    """
    Prevent changes to a record's frozen columns.

    tracking_id and record_type never change.  date_time_out may go from
    NULL to a value exactly once.
    """
    from records_kernel.models.record import Record

    if not isinstance(target, Record):
        return

    # history.deleted holds the previously persisted value(s)
    for field_name in RECORD_FROZEN_FIELDS:
        history = get_history(target, field_name)
        if history.deleted and history.added:
            raise _blocked(
                "Record",
                str(target.id),
                "UPDATE",
                f"Field '{field_name}' cannot be changed",
            )

    out_history = get_history(target, "date_time_out")
    if out_history.deleted and out_history.deleted[0] is not None:
        raise _blocked(
            "Record",
            str(target.id),
            "UPDATE",
            "Time-out has already been recorded and cannot be changed",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: registering twice does not install duplicate listeners.
    """
    from records_kernel.models.record import Record, RemarksHistoryEntry

    if not event.contains(Session, "before_flush", _check_history_deletion_before_flush):
        event.listen(Session, "before_flush", _check_history_deletion_before_flush)
    if not event.contains(RemarksHistoryEntry, "before_update", _check_history_entry_immutability):
        event.listen(RemarksHistoryEntry, "before_update", _check_history_entry_immutability)
    if not event.contains(Record, "before_update", _check_record_immutability):
        event.listen(Record, "before_update", _check_record_immutability)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to write a violating change
    on purpose.
    """
    from records_kernel.models.record import Record, RemarksHistoryEntry

    _safe_remove_listener(Session, "before_flush", _check_history_deletion_before_flush)
    _safe_remove_listener(RemarksHistoryEntry, "before_update", _check_history_entry_immutability)
    _safe_remove_listener(Record, "before_update", _check_record_immutability)
