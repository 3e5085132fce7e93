"""
ORM-level immutability enforcement for the ledger.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                     | Allowed changes
----------------|------------------------------------|---------------------------------
JournalEntry    | status in (posted, reversed)       | posted -> reversed flip only:
                |                                    | status, is_reversed, reversed_at,
                |                                    | reversal_reason
JournalLine     | parent entry not draft             | none
Account         | structural fields once referenced  | name, is_active, parent_id
                | by a posted or reversed line       |

SQLAlchemy fires mapper events before UPDATE/DELETE statements generated by a
flush.  The listeners below inspect attribute history and raise
ImmutabilityViolationError (or AccountReferencedError for deletes) before any
SQL reaches the database:

    session.flush()
         |
         v
    [before_update / before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Status transitions themselves are issued by the services as conditional
``UPDATE ... WHERE status = ...`` statements; those bypass the unit of work and
therefore these listeners.  The listeners catch everything else: application
code that loads a posted entry and assigns to it.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to violate the rules on purpose call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event, exists, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import AccountReferencedError, ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata, never financial data
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields the posted -> reversed flip may touch on the original entry
REVERSAL_FLIP_FIELDS = frozenset(
    {"status", "is_reversed", "reversed_at", "reversal_reason"}
)

# Structural fields that become immutable once an account is referenced
ACCOUNT_STRUCTURAL_FIELDS = frozenset({"code", "account_type", "company_id"})

_FINAL_STATUSES = ("posted", "reversed")


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _account_has_posted_references(connection, account_id) -> bool:
    """True if any posted or reversed entry has a line on the account."""
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    stmt = select(
        exists()
        .where(JournalLine.account_id == account_id)
        .where(JournalLine.journal_entry_id == JournalEntry.id)
        .where(JournalEntry.status.in_(_FINAL_STATUSES))
    )
    return bool(connection.execute(stmt).scalar())


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block updates to posted/reversed entries.

    Logic:
        1. Status unchanged and final: any non-audit change is blocked.
        2. Status changing from posted to reversed: only the flip fields
           may change.
        3. Status changing from a final status to anything else: blocked.
        4. Status changing from draft: allowed (this is the posting).
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        old_status = _status_value(status_history.deleted[0])
        new_status = _status_value(target.status)
        if old_status == "draft":
            return
        if old_status == "posted" and new_status == "reversed":
            allowed = REVERSAL_FLIP_FIELDS | _AUDIT_FIELDS
        else:
            raise _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot move journal entry from {old_status} to {new_status}",
                field="status",
            )
    else:
        if _status_value(target.status) not in _FINAL_STATUSES:
            return
        allowed = _AUDIT_FIELDS

    from sqlalchemy import inspect

    for attr in inspect(target).attrs:
        if attr.key in allowed or attr.key == "lines":
            continue
        if attr.history.has_changes():
            raise _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on {_status_value(target.status)} "
                "journal entry",
                field=attr.key,
            )


def _check_journal_entry_delete(mapper, connection, target):
    """Posted and reversed entries cannot be deleted."""
    if _status_value(target.status) in _FINAL_STATUSES:
        raise _blocked(
            "JournalEntry",
            target.id,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _line_is_frozen(target) -> bool:
    entry = target.entry
    return entry is not None and _status_value(entry.status) in _FINAL_STATUSES


def _check_journal_line_immutability(mapper, connection, target):
    if _line_is_frozen(target):
        raise _blocked(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified after parent entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _line_is_frozen(target):
        raise _blocked(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted after parent entry is posted",
        )


def _check_account_structural_immutability(mapper, connection, target):
    """
    Lock code, account_type and company_id once the account carries posted
    lines.  Name, activity flag and parent remain editable.
    """
    changed = sorted(
        field
        for field in ACCOUNT_STRUCTURAL_FIELDS
        if get_history(target, field).has_changes()
    )
    if not changed:
        return

    if _account_has_posted_references(connection, target.id):
        raise _blocked(
            "Account",
            target.id,
            "UPDATE",
            f"Cannot modify structural field(s) {changed} on account "
            "referenced by posted journal entries",
            fields=changed,
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Refuse deletion of accounts referenced by posted lines.

    Runs in before_flush so the refusal happens before the flush plan is
    built; mapper-level before_delete fires too late to stop cascades.
    """
    from ledger_kernel.models.account import Account

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue
        with session.no_autoflush:
            referenced = _account_has_posted_references(session.connection(), obj.id)
        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "account_has_posted_references",
                },
            )
            raise AccountReferencedError(account_id=str(obj.id))


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (Account, "before_update", _check_account_structural_immutability),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
