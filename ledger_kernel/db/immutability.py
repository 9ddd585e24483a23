"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

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

If a check fails, we raise ImmutabilityViolationError and the flush is
aborted.  The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | What is immutable                          | Why
-----------------|--------------------------------------------|-------------------------------
Posting          | Everything, from creation                  | Journal is append-only
GLAccount        | tenant_id, code, classification,           | Historical postings keep
                 | product_type, ledger_role; no DELETE       | their meaning
Product accounts | tenant_id, account_number, customer_id,    | Control link fixed at opening
                 | gl_account_id; no DELETE                   |

Bulk ``session.execute(update(...))`` statements bypass mapper events; the
kernel only issues one such statement (the reconciliation flag), which
touches none of the protected fields.
"""

from sqlalchemy import event, inspect

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_GL_STRUCTURAL_FIELDS = ("tenant_id", "code", "classification", "product_type", "ledger_role")
_PRODUCT_LINK_FIELDS = ("tenant_id", "account_number", "customer_id", "gl_account_id")


def _blocked(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target, fields: tuple[str, ...] | None = None) -> list[str]:
    insp = inspect(target)
    changed = []
    for attr in insp.attrs:
        if fields is not None and attr.key not in fields:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


def _check_posting_immutability(mapper, connection, target):
    """Postings are immutable from creation."""
    changed = _changed_fields(target)
    if changed:
        _blocked(
            "Posting",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a posting",
            field=changed[0],
        )


def _check_posting_delete(mapper, connection, target):
    """Postings cannot be deleted; corrections are offsetting postings."""
    _blocked("Posting", target, "DELETE", "Postings cannot be deleted")


def _check_gl_account_immutability(mapper, connection, target):
    """Structural GL fields are fixed; name and is_active may change."""
    changed = _changed_fields(target, _GL_STRUCTURAL_FIELDS)
    if changed:
        _blocked(
            "GLAccount",
            target,
            "UPDATE",
            f"Cannot modify structural field '{changed[0]}' on a GL account",
            field=changed[0],
        )


def _check_gl_account_delete(mapper, connection, target):
    _blocked("GLAccount", target, "DELETE", "GL accounts are deactivated, not deleted")


def _check_product_link_immutability(mapper, connection, target):
    """The control account link and identity of a product account are fixed."""
    changed = _changed_fields(target, _PRODUCT_LINK_FIELDS)
    if changed:
        _blocked(
            type(target).__name__,
            target,
            "UPDATE",
            f"Cannot modify '{changed[0]}' after account opening",
            field=changed[0],
        )


def _check_product_account_delete(mapper, connection, target):
    _blocked(type(target).__name__, target, "DELETE", "Product accounts are closed, not deleted")


def _listener_table():
    from ledger_kernel.models.gl_account import GLAccount
    from ledger_kernel.models.posting import Posting
    from ledger_kernel.models.product_account import (
        FixedDepositAccount,
        LoanAccount,
        RecurringDepositAccount,
        SavingsAccount,
    )

    listeners = [
        (Posting, "before_update", _check_posting_immutability),
        (Posting, "before_delete", _check_posting_delete),
        (GLAccount, "before_update", _check_gl_account_immutability),
        (GLAccount, "before_delete", _check_gl_account_delete),
    ]
    for model in (SavingsAccount, FixedDepositAccount, LoanAccount, RecurringDepositAccount):
        listeners.append((model, "before_update", _check_product_link_immutability))
        listeners.append((model, "before_delete", _check_product_account_delete))
    return listeners


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are skipped.  Called by
    create_tables(); call it directly when tables are managed elsewhere.
    """
    for model, identifier, fn in _listener_table():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for model, identifier, fn in _listener_table():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
