"""
ORM-Level Immutability Enforcement for tax rule history.

===============================================================================
WHY THIS EXISTS
===============================================================================

A rate or configuration that was effective on some date may already have been
used for an invoice.  Changing its numbers in place would silently rewrite
what the tax "was" on that date.  History is therefore append-only: a change
of rule is "expire the old row, insert a new row", never a field update.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
These listeners intercept them:

    session.flush()
         |
         v
    [before_update event] --> _check_*_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Mutable after insert                          | Delete
------------------|-----------------------------------------------|--------
TaxRate           | is_active, effective_to, superseded_by_id     | never
TaxConfiguration  | is_active, effective_to, superseded_by_id     | never
TaxChangeEvent    | nothing                                       | never

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from gst_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

Tests that need to seed forbidden states call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event, inspect

from gst_kernel.exceptions import ImmutabilityViolationError
from gst_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Lifecycle fields that soft transitions are allowed to touch
LIFECYCLE_FIELDS = frozenset({"is_active", "effective_to", "superseded_by_id"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field=None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_rule_update(mapper, connection, target):
    """Only lifecycle and audit fields may change on a rate or configuration."""
    entity_type = type(target).__name__
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in AUDIT_FIELDS or attr.key in LIFECYCLE_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                entity_type,
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}'; supersede the row instead",
                field=attr.key,
            )

    # A deactivated row stays deactivated
    active_hist = insp.attrs.is_active.history
    if active_hist.deleted and active_hist.deleted[0] is False and target.is_active:
        _blocked(
            entity_type,
            target.id,
            "UPDATE",
            "Deactivated rows cannot be reactivated",
            field="is_active",
        )


def _check_rule_delete(mapper, connection, target):
    _blocked(
        type(target).__name__,
        target.id,
        "DELETE",
        "Tax rule history is append-only; deactivate or expire instead",
    )


def _check_change_event_update(mapper, connection, target):
    _blocked("TaxChangeEvent", target.id, "UPDATE", "Change events are immutable")


def _check_change_event_delete(mapper, connection, target):
    _blocked("TaxChangeEvent", target.id, "DELETE", "Change events cannot be deleted")


def _listeners():
    from gst_kernel.models.change_event import TaxChangeEvent
    from gst_kernel.models.tax_configuration import TaxConfiguration
    from gst_kernel.models.tax_rate import TaxRate

    return (
        (TaxRate, "before_update", _check_rule_update),
        (TaxRate, "before_delete", _check_rule_delete),
        (TaxConfiguration, "before_update", _check_rule_update),
        (TaxConfiguration, "before_delete", _check_rule_delete),
        (TaxChangeEvent, "before_update", _check_change_event_update),
        (TaxChangeEvent, "before_delete", _check_change_event_delete),
    )


def register_immutability_listeners() -> None:
    """Register all append-only enforcement listeners (idempotent)."""
    for model, identifier, fn in _listeners():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners. TESTS ONLY."""
    for model, identifier, fn in _listeners():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
    logger.debug("immutability_listeners_unregistered")
