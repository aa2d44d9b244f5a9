"""
ORM-Level Write-Path Guards.

===============================================================================
WHY THIS EXISTS
===============================================================================

A workflow record's status is its audit trail.  The only sanctioned way to
change it is the owning store's compare-and-swap UPDATE, which also appends
a log row in the same transaction.  Any other code path that loads a model,
assigns ``status = ...`` and flushes would move the record without a log
entry and without the role and payload checks.

SQLAlchemy fires mapper events before an ORM flush sends UPDATE or DELETE.
Modules attach listeners built here to their own models:

    session.flush()
         |
         v
    [before_update] --> column_change_guard() / refuse() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> refuse() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

The stores write through ``session.execute(update(...))`` and
``session.execute(insert(...))``, which are statement-level operations and
do not fire mapper events, so the guards never get in their way.

===============================================================================
USAGE
===============================================================================

Each module declares the guards for its models next to the models, at
import time:

    declare_write_guards(
        ThingModel,
        before_update=column_change_guard("Thing", "ThingService.apply_transition"),
        before_delete=refuse("Thing", "DELETE", "things are never deleted"),
    )

Declaring does not arm anything.  Once the models are imported:

    from siteflow_kernel.db.guards import register_write_guards
    register_write_guards()  # once at startup

To lift them in a test that needs to simulate tampering:

    from siteflow_kernel.db.guards import unregister_write_guards
    unregister_write_guards()
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy import event, inspect

from siteflow_kernel.exceptions import ImmutabilityViolationError
from siteflow_kernel.logging_config import get_logger

logger = get_logger("db.guards")

GuardListener = Callable[[Any, Any, Any], None]

# Columns an ORM flush may still touch on a guarded workflow record.
_BOOKKEEPING_COLUMNS = frozenset({"updated_at"})

_declared: list[tuple[type, str, GuardListener]] = []


def changed_columns(target) -> list[str]:
    state = inspect(target)
    return sorted(
        attr.key
        for attr in state.mapper.column_attrs
        if attr.key not in _BOOKKEEPING_COLUMNS
        and state.attrs[attr.key].history.has_changes()
    )


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "write_guard_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def column_change_guard(entity_type: str, sanctioned_path: str) -> GuardListener:
    """``before_update`` listener refusing any ORM change to a non-bookkeeping column."""

    def _check(mapper, connection, target):
        changed = changed_columns(target)
        if changed:
            _block(
                entity_type,
                target,
                "UPDATE",
                f"fields {', '.join(changed)} may only change through {sanctioned_path}",
            )

    return _check


def refuse(entity_type: str, operation: str, reason: str) -> GuardListener:
    """Listener refusing the operation outright."""

    def _check(mapper, connection, target):
        _block(entity_type, target, operation, reason)

    return _check


def declare_write_guards(
    model: type,
    *,
    before_update: GuardListener | None = None,
    before_delete: GuardListener | None = None,
) -> None:
    """Record the listeners for ``model``.  A model declared twice keeps its first set."""
    if any(declared is model for declared, _, _ in _declared):
        return
    if before_update is not None:
        _declared.append((model, "before_update", before_update))
    if before_delete is not None:
        _declared.append((model, "before_delete", before_delete))


def guarded_models() -> tuple[type, ...]:
    seen: list[type] = []
    for model, _, _ in _declared:
        if model not in seen:
            seen.append(model)
    return tuple(seen)


def register_write_guards() -> None:
    """Arm every declared listener.  Safe to call more than once."""
    for target, event_name, fn in _declared:
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)
    logger.debug("write_guards_registered", extra={"listener_count": len(_declared)})


def unregister_write_guards() -> None:
    """Remove the write-path listeners.  Tests only."""
    for target, event_name, fn in _declared:
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)


def write_guards_active() -> bool:
    return bool(_declared) and all(event.contains(t, name, fn) for t, name, fn in _declared)
