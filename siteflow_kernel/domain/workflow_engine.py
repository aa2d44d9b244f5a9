"""
Transition engine (``siteflow_kernel.domain.workflow_engine``).

Responsibility
--------------
Given a workflow, the record's current state, the acting role, the proposed
state and a payload, decide whether the transition is legal and which
record fields it writes.  The decision is a value; nothing is persisted.

Architecture position
---------------------
**Kernel domain layer** -- pure function over ``Workflow`` and
``TransitionPayload``.  Stores call it before their compare-and-swap write.

Invariants enforced
-------------------
* Only edges of the workflow are accepted; a record in a terminal state
  accepts nothing.
* Role policy is checked before the payload is looked at.
* Each transition accepts exactly its declared payload variant, with every
  required field present.
* Write-once fields that already hold a value are never replaced.
* A refusal on an edge that declares a guard names that guard, so callers
  can tell which precondition failed.

Failure modes
-------------
Checked in this order, first failure wins:

* ``TerminalStateError``       -- current state is terminal.
* ``IllegalTransitionError``   -- (current, proposed) is not an edge.
* ``ForbiddenTransitionError`` -- role not allowed on this edge.
* ``ValidationError``          -- wrong payload variant, missing required
  field, failed payload check, or write-once conflict.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from siteflow_kernel.domain.payloads import TransitionPayload, is_blank
from siteflow_kernel.domain.workflow import Transition, Workflow, state_value
from siteflow_kernel.exceptions import (
    ForbiddenTransitionError,
    IllegalTransitionError,
    TerminalStateError,
    ValidationError,
)


@dataclass(frozen=True)
class TransitionDecision:
    """The outcome of a legal transition request."""
    workflow: str
    action: str
    from_state: str
    to_state: str
    actor_role: str
    payload_kind: str | None
    guard: str | None = None
    updates: Mapping[str, Any] = field(default_factory=dict)


def resolve_transition(
    workflow: Workflow,
    *,
    entity_type: str,
    current_state: Any,
    actor_role: Any,
    proposed_state: Any,
    payload: TransitionPayload | None,
    entity_id: str | None = None,
    current_values: Mapping[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
) -> TransitionDecision:
    """Validate a transition request and return the fields it writes.

    ``current_values`` is the record's present field values (for write-once
    checks); ``context`` carries configuration the payload checks need,
    such as the minimum quote count.
    """
    current = state_value(current_state)
    proposed = state_value(proposed_state)
    role = state_value(actor_role)

    transition = workflow.find(current, proposed)
    if transition is None:
        if workflow.is_terminal(current):
            raise TerminalStateError(entity_type, current, proposed, entity_id=entity_id)
        raise IllegalTransitionError(entity_type, current, proposed, entity_id=entity_id)

    if not transition.allows(role):
        raise ForbiddenTransitionError(
            entity_type, role, current, proposed, entity_id=entity_id
        )

    guard = transition.guard.name if transition.guard is not None else None
    updates = _validate_payload(transition, payload, entity_type, entity_id, context or {})
    _check_write_once(workflow, updates, current_values or {}, entity_type, entity_id, guard)

    return TransitionDecision(
        workflow=workflow.name,
        action=transition.action,
        from_state=current,
        to_state=proposed,
        actor_role=role,
        payload_kind=payload.kind if payload is not None else None,
        guard=guard,
        updates=updates,
    )


def allowed_targets(workflow: Workflow, current_state: Any, actor_role: Any) -> tuple[str, ...]:
    """States ``actor_role`` may move a record to from ``current_state``."""
    role = state_value(actor_role)
    return tuple(t.to_state for t in workflow.transitions_from(current_state) if role in t.roles)


def _validate_payload(
    transition: Transition,
    payload: TransitionPayload | None,
    entity_type: str,
    entity_id: str | None,
    context: Mapping[str, Any],
) -> dict[str, Any]:
    expected = transition.payload_type
    if expected is None:
        return payload.updates() if payload is not None else {}

    if payload is None or not isinstance(payload, expected):
        got = type(payload).__name__ if payload is not None else "nothing"
        raise ValidationError(
            entity_type,
            fields=("payload",),
            reason=f"{transition.action} requires {expected.__name__}, got {got}",
            entity_id=entity_id,
        )

    missing = payload.missing_fields()
    if missing:
        raise ValidationError(
            entity_type,
            fields=missing,
            reason=f"{transition.action} requires {', '.join(missing)}",
            entity_id=entity_id,
        )

    problems = payload.problems(context)
    if problems:
        fields: list[str] = []
        for problem in problems:
            fields.extend(f for f in problem.fields if f not in fields)
        guard = transition.guard.name if transition.guard is not None else None
        raise ValidationError(
            entity_type,
            fields=fields,
            reason=_guarded("; ".join(p.reason for p in problems), guard),
            entity_id=entity_id,
            guard=guard,
        )

    return payload.updates()


def _check_write_once(
    workflow: Workflow,
    updates: Mapping[str, Any],
    current_values: Mapping[str, Any],
    entity_type: str,
    entity_id: str | None,
    guard: str | None = None,
) -> None:
    for name in workflow.write_once_fields:
        if name not in updates:
            continue
        existing = current_values.get(name)
        if not is_blank(existing) and existing != updates[name]:
            raise ValidationError(
                entity_type,
                fields=(name,),
                reason=_guarded(f"{name} is already set and cannot be replaced", guard),
                entity_id=entity_id,
                guard=guard,
            )


def _guarded(reason: str, guard: str | None) -> str:
    if guard is None:
        return reason
    return f"guard {guard} not satisfied: {reason}"
