"""
Canonical workflow types (``siteflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for role-gated state machines.  The indent and petty-cash
modules both declare their lifecycle with these types, so Guard, Transition
and Workflow are defined once and the transition engine can evaluate any of
them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` and every terminal state are members of ``states``.
* A terminal state has no outgoing transition.
* At most one transition exists per (from_state, to_state) pair.
* Every transition names at least one role.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def state_value(value: Any) -> str:
    """Normalise an enum member or plain string to its stored string form."""
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Guard:
    """A named precondition attached to a transition.

    The payload and write-once checks enforce it; the transition engine
    reports its name on the decision and on any refusal of the edge.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A legal edge of a workflow.

    ``roles`` lists the actor roles allowed to fire it and ``payload_type``
    is the single payload variant it accepts (``None`` accepts no payload
    class check at all).
    """
    from_state: str
    to_state: str
    action: str
    roles: frozenset[str] = field(default_factory=frozenset)
    payload_type: type | None = None
    guard: Guard | None = None

    def allows(self, role: Any) -> bool:
        return state_value(role) in self.roles


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    ``write_once_fields`` are record fields that, once holding a value, may
    never be replaced by a later transition.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    write_once_fields: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} not in states"
            )
        for terminal in self.terminal_states:
            if terminal not in known:
                raise ValueError(f"Workflow {self.name}: unknown terminal state {terminal}")
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )
            if not t.roles:
                raise ValueError(f"Workflow {self.name}: transition {t.action} has no roles")
            edge = (t.from_state, t.to_state)
            if edge in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate edge {t.from_state} -> {t.to_state}"
                )
            seen.add(edge)

    def find(self, from_state: Any, to_state: Any) -> Transition | None:
        src, dst = state_value(from_state), state_value(to_state)
        for t in self.transitions:
            if t.from_state == src and t.to_state == dst:
                return t
        return None

    def transitions_from(self, state: Any) -> tuple[Transition, ...]:
        src = state_value(state)
        return tuple(t for t in self.transitions if t.from_state == src)

    def is_terminal(self, state: Any) -> bool:
        return state_value(state) in self.terminal_states

    def reachable_from(self, state: Any) -> frozenset[str]:
        """All states reachable from ``state`` (inclusive) along any edges."""
        frontier = [state_value(state)]
        seen: set[str] = set(frontier)
        while frontier:
            current = frontier.pop()
            for t in self.transitions_from(current):
                if t.to_state not in seen:
                    seen.add(t.to_state)
                    frontier.append(t.to_state)
        return frozenset(seen)

    def roles_for(self, state: Any) -> frozenset[str]:
        """Roles that can act on a record sitting in ``state``."""
        roles: set[str] = set()
        for t in self.transitions_from(state):
            roles |= t.roles
        return frozenset(roles)
