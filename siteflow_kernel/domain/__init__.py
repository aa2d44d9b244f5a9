"""
Pure domain layer.

Workflow definitions, payload variants, the transition engine and the clock.
Nothing here touches the ORM, the database or any other I/O.
"""

from siteflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from siteflow_kernel.domain.payloads import PayloadProblem, TransitionPayload
from siteflow_kernel.domain.workflow import Guard, Transition, Workflow, state_value
from siteflow_kernel.domain.workflow_engine import (
    TransitionDecision,
    allowed_targets,
    resolve_transition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "PayloadProblem",
    "TransitionPayload",
    "Guard",
    "Transition",
    "Workflow",
    "state_value",
    "TransitionDecision",
    "allowed_targets",
    "resolve_transition",
]
