"""
Indent progress tracker.

Maps an indent's status onto the ten display steps every dashboard shows.
A forward status completes its own step and every earlier one.  Side
states borrow the position of the forward status they stand in for.
Rejected and returned indents do not advance the tracker; every step
renders as an error and the view carries a marker saying why.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from siteflow_modules.indent.models import IndentStatus
from siteflow_modules.indent.workflows import FORWARD_CHAIN

S = IndentStatus


class StepState(str, Enum):
    COMPLETE = "complete"
    PENDING = "pending"
    ERROR = "error"


STEP_LABELS: tuple[str, ...] = (
    "Raised",
    "PM Review",
    "QS Analysis",
    "Quoting",
    "Ops Head",
    "MD Final",
    "Finance",
    "On Way",
    "GRN",
    "Done",
)

SIDE_STATE_EQUIVALENTS: dict[IndentStatus, IndentStatus] = {
    S.APPROVED_BY_PM: S.PM_REVIEW,
    S.PO_RAISED: S.PROCUREMENT_DISPATCH,
    S.GOODS_RECEIVED: S.GRN_PENDING,
    S.CLOSED: S.COMPLETED,
}

ERROR_MARKERS: dict[IndentStatus, str] = {
    S.REJECTED_BY_PM: "rejected",
    S.RETURNED_TO_SE: "returned",
}


@dataclass(frozen=True)
class TrackerStep:
    number: int
    label: str
    status: IndentStatus
    state: StepState


@dataclass(frozen=True)
class TrackerView:
    status: IndentStatus
    steps: tuple[TrackerStep, ...]
    current_index: int | None
    marker: str | None = None

    @property
    def completed_count(self) -> int:
        return sum(1 for step in self.steps if step.state is StepState.COMPLETE)

    @property
    def is_error(self) -> bool:
        return self.marker is not None


def progress_index(status: IndentStatus | str) -> int | None:
    """Position of ``status`` in the forward chain, or None for error states."""
    status = IndentStatus(status)
    if status in ERROR_MARKERS:
        return None
    return FORWARD_CHAIN.index(SIDE_STATE_EQUIVALENTS.get(status, status))


def render_tracker(status: IndentStatus | str) -> TrackerView:
    status = IndentStatus(status)
    index = progress_index(status)
    steps = []
    for position, (label, step_status) in enumerate(zip(STEP_LABELS, FORWARD_CHAIN)):
        if index is None:
            state = StepState.ERROR
        elif position <= index:
            state = StepState.COMPLETE
        else:
            state = StepState.PENDING
        steps.append(TrackerStep(position + 1, label, step_status, state))
    return TrackerView(
        status=status,
        steps=tuple(steps),
        current_index=index,
        marker=ERROR_MARKERS.get(status),
    )
