"""
Daily Progress Report Domain Models.

A DPR is the site's end-of-day snapshot: who worked, what was consumed,
which activities moved and by how much.  Reports are immutable once
submitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from siteflow_kernel.domain.payloads import PayloadProblem, is_blank
from siteflow_kernel.domain.values import to_decimal

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LabourEntry:
    category: str
    count: int
    names: str = ""

    def problems(self, index: int) -> list[PayloadProblem]:
        prefix = f"labour[{index}]"
        found: list[PayloadProblem] = []
        if is_blank(self.category):
            found.append(PayloadProblem((f"{prefix}.category",), f"{prefix} has no category"))
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 0:
            found.append(
                PayloadProblem((f"{prefix}.count",), f"{prefix} count must be a whole number >= 0")
            )
        return found


@dataclass(frozen=True)
class MaterialConsumption:
    name: str
    unit: str
    quantity: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "quantity", to_decimal(self.quantity, "MaterialConsumption", "quantity")
        )

    def problems(self, index: int) -> list[PayloadProblem]:
        prefix = f"materials[{index}]"
        found: list[PayloadProblem] = []
        if is_blank(self.name):
            found.append(PayloadProblem((f"{prefix}.name",), f"{prefix} has no name"))
        if self.quantity is None or not self.quantity.is_finite() or self.quantity < 0:
            found.append(
                PayloadProblem((f"{prefix}.quantity",), f"{prefix} quantity must be >= 0")
            )
        return found


@dataclass(frozen=True)
class Activity:
    """
    One line of work tracked against its plan.

    ``percent_complete`` is kept unclamped so over-execution stays visible
    in reports; ``display_percent`` is what a progress bar shows.  With no
    planned quantity the percentage is 0, but any executed quantity still
    counts as over-execution.
    """
    description: str
    unit: str
    planned_qty: Decimal
    executed_qty: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "planned_qty", to_decimal(self.planned_qty, "Activity", "planned_qty")
        )
        object.__setattr__(
            self, "executed_qty", to_decimal(self.executed_qty, "Activity", "executed_qty")
        )

    @property
    def percent_complete(self) -> Decimal:
        if not self.planned_qty:
            return Decimal("0")
        return self.executed_qty / self.planned_qty * _HUNDRED

    @property
    def display_percent(self) -> Decimal:
        return min(max(self.percent_complete, Decimal("0")), _HUNDRED)

    @property
    def is_over(self) -> bool:
        return self.executed_qty > self.planned_qty

    @property
    def is_complete(self) -> bool:
        return self.executed_qty >= self.planned_qty

    def problems(self, index: int) -> list[PayloadProblem]:
        prefix = f"activities[{index}]"
        found: list[PayloadProblem] = []
        if is_blank(self.description):
            found.append(
                PayloadProblem((f"{prefix}.description",), f"{prefix} has no description")
            )
        for name in ("planned_qty", "executed_qty"):
            value = getattr(self, name)
            if value is None or not value.is_finite() or value < 0:
                found.append(PayloadProblem((f"{prefix}.{name}",), f"{prefix} {name} must be >= 0"))
        return found


@dataclass(frozen=True)
class DPRSubmission:
    """What the site submits at the end of the day."""
    project_name: str
    submitted_by: str
    report_date: date
    labour: tuple[LabourEntry, ...] = ()
    materials: tuple[MaterialConsumption, ...] = ()
    activities: tuple[Activity, ...] = ()
    machinery: str = ""
    safety_observations: str = ""
    risks_and_delays: str = ""
    photos: tuple[str, ...] = ()

    def problems(self, *, max_photos: int) -> list[PayloadProblem]:
        found: list[PayloadProblem] = []
        for name in ("project_name", "submitted_by", "report_date"):
            if is_blank(getattr(self, name)):
                found.append(PayloadProblem((name,), f"{name} is required"))
        for i, entry in enumerate(self.labour):
            found.extend(entry.problems(i))
        for i, material in enumerate(self.materials):
            found.extend(material.problems(i))
        for i, activity in enumerate(self.activities):
            found.extend(activity.problems(i))
        if len(self.photos) > max_photos:
            found.append(
                PayloadProblem(("photos",), f"at most {max_photos} photos per report")
            )
        return found


@dataclass(frozen=True)
class DPRRecord:
    id: UUID
    created_at: datetime
    project_name: str
    submitted_by: str
    report_date: date
    labour: tuple[LabourEntry, ...] = field(default_factory=tuple)
    materials: tuple[MaterialConsumption, ...] = field(default_factory=tuple)
    activities: tuple[Activity, ...] = field(default_factory=tuple)
    machinery: str = ""
    safety_observations: str = ""
    risks_and_delays: str = ""
    photos: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_labour(self) -> int:
        return sum(entry.count for entry in self.labour)
