"""
SQLAlchemy ORM persistence model for daily progress reports.

Labour, material and activity lines are stored as JSON lists on the report
row; quantities are serialised as decimal strings so no precision is lost.
Each stored activity also carries its unclamped ``percent_complete``.
Reports are insert-only; the write guards declared below refuse ORM
updates and deletes.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import JSON, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from siteflow_kernel.db.base import TrackedBase
from siteflow_kernel.db.guards import declare_write_guards, refuse


class DPRRecordModel(TrackedBase):
    """Maps to ``DPRRecord`` in ``siteflow_modules.dpr.models``."""

    __tablename__ = "dpr_records"

    __table_args__ = (
        Index("idx_dpr_project_date", "project_name", "report_date"),
    )

    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(200), nullable=False)
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    labour: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    materials: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    activities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    machinery: Mapped[str] = mapped_column(Text, nullable=False, default="")
    safety_observations: Mapped[str] = mapped_column(Text, nullable=False, default="")
    risks_and_delays: Mapped[str] = mapped_column(Text, nullable=False, default="")
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    @staticmethod
    def values_from_submission(submission) -> dict:
        return {
            "project_name": submission.project_name.strip(),
            "submitted_by": submission.submitted_by.strip(),
            "report_date": submission.report_date,
            "labour": [
                {"category": e.category.strip(), "count": e.count, "names": e.names.strip()}
                for e in submission.labour
            ],
            "materials": [
                {"name": m.name.strip(), "unit": m.unit.strip(), "quantity": str(m.quantity)}
                for m in submission.materials
            ],
            "activities": [
                {
                    "description": a.description.strip(),
                    "unit": a.unit.strip(),
                    "planned_qty": str(a.planned_qty),
                    "executed_qty": str(a.executed_qty),
                    "percent_complete": str(a.percent_complete),
                }
                for a in submission.activities
            ],
            "machinery": submission.machinery.strip(),
            "safety_observations": submission.safety_observations.strip(),
            "risks_and_delays": submission.risks_and_delays.strip(),
            "photos": list(submission.photos),
        }

    def to_dto(self):
        from siteflow_modules.dpr.models import (
            Activity,
            DPRRecord,
            LabourEntry,
            MaterialConsumption,
        )

        return DPRRecord(
            id=self.id,
            created_at=self.created_at,
            project_name=self.project_name,
            submitted_by=self.submitted_by,
            report_date=self.report_date,
            labour=tuple(
                LabourEntry(category=e["category"], count=e["count"], names=e.get("names", ""))
                for e in self.labour or ()
            ),
            materials=tuple(
                MaterialConsumption(name=m["name"], unit=m["unit"], quantity=m["quantity"])
                for m in self.materials or ()
            ),
            activities=tuple(
                Activity(
                    description=a["description"],
                    unit=a["unit"],
                    planned_qty=a["planned_qty"],
                    executed_qty=a["executed_qty"],
                )
                for a in self.activities or ()
            ),
            machinery=self.machinery,
            safety_observations=self.safety_observations,
            risks_and_delays=self.risks_and_delays,
            photos=tuple(self.photos or ()),
        )

    def __repr__(self) -> str:
        return f"<DPRRecordModel {self.project_name} {self.report_date}>"


declare_write_guards(
    DPRRecordModel,
    before_update=refuse(
        "DPRRecord", "UPDATE", "reports are immutable; submit a correction instead"
    ),
    before_delete=refuse("DPRRecord", "DELETE", "reports are never deleted"),
)
