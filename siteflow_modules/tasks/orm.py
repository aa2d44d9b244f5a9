"""
SQLAlchemy ORM persistence model for daily tasks.

Tasks are personal and informal: the owner may change their status or
delete them outright, so no write guard is declared for this table.
"""

from __future__ import annotations

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from siteflow_kernel.db.base import TrackedBase


class DailyTaskModel(TrackedBase):
    """Maps to ``DailyTask`` in ``siteflow_modules.tasks.models``."""

    __tablename__ = "daily_tasks"

    __table_args__ = (
        Index("idx_daily_tasks_user_status", "user_id", "status"),
        Index("idx_daily_tasks_created", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    def to_dto(self):
        from siteflow_modules.tasks.models import DailyTask, TaskStatus

        return DailyTask(
            id=self.id,
            user_id=self.user_id,
            description=self.description,
            status=TaskStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<DailyTaskModel {self.user_id} [{self.status}] {self.description[:30]!r}>"
