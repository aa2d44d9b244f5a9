"""
Daily Task Domain Models.

A personal to-do list for office work: each user adds short tasks, ticks
them off and removes them.  Unfinished tasks carry forward to the next day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True)
class DailyTask:
    id: UUID
    user_id: str
    description: str
    status: TaskStatus
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING


@dataclass(frozen=True)
class TaskAgenda:
    """One user's board for a day: carried-over pending work plus that day's tasks."""
    user_id: str
    tasks: tuple[DailyTask, ...]

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self.tasks if t.is_pending)

    @property
    def finished_count(self) -> int:
        return len(self.tasks) - self.pending_count
