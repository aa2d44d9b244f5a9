"""
Daily Tasks Module (``siteflow_modules.tasks``).

Each user's office to-do board.  Unlike indents and petty-cash claims,
tasks have no approval workflow: the owner toggles and deletes them freely.
"""

from siteflow_modules.tasks.models import DailyTask, TaskAgenda, TaskStatus
from siteflow_modules.tasks.service import TaskBoardService

__all__ = [
    "DailyTask",
    "TaskAgenda",
    "TaskBoardService",
    "TaskStatus",
]
