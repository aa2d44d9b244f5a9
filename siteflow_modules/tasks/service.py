"""
Daily Task Board Service (``siteflow_modules.tasks.service``).

Responsibility
--------------
Per-user office to-do list: add a task, mark it pending or completed,
delete it, and show the day's agenda.  The agenda is every task still
pending, whenever it was added, plus every task added that day, newest
first.

Failure modes
-------------
* ``ValidationError`` -- blank user or description, unknown status.
* ``NotFoundError``   -- task id not on the board.
* ``StorageError``    -- persistence failed after bounded retry.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker

from siteflow_kernel.domain.clock import Clock
from siteflow_kernel.domain.payloads import is_blank
from siteflow_kernel.exceptions import NotFoundError, ValidationError
from siteflow_kernel.logging_config import get_logger
from siteflow_kernel.services.base import TransactionalService
from siteflow_kernel.services.change_feed import ChangeEvent, ChangeFeed, ChangeNotice
from siteflow_kernel.services.retry import RetryPolicy
from siteflow_modules.tasks.models import DailyTask, TaskAgenda, TaskStatus
from siteflow_modules.tasks.orm import DailyTaskModel

logger = get_logger("modules.tasks.service")

ENTITY_TYPE = "DailyTask"


def _as_status(status: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        raise ValidationError(
            ENTITY_TYPE, fields=("status",), reason=f"unknown task status {status!r}"
        ) from None


class TaskBoardService(TransactionalService):
    """Personal daily task board."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock | None = None,
        retry: RetryPolicy | None = None,
        change_feed: ChangeFeed | None = None,
    ):
        super().__init__(session_factory, clock=clock, retry=retry)
        self._feed = change_feed

    def add(self, user_id: str, description: str) -> DailyTask:
        missing = [
            name
            for name, value in (("user_id", user_id), ("description", description))
            if is_blank(value)
        ]
        if missing:
            raise ValidationError(
                ENTITY_TYPE, fields=missing, reason=f"add requires {', '.join(missing)}"
            )

        def work(session: Session) -> DailyTask:
            now = self._clock.now()
            model = DailyTaskModel(
                id=uuid4(),
                user_id=user_id.strip(),
                description=description.strip(),
                status=TaskStatus.PENDING.value,
                created_by=user_id.strip(),
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            return model.to_dto()

        task = self._in_transaction("task_add", work)
        logger.info("task_added", extra={"task_id": str(task.id), "user_id": task.user_id})
        self._publish(task.id, ChangeEvent.INSERT, task.status)
        return task

    def set_status(self, task_id: UUID, status: TaskStatus | str) -> DailyTask:
        target = _as_status(status)

        def work(session: Session) -> DailyTask:
            model = session.get(DailyTaskModel, task_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(task_id))
            if model.status != target.value:
                model.status = target.value
                model.updated_at = self._clock.now()
                session.flush()
            return model.to_dto()

        task = self._in_transaction("task_set_status", work)
        logger.info(
            "task_status_changed",
            extra={"task_id": str(task_id), "user_id": task.user_id, "status": task.status.value},
        )
        self._publish(task.id, ChangeEvent.UPDATE, task.status)
        return task

    def delete(self, task_id: UUID) -> None:
        def work(session: Session) -> None:
            model = session.get(DailyTaskModel, task_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(task_id))
            session.delete(model)

        self._in_transaction("task_delete", work)
        logger.info("task_deleted", extra={"task_id": str(task_id)})
        self._publish(task_id, ChangeEvent.DELETE, None)

    def get(self, task_id: UUID) -> DailyTask:
        def work(session: Session) -> DailyTask:
            model = session.get(DailyTaskModel, task_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(task_id))
            return model.to_dto()

        return self._read("task_get", work)

    def agenda(self, user_id: str, day: date | None = None) -> TaskAgenda:
        """
        The user's board for ``day`` (default: the clock's today).

        Pending tasks from earlier days are carried forward; completed ones
        drop off once their day is over.
        """
        start = datetime.combine(day or self._clock.today(), time.min, tzinfo=timezone.utc)

        def work(session: Session) -> TaskAgenda:
            stmt = (
                select(DailyTaskModel)
                .where(
                    DailyTaskModel.user_id == user_id,
                    or_(
                        DailyTaskModel.status == TaskStatus.PENDING.value,
                        DailyTaskModel.created_at >= start,
                    ),
                )
                .order_by(DailyTaskModel.created_at.desc(), DailyTaskModel.id)
            )
            tasks = tuple(row.to_dto() for row in session.scalars(stmt))
            return TaskAgenda(user_id=user_id, tasks=tasks)

        return self._read("task_agenda", work)

    def _publish(self, task_id: UUID, event: ChangeEvent, status: TaskStatus | None) -> None:
        if self._feed is not None:
            self._feed.publish(
                ChangeNotice(
                    entity_type=ENTITY_TYPE,
                    entity_id=task_id,
                    event=event,
                    status=status.value if status is not None else None,
                )
            )
