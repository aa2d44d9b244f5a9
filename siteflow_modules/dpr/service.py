"""
Daily Progress Report Service (``siteflow_modules.dpr.service``).

Responsibility
--------------
Accept end-of-day site reports and list them per project.  There is no
update or delete path; a correction is a new submission.

Failure modes
-------------
* ``ValidationError`` -- missing header fields, negative counts or
  quantities, or more photos than ``DPRConfig.max_photos``.
* ``StorageError``    -- persistence failed after bounded retry.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from siteflow_config.schema import DPRConfig
from siteflow_kernel.domain.clock import Clock
from siteflow_kernel.exceptions import NotFoundError, ValidationError
from siteflow_kernel.logging_config import get_logger
from siteflow_kernel.services.base import TransactionalService
from siteflow_kernel.services.change_feed import ChangeEvent, ChangeFeed, ChangeNotice
from siteflow_kernel.services.retry import RetryPolicy
from siteflow_modules.dpr.models import DPRRecord, DPRSubmission
from siteflow_modules.dpr.orm import DPRRecordModel

logger = get_logger("modules.dpr.service")

ENTITY_TYPE = "DPRRecord"


class DPRService(TransactionalService):

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        config: DPRConfig | None = None,
        clock: Clock | None = None,
        retry: RetryPolicy | None = None,
        change_feed: ChangeFeed | None = None,
    ):
        super().__init__(session_factory, clock=clock, retry=retry)
        self._config = config or DPRConfig()
        self._feed = change_feed

    def submit(self, submission: DPRSubmission) -> DPRRecord:
        if not isinstance(submission, DPRSubmission):
            raise ValidationError(
                ENTITY_TYPE,
                fields=("submission",),
                reason=f"submit requires DPRSubmission, got {type(submission).__name__}",
            )
        problems = submission.problems(max_photos=self._config.max_photos)
        if problems:
            raise ValidationError(
                ENTITY_TYPE,
                fields=[f for p in problems for f in p.fields],
                reason="; ".join(p.reason for p in problems),
            )

        def work(session: Session) -> DPRRecord:
            now = self._clock.now()
            model = DPRRecordModel(
                id=uuid4(),
                created_by=submission.submitted_by.strip(),
                created_at=now,
                updated_at=now,
                **DPRRecordModel.values_from_submission(submission),
            )
            session.add(model)
            session.flush()
            return model.to_dto()

        record = self._in_transaction("dpr_submit", work)
        logger.info(
            "dpr_submitted",
            extra={
                "dpr_id": str(record.id),
                "project_name": record.project_name,
                "report_date": record.report_date,
                "activity_count": len(record.activities),
                "over_executed": sum(1 for a in record.activities if a.is_over),
                "photo_count": len(record.photos),
            },
        )
        if self._feed is not None:
            self._feed.publish(
                ChangeNotice(entity_type=ENTITY_TYPE, entity_id=record.id, event=ChangeEvent.INSERT)
            )
        return record

    def get(self, record_id: UUID) -> DPRRecord:
        def work(session: Session) -> DPRRecord:
            model = session.get(DPRRecordModel, record_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(record_id))
            return model.to_dto()

        return self._read("dpr_get", work)

    def list_for_project(
        self,
        project_name: str,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[DPRRecord]:
        """Reports for one project, newest first; date bounds are inclusive."""
        def work(session: Session) -> list[DPRRecord]:
            stmt = select(DPRRecordModel).where(DPRRecordModel.project_name == project_name)
            if since is not None:
                stmt = stmt.where(DPRRecordModel.report_date >= since)
            if until is not None:
                stmt = stmt.where(DPRRecordModel.report_date <= until)
            stmt = stmt.order_by(
                DPRRecordModel.report_date.desc(),
                DPRRecordModel.created_at.desc(),
                DPRRecordModel.id,
            )
            return [row.to_dto() for row in session.scalars(stmt)]

        return self._read("dpr_list_for_project", work)
