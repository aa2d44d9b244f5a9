"""
Drive-sync trigger.

Responsibility:
    Queues a manifest of already-uploaded files for relocation into
    archival storage by inserting a PENDING ``upload_sessions`` row.

Architecture position:
    Kernel > Services.  Fire-and-forget from the caller's point of view:
    ``trigger`` never raises; a failure is logged and reported as ``None``
    so a submission that already committed is never undone by a sync
    problem.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteflow_kernel.exceptions import SiteflowError, ValidationError
from siteflow_kernel.logging_config import get_logger
from siteflow_kernel.models.upload_session import (
    UploadSession,
    UploadSessionModel,
    UploadStatus,
    UploadType,
)
from siteflow_kernel.services.base import TransactionalService

logger = get_logger("services.drive_sync")


@dataclass(frozen=True)
class DriveSyncManifest:
    project_code: str
    uploader_id: str
    upload_type: UploadType
    purpose: str = ""
    file_names: tuple[str, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        missing = [
            name
            for name in ("project_code", "uploader_id")
            if not (getattr(self, name) or "").strip()
        ]
        if not self.file_names:
            missing.append("file_names")
        if missing:
            raise ValidationError(
                "DriveSyncManifest",
                fields=missing,
                reason=f"manifest requires {', '.join(missing)}",
            )
        if not isinstance(self.upload_type, UploadType):
            try:
                UploadType(self.upload_type)
            except ValueError as exc:
                raise ValidationError(
                    "DriveSyncManifest",
                    fields=("upload_type",),
                    reason=f"unknown upload type {self.upload_type!r}",
                ) from exc


class DriveSyncService(TransactionalService):
    """Inserts drive-sync manifests into the ``upload_sessions`` queue."""

    def trigger(self, manifest: DriveSyncManifest) -> UploadSession | None:
        try:
            manifest.validate()
            session_row = self._in_transaction(
                "drive_sync_trigger", lambda s: self._insert(s, manifest)
            )
        except SiteflowError as exc:
            logger.warning(
                "drive_sync_trigger_failed",
                extra={
                    "project_code": manifest.project_code,
                    "upload_type": manifest.upload_type,
                    "error_code": exc.code,
                    "reason": str(exc),
                },
            )
            return None

        logger.info(
            "drive_sync_triggered",
            extra={
                "upload_session_id": str(session_row.id),
                "project_code": session_row.project_code,
                "upload_type": session_row.upload_type.value,
                "file_count": session_row.file_count,
            },
        )
        return session_row

    def pending(self, project_code: str | None = None) -> list[UploadSession]:
        def work(session: Session) -> list[UploadSession]:
            stmt = select(UploadSessionModel).where(
                UploadSessionModel.status == UploadStatus.PENDING.value
            )
            if project_code is not None:
                stmt = stmt.where(UploadSessionModel.project_code == project_code)
            stmt = stmt.order_by(UploadSessionModel.created_at, UploadSessionModel.id)
            return [row.to_dto() for row in session.scalars(stmt)]

        return self._read("drive_sync_pending", work)

    def _insert(self, session: Session, manifest: DriveSyncManifest) -> UploadSession:
        row = UploadSessionModel(
            project_code=manifest.project_code.strip(),
            uploader_id=manifest.uploader_id.strip(),
            upload_type=UploadType(manifest.upload_type).value,
            purpose=manifest.purpose,
            file_count=len(manifest.file_names),
            file_names=list(manifest.file_names),
            status=UploadStatus.PENDING.value,
            created_by=manifest.uploader_id.strip(),
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        session.add(row)
        session.flush()
        return row.to_dto()
