"""
UploadSession -- drive-sync manifest queue row.

Responsibility:
    One row per request to relocate already-uploaded blobs into long-term
    archival storage.  Rows are inserted PENDING by ``DriveSyncService`` and
    picked up by an external sync worker.

Architecture position:
    Kernel > Models.  Inherits ``TrackedBase``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from siteflow_kernel.db.base import TrackedBase


class UploadType(str, Enum):
    SITE_PHOTOS = "Site_Photos"
    INVOICES = "Invoices"
    DRAWINGS = "Drawings"


class UploadStatus(str, Enum):
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class UploadSession:
    id: UUID
    project_code: str
    uploader_id: str
    upload_type: UploadType
    purpose: str
    file_count: int
    file_names: tuple[str, ...]
    status: UploadStatus
    created_at: datetime


class UploadSessionModel(TrackedBase):
    __tablename__ = "upload_sessions"

    __table_args__ = (
        Index("idx_upload_session_status", "status"),
        Index("idx_upload_session_project", "project_code"),
    )

    project_code: Mapped[str] = mapped_column(String(200), nullable=False)
    uploader_id: Mapped[str] = mapped_column(String(200), nullable=False)
    upload_type: Mapped[str] = mapped_column(String(30), nullable=False)
    purpose: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    file_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_names: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UploadStatus.PENDING.value
    )

    def to_dto(self) -> UploadSession:
        return UploadSession(
            id=self.id,
            project_code=self.project_code,
            uploader_id=self.uploader_id,
            upload_type=UploadType(self.upload_type),
            purpose=self.purpose,
            file_count=self.file_count,
            file_names=tuple(self.file_names or ()),
            status=UploadStatus(self.status),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<UploadSessionModel {self.project_code} {self.upload_type} [{self.status}]>"
