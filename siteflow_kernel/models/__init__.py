"""Kernel-owned ORM models."""

from siteflow_kernel.models.upload_session import (
    UploadSession,
    UploadSessionModel,
    UploadStatus,
    UploadType,
)

__all__ = ["UploadSession", "UploadSessionModel", "UploadStatus", "UploadType"]
