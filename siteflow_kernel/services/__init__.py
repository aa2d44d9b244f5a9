"""Kernel services: transactional base, retry, change feed, blob storage, drive sync."""

from siteflow_kernel.services.base import TransactionalService
from siteflow_kernel.services.blob_store import BlobStore, LocalBlobStore
from siteflow_kernel.services.change_feed import (
    ChangeEvent,
    ChangeFeed,
    ChangeNotice,
    Subscription,
)
from siteflow_kernel.services.drive_sync import DriveSyncManifest, DriveSyncService
from siteflow_kernel.services.retry import RetryPolicy, is_transient, run_with_retry

__all__ = [
    "TransactionalService",
    "BlobStore",
    "LocalBlobStore",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeNotice",
    "Subscription",
    "DriveSyncManifest",
    "DriveSyncService",
    "RetryPolicy",
    "is_transient",
    "run_with_retry",
]
