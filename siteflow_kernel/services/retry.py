"""
Bounded retry for transient storage failures.

Responsibility:
    Re-runs a unit of work when the database reports a transient failure
    (lock timeout, dropped connection) and converts anything it cannot
    recover into ``StorageError``.

Architecture position:
    Kernel > Services -- used by ``TransactionalService`` around every
    session-owning operation.  Each attempt runs in a fresh session, so a
    retried attempt never sees half of an earlier one.

Invariants enforced:
    - At most ``max_attempts`` attempts; linear backoff of
      ``backoff_seconds * attempt`` between them.
    - Domain errors (``SiteflowError``) are never retried and pass through
      untouched.
    - Every failure that escapes is a ``StorageError`` carrying the
      attempt count.

Audit relevance:
    Every retry and every exhaustion is logged with the operation name and
    attempt number.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from siteflow_kernel.exceptions import SiteflowError, StorageError
from siteflow_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How hard to try before giving up on the store."""
    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")


def is_transient(exc: BaseException) -> bool:
    """True for failures that may succeed if the same work is re-run."""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def run_with_retry(
    operation: str,
    work: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``work`` with bounded retry.

    Raises:
        SiteflowError: whatever domain error ``work`` raised, unchanged.
        StorageError: a non-transient database error, or a transient one
            that outlived every attempt.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        attempt += 1
        try:
            return work()
        except SiteflowError:
            raise
        except DBAPIError as exc:
            reason = str(exc.orig) if exc.orig is not None else str(exc)
            if not is_transient(exc):
                logger.error(
                    "storage_failure",
                    extra={"operation": operation, "attempt": attempt, "reason": reason},
                )
                raise StorageError(operation, reason, attempts=attempt) from exc
            if attempt >= policy.max_attempts:
                logger.error(
                    "storage_retry_exhausted",
                    extra={"operation": operation, "attempts": attempt, "reason": reason},
                )
                raise StorageError(operation, reason, attempts=attempt) from exc
            delay = policy.backoff_seconds * attempt
            logger.warning(
                "storage_retry",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "reason": reason,
                },
            )
            sleep(delay)
