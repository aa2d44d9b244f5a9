"""
TransactionalService -- base for services that own their transactions.

Responsibility:
    Provides the common constructor and the ``_in_transaction`` helper for
    every store in the system.  A store method hands its work to
    ``_in_transaction``; the helper opens a session, runs the work, commits
    on success, rolls back on any exception, closes the session, and wraps
    the whole attempt in bounded retry.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Module stores
    (indent, petty cash, DPR) and the drive-sync queue extend this class.

Invariants enforced:
    - One transaction per public operation: every write of one operation
      commits together or not at all.
    - Rollback on failure: no state is mutated when an operation raises.
    - Each retry attempt runs in a fresh session.

Failure modes:
    - Domain errors propagate unchanged after rollback.
    - Storage failures surface as ``StorageError`` (see ``services.retry``).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker

from siteflow_kernel.domain.clock import Clock, SystemClock
from siteflow_kernel.logging_config import log_operation
from siteflow_kernel.services.retry import RetryPolicy, run_with_retry

T = TypeVar("T")


class TransactionalService:
    """
    Base class for session-owning services.

    Contract:
        Accepts a ``sessionmaker`` rather than a session, because each
        operation (and each retry of it) needs its own transaction.

    Non-goals:
        - Does NOT share sessions between operations.
        - Does NOT retry domain errors.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock | None = None,
        retry: RetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._retry = retry or RetryPolicy()

    @property
    def clock(self) -> Clock:
        return self._clock

    def _in_transaction(self, operation: str, work: Callable[[Session], T]) -> T:
        def attempt() -> T:
            session = self._session_factory()
            try:
                result = work(session)
                session.commit()
                return result
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        with log_operation(operation):
            return run_with_retry(operation, attempt, self._retry)

    def _read(self, operation: str, work: Callable[[Session], T]) -> T:
        """Run read-only work; the session is rolled back rather than committed."""
        def attempt() -> T:
            session = self._session_factory()
            try:
                return work(session)
            finally:
                session.rollback()
                session.close()

        with log_operation(operation, read_only=True):
            return run_with_retry(operation, attempt, self._retry)
