"""
Pytest fixtures for the siteflow test suite.

Provides:
- A file-backed SQLite database per test (threads share it, so the
  concurrency tests exercise real lock contention)
- Services wired to a deterministic clock and an in-process change feed
- Indent factories and a helper that walks an indent along the forward chain
- Structured log capture

Environment Variables:
- SITEFLOW_TEST_DATABASE_URL: run against another database (e.g. PostgreSQL)
  instead of the per-test SQLite file.  Tables are dropped after each test.
"""

import json
import logging
import os
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from siteflow_config.schema import DPRConfig, IndentConfig
from siteflow_kernel.db.engine import build_engine, drop_tables
from siteflow_kernel.domain.clock import DeterministicClock
from siteflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from siteflow_kernel.services.change_feed import ChangeFeed
from siteflow_kernel.services.drive_sync import DriveSyncService
from siteflow_kernel.services.retry import RetryPolicy
from siteflow_modules._orm_registry import create_all_tables
from siteflow_modules.dpr.service import DPRService
from siteflow_modules.indent.models import ActorRole, IndentStatus, RequestItem, Urgency
from siteflow_modules.indent.payloads import (
    DispatchNotice,
    GRNCompletion,
    IndentDraft,
    MDDecision,
    OpsDecision,
    PaymentRelease,
    PMDecision,
    QSAnalysis,
    QuoteSubmission,
)
from siteflow_modules.indent.service import IndentStore
from siteflow_modules.petty_cash.service import PettyCashService
from siteflow_modules.tasks.service import TaskBoardService

S = IndentStatus
R = ActorRole

# Forward chain as (role, target, payload), starting from Raised_By_SE.
FORWARD_STEPS = (
    (R.PM, S.QS_ANALYSIS, PMDecision(pm_comments="Forwarded for costing")),
    (
        R.COSTING,
        S.PROCUREMENT_QUOTING,
        QSAnalysis(
            items=(RequestItem("Cement", 50, "Bags", target_rate=380),),
            market_analysis="Cement steady at 370-390 per bag",
            costing_comments="Within budget",
        ),
    ),
    (
        R.PROCUREMENT,
        S.OPS_APPROVAL,
        QuoteSubmission(quotes=("quotes/acc.pdf", "quotes/ultratech.pdf", "quotes/ambuja.pdf")),
    ),
    (R.OPS_HEAD, S.MD_FINAL_APPROVAL, OpsDecision(ops_comments="UltraTech selected")),
    (R.MD, S.FINANCE_PAYMENT_PENDING, MDDecision(md_comments="Approved")),
    (R.FINANCE, S.PROCUREMENT_DISPATCH, PaymentRelease(payment_ref="UTR-20240101-01")),
    (R.PROCUREMENT, S.GRN_PENDING, DispatchNotice(procurement_comments="Truck left the depot")),
    (
        R.SITE_ENGINEER,
        S.COMPLETED,
        GRNCompletion(
            grn_details="INV-55",
            grn_photos=("grn/inv-55-signed.jpg",),
            vendor_bill_photo="grn/inv-55-bill.jpg",
        ),
    ),
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture siteflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, indent_store):
            indent_store.create(...)
            logs = captured_logs()
            assert any(r["message"] == "indent_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("siteflow")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    url = os.environ.get("SITEFLOW_TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'siteflow.db'}"
    eng = build_engine(url)
    create_all_tables(eng)
    yield eng
    if "SITEFLOW_TEST_DATABASE_URL" in os.environ:
        drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A bare ORM session for tests that poke at rows directly."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def change_feed():
    return ChangeFeed()


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=5, backoff_seconds=0.01)


@pytest.fixture
def indent_config():
    return IndentConfig()


@pytest.fixture
def indent_store(session_factory, indent_config, deterministic_clock, change_feed, fast_retry):
    return IndentStore(
        session_factory,
        config=indent_config,
        clock=deterministic_clock,
        retry=fast_retry,
        change_feed=change_feed,
    )


@pytest.fixture
def petty_cash_service(session_factory, indent_config, deterministic_clock, change_feed):
    return PettyCashService(
        session_factory,
        config=indent_config,
        clock=deterministic_clock,
        change_feed=change_feed,
    )


@pytest.fixture
def dpr_service(session_factory, deterministic_clock, change_feed):
    return DPRService(
        session_factory,
        config=DPRConfig(max_photos=5),
        clock=deterministic_clock,
        change_feed=change_feed,
    )


@pytest.fixture
def task_board(session_factory, deterministic_clock, change_feed):
    return TaskBoardService(session_factory, clock=deterministic_clock, change_feed=change_feed)


@pytest.fixture
def drive_sync_service(session_factory, deterministic_clock):
    return DriveSyncService(session_factory, clock=deterministic_clock)


# =============================================================================
# Indent factories
# =============================================================================


@pytest.fixture
def make_draft():
    """Build an ``IndentDraft``; keyword overrides replace the defaults."""

    def _make(**overrides) -> IndentDraft:
        values = {
            "items": (RequestItem("Cement", 50, "Bags"),),
            "urgency": Urgency.HIGH,
            "project_name": "Tower B",
            "notes": "Slab casting on Friday",
        }
        values.update(overrides)
        return IndentDraft(**values)

    return _make


@pytest.fixture
def raised_indent(indent_store, make_draft):
    return indent_store.create(make_draft(), requested_by="ravi")


@pytest.fixture
def advance_indent(indent_store):
    """
    Walk an indent along the forward chain until it reaches ``target``.

    Each step passes ``expected_status`` so a wrong starting point fails
    loudly instead of silently skipping.
    """

    def _advance(request, target: IndentStatus):
        current = request
        for index, (role, step_target, payload) in enumerate(FORWARD_STEPS):
            sources = (S.RAISED_BY_SE, S.PM_REVIEW) if index == 0 else (FORWARD_STEPS[index - 1][1],)
            if current.status == target:
                break
            if current.status not in sources:
                continue
            current = indent_store.apply_transition(
                current.id,
                role,
                step_target,
                payload,
                expected_status=current.status,
                actor_name=f"{role.value}-user",
            )
        assert current.status == target
        return current

    return _advance
