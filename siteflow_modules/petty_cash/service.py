"""
Petty Cash Module Service (``siteflow_modules.petty_cash.service``).

Responsibility
--------------
Submit reimbursement claims, list them for the claimant or for Finance, and
move them through ``PETTY_CASH_WORKFLOW`` with the same engine, role policy
and compare-and-swap write as indents.

Failure modes
-------------
* ``ValidationError`` -- claim or review payload incomplete, amount not
  positive.
* ``NotFoundError`` / ``StaleStateError`` / ``IllegalTransitionError`` /
  ``ForbiddenTransitionError`` -- as for indents.
* ``StorageError`` -- persistence failed after bounded retry.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from siteflow_config.schema import IndentConfig
from siteflow_kernel.domain.clock import Clock
from siteflow_kernel.domain.payloads import TransitionPayload
from siteflow_kernel.domain.workflow import state_value
from siteflow_kernel.domain.workflow_engine import resolve_transition
from siteflow_kernel.exceptions import (
    NotFoundError,
    SiteflowError,
    StaleStateError,
    ValidationError,
)
from siteflow_kernel.logging_config import get_logger
from siteflow_kernel.services.base import TransactionalService
from siteflow_kernel.services.change_feed import ChangeEvent, ChangeFeed, ChangeNotice
from siteflow_kernel.services.retry import RetryPolicy
from siteflow_modules.petty_cash.models import PettyCashClaim, PettyCashEntry, PettyCashStatus
from siteflow_modules.petty_cash.orm import PettyCashEntryModel
from siteflow_modules.petty_cash.workflows import PETTY_CASH_WORKFLOW
from siteflow_modules.roles import ActorRole

logger = get_logger("modules.petty_cash.service")

ENTITY_TYPE = "PettyCashEntry"


class PettyCashService(TransactionalService):
    """Petty-cash claims store and transition write path."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        config: IndentConfig | None = None,
        clock: Clock | None = None,
        retry: RetryPolicy | None = None,
        change_feed: ChangeFeed | None = None,
    ):
        super().__init__(session_factory, clock=clock, retry=retry)
        self._default_project = (config or IndentConfig()).default_project
        self._feed = change_feed

    def submit(self, claim: PettyCashClaim) -> PettyCashEntry:
        if not isinstance(claim, PettyCashClaim):
            raise ValidationError(
                ENTITY_TYPE,
                fields=("claim",),
                reason=f"submit requires PettyCashClaim, got {type(claim).__name__}",
            )
        missing = claim.missing_fields()
        if missing:
            raise ValidationError(
                ENTITY_TYPE, fields=missing, reason=f"submit requires {', '.join(missing)}"
            )
        problems = claim.problems({})
        if problems:
            raise ValidationError(
                ENTITY_TYPE,
                fields=[f for p in problems for f in p.fields],
                reason="; ".join(p.reason for p in problems),
            )

        def work(session: Session) -> PettyCashEntry:
            now = self._clock.now()
            model = PettyCashEntryModel(
                id=uuid4(),
                user_id=claim.user_id.strip(),
                user_name=claim.user_name.strip(),
                project_name=claim.project_name.strip() or self._default_project,
                amount=claim.amount,
                paid_to=claim.paid_to.strip(),
                remarks=claim.remarks.strip(),
                screenshot=claim.screenshot.strip(),
                status=PettyCashStatus.PENDING_PM_APPROVAL.value,
                version=1,
                created_by=claim.user_id.strip(),
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            return model.to_dto()

        entry = self._in_transaction("petty_cash_submit", work)
        logger.info(
            "petty_cash_submitted",
            extra={
                "entry_id": str(entry.id),
                "user_id": entry.user_id,
                "amount": entry.amount,
                "project_name": entry.project_name,
            },
        )
        self._publish(entry, ChangeEvent.INSERT)
        return entry

    def get(self, entry_id: UUID) -> PettyCashEntry:
        def work(session: Session) -> PettyCashEntry:
            model = session.get(PettyCashEntryModel, entry_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(entry_id))
            return model.to_dto()

        return self._read("petty_cash_get", work)

    def list_entries(
        self,
        user_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        search: str | None = None,
        status: PettyCashStatus | str | None = None,
    ) -> list[PettyCashEntry]:
        """
        Claims newest first.

        ``user_id=None`` returns every claimant's entries (the Finance view).
        ``since``/``until`` bound ``created_at`` inclusively.  ``search``
        matches user name, payee or remarks, case-insensitively.
        """
        def work(session: Session) -> list[PettyCashEntry]:
            stmt = select(PettyCashEntryModel)
            if user_id is not None:
                stmt = stmt.where(PettyCashEntryModel.user_id == user_id)
            if since is not None:
                stmt = stmt.where(PettyCashEntryModel.created_at >= since)
            if until is not None:
                stmt = stmt.where(PettyCashEntryModel.created_at <= until)
            if status is not None:
                stmt = stmt.where(PettyCashEntryModel.status == state_value(status))
            term = (search or "").strip()
            if term:
                stmt = stmt.where(
                    or_(
                        PettyCashEntryModel.user_name.icontains(term, autoescape=True),
                        PettyCashEntryModel.paid_to.icontains(term, autoescape=True),
                        PettyCashEntryModel.remarks.icontains(term, autoescape=True),
                    )
                )
            stmt = stmt.order_by(PettyCashEntryModel.created_at.desc(), PettyCashEntryModel.id)
            return [row.to_dto() for row in session.scalars(stmt)]

        return self._read("petty_cash_list", work)

    def apply_transition(
        self,
        entry_id: UUID,
        actor_role: ActorRole | str,
        proposed_status: PettyCashStatus | str,
        payload: TransitionPayload | None,
        *,
        expected_status: PettyCashStatus | str | None = None,
        actor_name: str | None = None,
    ) -> PettyCashEntry:
        role = state_value(actor_role)
        proposed = state_value(proposed_status)
        expected = state_value(expected_status) if expected_status is not None else None

        def work(session: Session) -> PettyCashEntry:
            model = session.get(PettyCashEntryModel, entry_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(entry_id))
            current = model.status
            if expected is not None and expected != current:
                raise StaleStateError(ENTITY_TYPE, str(entry_id), expected, current)

            decision = resolve_transition(
                PETTY_CASH_WORKFLOW,
                entity_type=ENTITY_TYPE,
                current_state=current,
                actor_role=role,
                proposed_state=proposed,
                payload=payload,
                entity_id=str(entry_id),
                current_values={"payment_ref": model.payment_ref},
            )
            result = session.execute(
                update(PettyCashEntryModel)
                .where(
                    PettyCashEntryModel.id == entry_id,
                    PettyCashEntryModel.status == current,
                    PettyCashEntryModel.version == model.version,
                )
                .values(
                    **dict(decision.updates),
                    status=decision.to_state,
                    version=PettyCashEntryModel.version + 1,
                    updated_at=self._clock.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                actual = session.scalar(
                    select(PettyCashEntryModel.status).where(PettyCashEntryModel.id == entry_id)
                )
                raise StaleStateError(ENTITY_TYPE, str(entry_id), expected or current, actual)
            session.refresh(model)
            return model.to_dto()

        log_extra = {
            "entry_id": str(entry_id),
            "actor_role": role,
            "actor_name": actor_name,
            "proposed_status": proposed,
        }
        try:
            entry = self._in_transaction("petty_cash_apply_transition", work)
        except SiteflowError as exc:
            logger.warning(
                "petty_cash_transition_rejected",
                extra={**log_extra, "error_code": exc.code, "reason": str(exc)},
            )
            raise
        logger.info("petty_cash_transition_applied", extra={**log_extra, "status": entry.status.value})
        self._publish(entry, ChangeEvent.UPDATE)
        return entry

    @staticmethod
    def total_amount(entries: Iterable[PettyCashEntry]) -> Decimal:
        return sum((entry.amount for entry in entries), Decimal("0"))

    def _publish(self, entry: PettyCashEntry, event: ChangeEvent) -> None:
        if self._feed is not None:
            self._feed.publish(
                ChangeNotice(
                    entity_type=ENTITY_TYPE,
                    entity_id=entry.id,
                    event=event,
                    status=entry.status.value,
                )
            )
