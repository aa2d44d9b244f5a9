"""
Indent Store (``siteflow_modules.indent.service``).

Responsibility
--------------
The only write path for material indents.  Raises new indents, serves
reads, and applies workflow transitions: every transition is validated by
the transition engine against ``INDENT_WORKFLOW`` and then written with a
compare-and-swap UPDATE plus an append to the transition log, in one
transaction.

Architecture position
---------------------
**Modules layer** -- ``IndentStore`` extends the kernel
``TransactionalService`` (one transaction per operation, bounded retry) and
reads through ``IndentSelector``.

Invariants enforced
-------------------
* Status changes only along ``INDENT_WORKFLOW`` edges, by an allowed role,
  with the edge's payload variant complete.
* Compare-and-swap: the UPDATE matches on the status and version that were
  validated; zero matched rows means another writer got there first.
* Every committed change appends exactly one ``indent_transitions`` row.
* ``po_number``, ``grn_details`` and ``payment_ref`` are write-once.
* An idempotency key is applied at most once per request; replaying it
  returns the stored result.

Failure modes
-------------
Checked in this order:

* ``NotFoundError``            -- unknown request id.
* ``StaleStateError``          -- ``expected_status`` differs from the stored
  status, or the compare-and-swap matched nothing.
* ``TerminalStateError`` / ``IllegalTransitionError`` -- not an edge.
* ``ForbiddenTransitionError`` -- role not allowed on the edge.
* ``ValidationError``          -- payload wrong or incomplete.
* ``StorageError``             -- persistence failed after bounded retry.

Every failure rolls the transaction back; nothing is partially written.

Audit relevance
---------------
``indent_created``, ``indent_transition_applied``,
``indent_transition_replayed`` and ``indent_transition_rejected`` are logged
with request id, statuses, role and actor.  The transition log stores a
canonical payload snapshot and its SHA-256.

Usage::

    store = IndentStore(session_factory, config=IndentConfig(), change_feed=feed)
    request = store.create(
        IndentDraft(items=(RequestItem("Cement", 50, "Bags"),), urgency=Urgency.HIGH),
        requested_by="ravi",
    )
    store.apply_transition(
        request.id, ActorRole.PM, IndentStatus.APPROVED_BY_PM,
        PMDecision(pm_comments="ok"), expected_status=IndentStatus.RAISED_BY_SE,
    )
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session, sessionmaker

from siteflow_config.schema import IndentConfig
from siteflow_kernel.domain.clock import Clock
from siteflow_kernel.domain.payloads import TransitionPayload, is_blank
from siteflow_kernel.domain.workflow import state_value
from siteflow_kernel.domain.workflow_engine import TransitionDecision, resolve_transition
from siteflow_kernel.exceptions import (
    NotFoundError,
    SiteflowError,
    StaleStateError,
    ValidationError,
)
from siteflow_kernel.logging_config import LogContext, get_logger
from siteflow_kernel.services.base import TransactionalService
from siteflow_kernel.services.change_feed import ChangeEvent, ChangeFeed, ChangeNotice
from siteflow_kernel.services.retry import RetryPolicy
from siteflow_kernel.utils.hashing import hash_payload, snapshot
from siteflow_modules.indent.models import (
    ActorRole,
    IndentStatus,
    MaterialRequest,
    TransitionRecord,
)
from siteflow_modules.indent.orm import (
    IndentTransitionModel,
    MaterialRequestModel,
    RequestItemModel,
)
from siteflow_modules.indent.payloads import IndentDraft
from siteflow_modules.indent.selectors import IndentSelector
from siteflow_modules.indent.workflows import INDENT_WORKFLOW

logger = get_logger("modules.indent.service")

ENTITY_TYPE = "MaterialRequest"

# Record fields a transition may write directly as columns.
_COLUMN_FIELDS = frozenset({
    "notes",
    "procurement_comments",
    "market_analysis",
    "costing_comments",
    "ops_comments",
    "pm_comments",
    "md_comments",
    "po_number",
    "grn_details",
    "payment_ref",
    "quotes",
    "grn_photos",
    "vendor_bill_photo",
})


class IndentStore(TransactionalService):
    """
    Material indent store and transition write path.

    Contract:
        Each public method runs in its own transaction (see
        ``TransactionalService``).  Change notices are published only after
        commit.
    """

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
        self._config = config or IndentConfig()
        self._feed = change_feed

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, draft: IndentDraft, requested_by: str) -> MaterialRequest:
        """Raise a new indent in ``Raised_By_SE``."""
        self._validate_draft(draft, requested_by)
        project_name = (draft.project_name or "").strip() or self._config.default_project

        def work(session: Session) -> MaterialRequest:
            now = self._clock.now()
            request_id = uuid4()
            model = MaterialRequestModel(
                id=request_id,
                requested_by=requested_by.strip(),
                project_name=project_name,
                urgency=state_value(draft.urgency),
                status=IndentStatus.RAISED_BY_SE.value,
                version=1,
                notes=(draft.notes or "").strip() or None,
                deadline=draft.deadline,
                quotes=[],
                grn_photos=[],
                created_by=requested_by.strip(),
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            session.execute(
                insert(RequestItemModel),
                [
                    RequestItemModel.values_from_dto(item, request_id, position)
                    for position, item in enumerate(draft.items)
                ],
            )
            payload_snapshot = snapshot(draft)
            session.add(
                IndentTransitionModel(
                    request_id=request_id,
                    sequence=1,
                    from_status=None,
                    to_status=IndentStatus.RAISED_BY_SE.value,
                    action="raise",
                    actor_role=ActorRole.SITE_ENGINEER.value,
                    actor_name=requested_by.strip(),
                    payload=payload_snapshot,
                    payload_hash=hash_payload(payload_snapshot),
                    occurred_at=now,
                )
            )
            session.flush()
            return self._reload(session, request_id)

        request = self._in_transaction("indent_create", work)
        logger.info(
            "indent_created",
            extra={
                "request_id": str(request.id),
                "project_name": request.project_name,
                "requested_by": request.requested_by,
                "urgency": request.urgency.value,
                "item_count": len(request.items),
            },
        )
        self._publish(request, ChangeEvent.INSERT)
        return request

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, request_id: UUID) -> MaterialRequest:
        def work(session: Session) -> MaterialRequest:
            request = IndentSelector(session).get(request_id)
            if request is None:
                raise NotFoundError(ENTITY_TYPE, str(request_id))
            return request

        return self._read("indent_get", work)

    def list(
        self,
        predicate: Callable[[MaterialRequest], bool] | None = None,
        *,
        status: IndentStatus | str | None = None,
        project_name: str | None = None,
    ) -> list[MaterialRequest]:
        """Requests filtered by status, project and an optional predicate, newest first."""
        def work(session: Session) -> list[MaterialRequest]:
            return IndentSelector(session).list(
                statuses=[status] if status is not None else None,
                project_name=project_name,
            )

        requests = self._read("indent_list", work)
        if predicate is not None:
            requests = [r for r in requests if predicate(r)]
        return requests

    def inbox(self, role: ActorRole | str, project_name: str | None = None) -> list[MaterialRequest]:
        return self._read(
            "indent_inbox", lambda s: IndentSelector(s).inbox(role, project_name=project_name)
        )

    def status_counts(self, project_name: str | None = None) -> dict[IndentStatus, int]:
        """Number of requests per status; statuses with no requests are omitted."""
        return self._read(
            "indent_status_counts",
            lambda s: IndentSelector(s).status_counts(project_name=project_name),
        )

    def history(self, request_id: UUID) -> list[TransitionRecord]:
        def work(session: Session) -> list[TransitionRecord]:
            selector = IndentSelector(session)
            if selector.current_status(request_id) is None:
                raise NotFoundError(ENTITY_TYPE, str(request_id))
            return selector.history(request_id)

        return self._read("indent_history", work)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply_transition(
        self,
        request_id: UUID,
        actor_role: ActorRole | str,
        proposed_status: IndentStatus | str,
        payload: TransitionPayload | None,
        *,
        expected_status: IndentStatus | str | None = None,
        actor_name: str | None = None,
        idempotency_key: str | None = None,
    ) -> MaterialRequest:
        """
        Move a request to ``proposed_status``.

        ``expected_status`` is the status the actor saw; when given, a
        mismatch fails with ``StaleStateError`` before anything else is
        checked.  ``idempotency_key`` makes a retried call return the result
        of the first successful one instead of failing.
        """
        role = state_value(actor_role)
        proposed = state_value(proposed_status)
        expected = state_value(expected_status) if expected_status is not None else None
        replayed = False

        def work(session: Session) -> MaterialRequest:
            nonlocal replayed
            selector = IndentSelector(session)
            model = selector.get_model(request_id)
            if model is None:
                raise NotFoundError(ENTITY_TYPE, str(request_id))

            if idempotency_key is not None:
                prior = self._replay(selector, request_id, idempotency_key, proposed, payload)
                if prior is not None:
                    replayed = True
                    return prior

            current = model.status
            if expected is not None and expected != current:
                raise StaleStateError(ENTITY_TYPE, str(request_id), expected, current)

            decision = resolve_transition(
                INDENT_WORKFLOW,
                entity_type=ENTITY_TYPE,
                current_state=current,
                actor_role=role,
                proposed_state=proposed,
                payload=payload,
                entity_id=str(request_id),
                current_values=_current_values(model),
                context={"min_quotes": self._config.min_quotes},
            )

            read_version = model.version
            if not self._compare_and_swap(session, model, decision):
                if idempotency_key is not None:
                    prior = self._replay(selector, request_id, idempotency_key, proposed, payload)
                    if prior is not None:
                        replayed = True
                        return prior
                raise StaleStateError(
                    ENTITY_TYPE,
                    str(request_id),
                    expected or current,
                    selector.current_status(request_id),
                )

            if "items" in decision.updates:
                self._replace_items(session, request_id, decision.updates["items"])

            payload_snapshot = snapshot(payload) if payload is not None else {}
            session.add(
                IndentTransitionModel(
                    request_id=request_id,
                    sequence=read_version + 1,
                    from_status=decision.from_state,
                    to_status=decision.to_state,
                    action=decision.action,
                    actor_role=decision.actor_role,
                    actor_name=actor_name,
                    payload=payload_snapshot,
                    payload_hash=hash_payload(payload_snapshot),
                    idempotency_key=idempotency_key,
                    occurred_at=self._clock.now(),
                )
            )
            session.flush()
            return self._reload(session, request_id)

        log_extra = {
            "request_id": str(request_id),
            "actor_role": role,
            "actor_name": actor_name,
            "proposed_status": proposed,
            "expected_status": expected,
            "idempotency_key": idempotency_key,
        }
        with LogContext.bind(actor_role=role, actor_name=actor_name):
            try:
                request = self._in_transaction("indent_apply_transition", work)
            except SiteflowError as exc:
                logger.warning(
                    "indent_transition_rejected",
                    extra={
                        **log_extra,
                        "error_code": exc.code,
                        "reason": str(exc),
                        "guard": getattr(exc, "guard", None),
                    },
                )
                raise

            if replayed:
                logger.info("indent_transition_replayed", extra=log_extra)
                return request

            logger.info(
                "indent_transition_applied",
                extra={**log_extra, "status": request.status.value, "version": request.version},
            )
        self._publish(request, ChangeEvent.UPDATE)
        return request

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_draft(self, draft: IndentDraft, requested_by: str) -> None:
        if not isinstance(draft, IndentDraft):
            raise ValidationError(
                ENTITY_TYPE,
                fields=("draft",),
                reason=f"create requires IndentDraft, got {type(draft).__name__}",
            )
        missing = list(draft.missing_fields())
        if is_blank(requested_by):
            missing.append("requested_by")
        if missing:
            raise ValidationError(
                ENTITY_TYPE, fields=missing, reason=f"create requires {', '.join(missing)}"
            )
        problems = draft.problems({})
        if problems:
            fields: list[str] = []
            for problem in problems:
                fields.extend(problem.fields)
            raise ValidationError(
                ENTITY_TYPE, fields=fields, reason="; ".join(p.reason for p in problems)
            )

    def _replay(
        self,
        selector: IndentSelector,
        request_id: UUID,
        key: str,
        proposed: str,
        payload: TransitionPayload | None,
    ) -> MaterialRequest | None:
        prior = selector.find_by_idempotency_key(request_id, key)
        if prior is None:
            return None
        payload_hash = hash_payload(snapshot(payload) if payload is not None else {})
        if prior.to_status != proposed or prior.payload_hash != payload_hash:
            raise ValidationError(
                ENTITY_TYPE,
                fields=("idempotency_key",),
                reason=f"idempotency key {key!r} was already used for a different transition",
                entity_id=str(request_id),
            )
        return self._reload(selector.session, request_id)

    def _compare_and_swap(
        self,
        session: Session,
        model: MaterialRequestModel,
        decision: TransitionDecision,
    ) -> bool:
        values: dict[str, Any] = {
            name: list(value) if isinstance(value, tuple) else value
            for name, value in decision.updates.items()
            if name in _COLUMN_FIELDS
        }
        values["status"] = decision.to_state
        values["version"] = MaterialRequestModel.version + 1
        values["updated_at"] = self._clock.now()

        result = session.execute(
            update(MaterialRequestModel)
            .where(
                MaterialRequestModel.id == model.id,
                MaterialRequestModel.status == decision.from_state,
                MaterialRequestModel.version == model.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _replace_items(self, session: Session, request_id: UUID, items) -> None:
        session.execute(
            delete(RequestItemModel)
            .where(RequestItemModel.request_id == request_id)
            .execution_options(synchronize_session=False)
        )
        session.execute(
            insert(RequestItemModel),
            [
                RequestItemModel.values_from_dto(item, request_id, position)
                for position, item in enumerate(items)
            ],
        )

    def _reload(self, session: Session, request_id: UUID) -> MaterialRequest:
        stmt = (
            select(MaterialRequestModel)
            .where(MaterialRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        )
        return session.scalars(stmt).one().to_dto()

    def _publish(self, request: MaterialRequest, event: ChangeEvent) -> None:
        if self._feed is None:
            return
        self._feed.publish(
            ChangeNotice(
                entity_type=ENTITY_TYPE,
                entity_id=request.id,
                event=event,
                status=request.status.value,
            )
        )


def _current_values(model: MaterialRequestModel) -> dict[str, Any]:
    return {name: getattr(model, name) for name in INDENT_WORKFLOW.write_once_fields}
