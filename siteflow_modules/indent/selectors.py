"""
Indent read-side queries.

Role inboxes, status and project filters, and the transition history.  Every
method returns DTOs; nothing here writes.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from siteflow_kernel.domain.workflow import state_value
from siteflow_kernel.selectors.base import BaseSelector
from siteflow_modules.indent.models import (
    ActorRole,
    IndentStatus,
    MaterialRequest,
    TransitionRecord,
)
from siteflow_modules.indent.orm import IndentTransitionModel, MaterialRequestModel
from siteflow_modules.indent.workflows import INDENT_WORKFLOW


def inbox_statuses(role: ActorRole | str) -> tuple[IndentStatus, ...]:
    """Statuses in which ``role`` has at least one transition to offer."""
    value = state_value(role)
    return tuple(
        status
        for status in IndentStatus
        if value in INDENT_WORKFLOW.roles_for(status.value)
    )


class IndentSelector(BaseSelector):
    """Read-only indent queries over a caller-owned session."""

    def get_model(self, request_id: UUID) -> MaterialRequestModel | None:
        return self.session.get(MaterialRequestModel, request_id)

    def get(self, request_id: UUID) -> MaterialRequest | None:
        model = self.get_model(request_id)
        return model.to_dto() if model is not None else None

    def list(
        self,
        *,
        statuses: Iterable[IndentStatus | str] | None = None,
        project_name: str | None = None,
        requested_by: str | None = None,
    ) -> list[MaterialRequest]:
        """Requests matching every given filter, newest first."""
        stmt = select(MaterialRequestModel)
        if statuses is not None:
            stmt = stmt.where(MaterialRequestModel.status.in_([state_value(s) for s in statuses]))
        if project_name is not None:
            stmt = stmt.where(MaterialRequestModel.project_name == project_name)
        if requested_by is not None:
            stmt = stmt.where(MaterialRequestModel.requested_by == requested_by)
        stmt = stmt.order_by(MaterialRequestModel.created_at.desc(), MaterialRequestModel.id)
        return [model.to_dto() for model in self.session.scalars(stmt)]

    def inbox(self, role: ActorRole | str, project_name: str | None = None) -> list[MaterialRequest]:
        """Requests waiting on ``role``."""
        return self.list(statuses=inbox_statuses(role), project_name=project_name)

    def status_counts(self, project_name: str | None = None) -> dict[IndentStatus, int]:
        stmt = select(MaterialRequestModel.status, func.count()).group_by(
            MaterialRequestModel.status
        )
        if project_name is not None:
            stmt = stmt.where(MaterialRequestModel.project_name == project_name)
        return {IndentStatus(status): count for status, count in self.session.execute(stmt)}

    def history(self, request_id: UUID) -> list[TransitionRecord]:
        stmt = (
            select(IndentTransitionModel)
            .where(IndentTransitionModel.request_id == request_id)
            .order_by(IndentTransitionModel.sequence)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def find_by_idempotency_key(self, request_id: UUID, key: str) -> IndentTransitionModel | None:
        stmt = select(IndentTransitionModel).where(
            IndentTransitionModel.request_id == request_id,
            IndentTransitionModel.idempotency_key == key,
        )
        return self.session.scalars(stmt).first()

    def current_status(self, request_id: UUID) -> str | None:
        return self.session.scalar(
            select(MaterialRequestModel.status).where(MaterialRequestModel.id == request_id)
        )
