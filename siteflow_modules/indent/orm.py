"""
SQLAlchemy ORM persistence models for the Indent module.

Responsibility
--------------
Database-backed persistence for material indents: the request row, its
item lines, and the append-only transition log.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``IndentStore`` and
``IndentSelector``.  ``MaterialRequestModel`` inherits ``TrackedBase``;
items and transition rows inherit ``Base``.

Invariants enforced
-------------------
* Quantities and target rates are ``Decimal`` (Numeric(18, 4)), never float.
* Enum fields are stored as their string values.
* ``(request_id, sequence)`` is unique in ``indent_transitions``: two writers
  can never both append the same step.
* ``(request_id, idempotency_key)`` is unique, so a transition key is
  applied at most once per request.
* Status and annotation columns are only ever written by the store's
  compare-and-swap UPDATE; the write guards reject ORM-flush changes.

Audit relevance
---------------
``IndentTransitionModel`` is the audit trail: every status change, who made
it in which role, and a canonical snapshot of the payload they attached.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from siteflow_kernel.db.base import Base, TrackedBase, UTCDateTime
from siteflow_kernel.db.guards import column_change_guard, declare_write_guards, refuse

# ---------------------------------------------------------------------------
# MaterialRequestModel
# ---------------------------------------------------------------------------


class MaterialRequestModel(TrackedBase):
    """
    A material indent.

    Maps to the ``MaterialRequest`` DTO in ``siteflow_modules.indent.models``.
    """

    __tablename__ = "material_requests"

    __table_args__ = (
        Index("idx_material_request_status", "status"),
        Index("idx_material_request_project", "project_name"),
        Index("idx_material_request_requested_by", "requested_by"),
    )

    requested_by: Mapped[str] = mapped_column(String(200), nullable=False)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    procurement_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    market_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    costing_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    ops_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    pm_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    md_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    po_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    grn_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quotes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    grn_photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    vendor_bill_photo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["RequestItemModel"]] = relationship(
        "RequestItemModel",
        back_populates="request",
        order_by="RequestItemModel.position",
        lazy="selectin",
    )

    def to_dto(self):
        from siteflow_modules.indent.models import IndentStatus, MaterialRequest, Urgency

        return MaterialRequest(
            id=self.id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            requested_by=self.requested_by,
            project_name=self.project_name,
            items=tuple(item.to_dto() for item in self.items),
            urgency=Urgency(self.urgency),
            status=IndentStatus(self.status),
            version=self.version,
            notes=self.notes,
            procurement_comments=self.procurement_comments,
            market_analysis=self.market_analysis,
            costing_comments=self.costing_comments,
            ops_comments=self.ops_comments,
            pm_comments=self.pm_comments,
            md_comments=self.md_comments,
            po_number=self.po_number,
            grn_details=self.grn_details,
            payment_ref=self.payment_ref,
            quotes=tuple(self.quotes or ()),
            grn_photos=tuple(self.grn_photos or ()),
            vendor_bill_photo=self.vendor_bill_photo,
            deadline=self.deadline,
        )

    def __repr__(self) -> str:
        return f"<MaterialRequestModel {self.id} {self.project_name} [{self.status}]>"


# ---------------------------------------------------------------------------
# RequestItemModel
# ---------------------------------------------------------------------------


class RequestItemModel(Base):
    """One material line; ``position`` preserves the order the SE entered."""

    __tablename__ = "material_request_items"

    __table_args__ = (
        UniqueConstraint("request_id", "position", name="uq_request_item_position"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("material_requests.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    material: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    target_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    request: Mapped["MaterialRequestModel"] = relationship(
        "MaterialRequestModel", back_populates="items"
    )

    def to_dto(self):
        from siteflow_modules.indent.models import RequestItem

        return RequestItem(
            material=self.material,
            quantity=self.quantity,
            unit=self.unit,
            target_rate=self.target_rate,
        )

    @classmethod
    def values_from_dto(cls, dto, request_id: UUID, position: int) -> dict:
        return {
            "request_id": request_id,
            "position": position,
            "material": dto.material.strip(),
            "quantity": dto.quantity,
            "unit": dto.unit.strip(),
            "target_rate": dto.target_rate,
        }


# ---------------------------------------------------------------------------
# IndentTransitionModel
# ---------------------------------------------------------------------------


class IndentTransitionModel(Base):
    """
    One step of a request's audit trail.

    ``sequence`` equals the request's ``version`` after the step; the
    creation step has sequence 1 and no ``from_status``.
    """

    __tablename__ = "indent_transitions"

    __table_args__ = (
        UniqueConstraint("request_id", "sequence", name="uq_indent_transition_sequence"),
        UniqueConstraint("request_id", "idempotency_key", name="uq_indent_transition_key"),
        Index("idx_indent_transition_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("material_requests.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(30), nullable=False)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def to_dto(self):
        from siteflow_modules.indent.models import ActorRole, IndentStatus, TransitionRecord

        return TransitionRecord(
            id=self.id,
            request_id=self.request_id,
            sequence=self.sequence,
            from_status=IndentStatus(self.from_status) if self.from_status else None,
            to_status=IndentStatus(self.to_status),
            action=self.action,
            actor_role=ActorRole(self.actor_role),
            actor_name=self.actor_name,
            payload=dict(self.payload or {}),
            payload_hash=self.payload_hash,
            idempotency_key=self.idempotency_key,
            occurred_at=self.occurred_at,
        )

    def __repr__(self) -> str:
        return (
            f"<IndentTransitionModel {self.request_id} #{self.sequence} "
            f"{self.from_status} -> {self.to_status}>"
        )


declare_write_guards(
    MaterialRequestModel,
    before_update=column_change_guard("MaterialRequest", "IndentStore.apply_transition"),
    before_delete=refuse("MaterialRequest", "DELETE", "indents are never deleted"),
)
declare_write_guards(
    RequestItemModel,
    before_update=column_change_guard("RequestItem", "the costing analysis transition"),
    before_delete=refuse("RequestItem", "DELETE", "items are never deleted directly"),
)
declare_write_guards(
    IndentTransitionModel,
    before_update=refuse("IndentTransition", "UPDATE", "the transition log is append-only"),
    before_delete=refuse("IndentTransition", "DELETE", "the transition log is append-only"),
)
