"""
Indent Domain Models.

The nouns of the material indent workflow: the request, its items, the
statuses it moves through, the roles that move it, and the audit trail of
every move.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from siteflow_kernel.domain.payloads import PayloadProblem, is_blank
from siteflow_kernel.domain.values import to_decimal
from siteflow_modules.roles import ActorRole

__all__ = [
    "ActorRole",
    "IndentStatus",
    "MaterialRequest",
    "RequestItem",
    "TransitionRecord",
    "Urgency",
]


class IndentStatus(str, Enum):
    """Indent lifecycle states, forward chain first."""
    RAISED_BY_SE = "Raised_By_SE"
    PM_REVIEW = "PM_Review"
    QS_ANALYSIS = "QS_Analysis"
    PROCUREMENT_QUOTING = "Procurement_Quoting"
    OPS_APPROVAL = "Ops_Approval"
    MD_FINAL_APPROVAL = "MD_Final_Approval"
    FINANCE_PAYMENT_PENDING = "Finance_Payment_Pending"
    PROCUREMENT_DISPATCH = "Procurement_Dispatch"
    GRN_PENDING = "GRN_Pending"
    COMPLETED = "Completed"
    # side states
    RETURNED_TO_SE = "Returned_To_SE"
    REJECTED_BY_PM = "Rejected_By_PM"
    APPROVED_BY_PM = "Approved_By_PM"
    PO_RAISED = "PO_Raised"
    GOODS_RECEIVED = "Goods_Received"
    CLOSED = "Closed"


class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class RequestItem:
    """One material line on an indent."""
    material: str
    quantity: Decimal
    unit: str
    target_rate: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "RequestItem", "quantity"))
        object.__setattr__(
            self, "target_rate", to_decimal(self.target_rate, "RequestItem", "target_rate")
        )

    def problems(self, index: int, *, require_rate: bool = False) -> list[PayloadProblem]:
        prefix = f"items[{index}]"
        found: list[PayloadProblem] = []
        if is_blank(self.material):
            found.append(PayloadProblem((f"{prefix}.material",), f"{prefix} has no material"))
        if self.quantity is None or not self.quantity.is_finite() or self.quantity <= 0:
            found.append(
                PayloadProblem((f"{prefix}.quantity",), f"{prefix} quantity must be greater than 0")
            )
        if self.target_rate is None:
            if require_rate:
                found.append(
                    PayloadProblem((f"{prefix}.target_rate",), f"{prefix} has no target rate")
                )
        elif not self.target_rate.is_finite() or self.target_rate < 0:
            found.append(
                PayloadProblem((f"{prefix}.target_rate",), f"{prefix} target rate must not be negative")
            )
        return found


@dataclass(frozen=True)
class MaterialRequest:
    """A material indent as stored."""
    id: UUID
    created_at: datetime
    requested_by: str
    project_name: str
    items: tuple[RequestItem, ...]
    urgency: Urgency
    status: IndentStatus
    version: int
    notes: str | None = None
    procurement_comments: str | None = None
    market_analysis: str | None = None
    costing_comments: str | None = None
    ops_comments: str | None = None
    pm_comments: str | None = None
    md_comments: str | None = None
    po_number: str | None = None
    grn_details: str | None = None
    payment_ref: str | None = None
    quotes: tuple[str, ...] = ()
    grn_photos: tuple[str, ...] = ()
    vendor_bill_photo: str | None = None
    deadline: date | None = None
    updated_at: datetime | None = None

    @property
    def total_target_value(self) -> Decimal:
        """Sum of quantity x target rate over items that have a rate."""
        return sum(
            (item.quantity * item.target_rate for item in self.items if item.target_rate is not None),
            Decimal("0"),
        )


@dataclass(frozen=True)
class TransitionRecord:
    """One entry of a request's append-only audit trail."""
    id: UUID
    request_id: UUID
    sequence: int
    from_status: IndentStatus | None
    to_status: IndentStatus
    action: str
    actor_role: ActorRole
    actor_name: str | None
    payload: dict = field(default_factory=dict)
    payload_hash: str = ""
    idempotency_key: str | None = None
    occurred_at: datetime | None = None
