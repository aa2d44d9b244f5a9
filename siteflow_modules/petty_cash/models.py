"""
Petty Cash Domain Models.

Site staff claim reimbursement for small cash spends; the PM vets the
claim and Finance pays it out.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from siteflow_kernel.domain.payloads import PayloadProblem, TransitionPayload
from siteflow_kernel.domain.values import to_decimal


class PettyCashStatus(str, Enum):
    PENDING_PM_APPROVAL = "Pending_PM_Approval"
    PENDING_FINANCE_DISBURSEMENT = "Pending_Finance_Disbursement"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class PettyCashClaim(TransitionPayload):
    """What a staff member submits."""
    user_id: str
    user_name: str
    amount: Decimal
    paid_to: str
    screenshot: str
    remarks: str = ""
    project_name: str = ""

    REQUIRED: ClassVar[tuple[str, ...]] = ("user_id", "user_name", "amount", "paid_to", "screenshot")

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, "PettyCashEntry", "amount"))

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        if self.amount is not None and (not self.amount.is_finite() or self.amount <= 0):
            return [PayloadProblem(("amount",), "amount must be greater than 0")]
        return []


@dataclass(frozen=True)
class PettyCashReview(TransitionPayload):
    """PM forwards a claim to Finance or rejects it."""
    pm_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("pm_comments",)


@dataclass(frozen=True)
class Disbursement(TransitionPayload):
    """Finance pays the claim out."""
    payment_ref: str
    finance_comments: str | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("payment_ref",)


@dataclass(frozen=True)
class FinanceRejection(TransitionPayload):
    finance_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("finance_comments",)


@dataclass(frozen=True)
class PettyCashEntry:
    id: UUID
    created_at: datetime
    user_id: str
    user_name: str
    project_name: str
    amount: Decimal
    paid_to: str
    remarks: str
    screenshot: str
    status: PettyCashStatus
    version: int
    pm_comments: str | None = None
    finance_comments: str | None = None
    payment_ref: str | None = None
