"""
Indent transition payloads.

One frozen dataclass per transition variant.  Each carries exactly the
fields its acting role writes, so a payload can never touch another role's
annotation.  Field names match the ``MaterialRequest`` fields they write.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar

from siteflow_kernel.domain.payloads import PayloadProblem, TransitionPayload
from siteflow_modules.indent.models import RequestItem, Urgency


def _item_problems(items: tuple[RequestItem, ...], *, require_rate: bool) -> list[PayloadProblem]:
    found: list[PayloadProblem] = []
    for index, item in enumerate(items):
        if not isinstance(item, RequestItem):
            found.append(PayloadProblem((f"items[{index}]",), f"items[{index}] is not a RequestItem"))
            continue
        found.extend(item.problems(index, require_rate=require_rate))
    return found


@dataclass(frozen=True)
class IndentDraft(TransitionPayload):
    """What a site engineer submits to raise an indent.

    A blank ``project_name`` falls back to the configured default project.
    """
    items: tuple[RequestItem, ...]
    urgency: Urgency
    project_name: str = ""
    notes: str | None = None
    deadline: date | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("items", "urgency")

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        if self.urgency is not None and not isinstance(self.urgency, Urgency):
            try:
                object.__setattr__(self, "urgency", Urgency(self.urgency))
            except ValueError:
                pass  # reported by problems()

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        found = _item_problems(self.items, require_rate=False)
        if not isinstance(self.urgency, Urgency):
            found.append(PayloadProblem(("urgency",), f"unknown urgency {self.urgency!r}"))
        return found


@dataclass(frozen=True)
class PMDecision(TransitionPayload):
    """PM forwards, approves, rejects or returns an indent."""
    pm_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("pm_comments",)


@dataclass(frozen=True)
class Resubmission(TransitionPayload):
    """Site engineer answers a return with fresh notes."""
    notes: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("notes",)


@dataclass(frozen=True)
class QSAnalysis(TransitionPayload):
    """Costing attaches target rates and the market analysis."""
    items: tuple[RequestItem, ...]
    market_analysis: str
    costing_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("items", "market_analysis", "costing_comments")

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        return _item_problems(self.items, require_rate=True)


@dataclass(frozen=True)
class QuoteSubmission(TransitionPayload):
    """Procurement attaches vendor quotes for Ops to choose from."""
    quotes: tuple[str, ...]
    procurement_comments: str | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("quotes",)

    def __post_init__(self) -> None:
        object.__setattr__(self, "quotes", tuple(self.quotes))

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        minimum = int(context.get("min_quotes", 0))
        usable = [q for q in self.quotes if isinstance(q, str) and q.strip()]
        if len(usable) < minimum:
            return [
                PayloadProblem(
                    ("quotes",),
                    f"at least {minimum} quotes are required, got {len(usable)}",
                )
            ]
        return []


@dataclass(frozen=True)
class ProcurementReview(TransitionPayload):
    """Procurement sends an indent back to the PM or the site engineer."""
    procurement_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("procurement_comments",)


@dataclass(frozen=True)
class PORaise(TransitionPayload):
    po_number: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("po_number",)


@dataclass(frozen=True)
class OpsDecision(TransitionPayload):
    ops_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("ops_comments",)


@dataclass(frozen=True)
class MDDecision(TransitionPayload):
    md_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("md_comments",)


@dataclass(frozen=True)
class PaymentRelease(TransitionPayload):
    payment_ref: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("payment_ref",)


@dataclass(frozen=True)
class DispatchNotice(TransitionPayload):
    procurement_comments: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("procurement_comments",)


@dataclass(frozen=True)
class GoodsReceipt(TransitionPayload):
    """Site engineer confirms delivery against the vendor invoice."""
    grn_details: str
    grn_photos: tuple[str, ...] = ()
    vendor_bill_photo: str | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("grn_details",)

    def __post_init__(self) -> None:
        object.__setattr__(self, "grn_photos", tuple(self.grn_photos))


@dataclass(frozen=True)
class GRNCompletion(TransitionPayload):
    """Site engineer completes the GRN on a dispatched indent.

    Completion needs the invoice number, at least one signed GRN photo and
    the original vendor bill photo.
    """
    grn_details: str
    grn_photos: tuple[str, ...]
    vendor_bill_photo: str

    REQUIRED: ClassVar[tuple[str, ...]] = ("grn_details", "grn_photos", "vendor_bill_photo")

    def __post_init__(self) -> None:
        object.__setattr__(self, "grn_photos", tuple(self.grn_photos or ()))

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        return [
            PayloadProblem((f"grn_photos[{index}]",), f"grn_photos[{index}] is blank")
            for index, ref in enumerate(self.grn_photos)
            if not isinstance(ref, str) or not ref.strip()
        ]


@dataclass(frozen=True)
class Closure(TransitionPayload):
    """Finance closes a received indent; carries nothing."""
