"""
Material Indent Module (``siteflow_modules.indent``).

Responsibility
--------------
The procurement request lifecycle for construction sites: a Site Engineer
raises an indent, the PM vets it, QS attaches target rates, Procurement
gathers quotes, Ops and the MD approve, Finance pays, Procurement
dispatches and the site confirms receipt.

Architecture position
---------------------
**Modules layer** -- declarative workflow and payload variants, ORM models,
a selector for reads, ``IndentStore`` as the single write path, and the
pure step tracker used by presentation adapters.
"""

from siteflow_modules.indent.models import (
    ActorRole,
    IndentStatus,
    MaterialRequest,
    RequestItem,
    TransitionRecord,
    Urgency,
)
from siteflow_modules.indent.payloads import (
    Closure,
    DispatchNotice,
    GoodsReceipt,
    GRNCompletion,
    IndentDraft,
    MDDecision,
    OpsDecision,
    PaymentRelease,
    PMDecision,
    PORaise,
    ProcurementReview,
    QSAnalysis,
    QuoteSubmission,
    Resubmission,
)
from siteflow_modules.indent.service import IndentStore
from siteflow_modules.indent.tracker import TrackerView, render_tracker
from siteflow_modules.indent.workflows import INDENT_WORKFLOW

__all__ = [
    "ActorRole",
    "Closure",
    "DispatchNotice",
    "GoodsReceipt",
    "GRNCompletion",
    "INDENT_WORKFLOW",
    "IndentDraft",
    "IndentStatus",
    "IndentStore",
    "MDDecision",
    "MaterialRequest",
    "OpsDecision",
    "PMDecision",
    "PORaise",
    "PaymentRelease",
    "ProcurementReview",
    "QSAnalysis",
    "QuoteSubmission",
    "RequestItem",
    "Resubmission",
    "TrackerView",
    "TransitionRecord",
    "Urgency",
    "render_tracker",
]
