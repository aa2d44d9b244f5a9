"""
Indent Workflows.

The material indent state machine: every legal (from, to) edge, the roles
allowed to fire it, and the payload variant it accepts.  This table is the
single source of truth for indent status changes; the store consults it
through the transition engine before every write.
"""

from siteflow_kernel.domain.workflow import Guard, Transition, Workflow
from siteflow_kernel.logging_config import get_logger
from siteflow_modules.indent.models import ActorRole, IndentStatus
from siteflow_modules.indent.payloads import (
    Closure,
    DispatchNotice,
    GoodsReceipt,
    GRNCompletion,
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

logger = get_logger("modules.indent.workflows")

S = IndentStatus


def _roles(*roles: ActorRole) -> frozenset[str]:
    return frozenset(r.value for r in roles)


def _edge(
    src: IndentStatus,
    dst: IndentStatus,
    action: str,
    role: ActorRole,
    payload_type: type,
    guard: Guard | None = None,
) -> Transition:
    return Transition(
        from_state=src.value,
        to_state=dst.value,
        action=action,
        roles=_roles(role),
        payload_type=payload_type,
        guard=guard,
    )


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

RATES_ATTACHED = Guard(
    name="rates_attached",
    description="Every item carries a target rate",
)

ENOUGH_QUOTES = Guard(
    name="enough_quotes",
    description="At least the configured minimum number of vendor quotes",
)

PO_NOT_RAISED = Guard(
    name="po_not_raised",
    description="No purchase order number recorded yet",
)


FORWARD_CHAIN: tuple[IndentStatus, ...] = (
    S.RAISED_BY_SE,
    S.PM_REVIEW,
    S.QS_ANALYSIS,
    S.PROCUREMENT_QUOTING,
    S.OPS_APPROVAL,
    S.MD_FINAL_APPROVAL,
    S.FINANCE_PAYMENT_PENDING,
    S.PROCUREMENT_DISPATCH,
    S.GRN_PENDING,
    S.COMPLETED,
)

TERMINAL_STATES: tuple[IndentStatus, ...] = (S.COMPLETED, S.CLOSED, S.REJECTED_BY_PM)

WRITE_ONCE_FIELDS = frozenset({"po_number", "grn_details", "payment_ref"})


def _pm_edges() -> tuple[Transition, ...]:
    edges = []
    for src in (S.RAISED_BY_SE, S.PM_REVIEW):
        edges.extend([
            _edge(src, S.QS_ANALYSIS, "forward_to_qs", ActorRole.PM, PMDecision),
            _edge(src, S.APPROVED_BY_PM, "approve", ActorRole.PM, PMDecision),
            _edge(src, S.REJECTED_BY_PM, "reject", ActorRole.PM, PMDecision),
            _edge(src, S.RETURNED_TO_SE, "return_to_se", ActorRole.PM, PMDecision),
        ])
    return tuple(edges)


INDENT_WORKFLOW = Workflow(
    name="material_indent",
    description="Material indent approval lifecycle",
    initial_state=S.RAISED_BY_SE.value,
    states=tuple(s.value for s in IndentStatus),
    transitions=_pm_edges() + (
        _edge(S.RETURNED_TO_SE, S.PM_REVIEW, "resubmit", ActorRole.SITE_ENGINEER, Resubmission),
        _edge(
            S.QS_ANALYSIS, S.PROCUREMENT_QUOTING, "attach_rates",
            ActorRole.COSTING, QSAnalysis, guard=RATES_ATTACHED,
        ),
        _edge(
            S.PROCUREMENT_QUOTING, S.OPS_APPROVAL, "submit_quotes",
            ActorRole.PROCUREMENT, QuoteSubmission, guard=ENOUGH_QUOTES,
        ),
        _edge(
            S.PROCUREMENT_QUOTING, S.PM_REVIEW, "send_back_to_pm",
            ActorRole.PROCUREMENT, ProcurementReview,
        ),
        _edge(
            S.PROCUREMENT_QUOTING, S.RETURNED_TO_SE, "return_to_se",
            ActorRole.PROCUREMENT, ProcurementReview,
        ),
        _edge(
            S.APPROVED_BY_PM, S.PO_RAISED, "raise_po",
            ActorRole.PROCUREMENT, PORaise, guard=PO_NOT_RAISED,
        ),
        _edge(S.OPS_APPROVAL, S.MD_FINAL_APPROVAL, "ops_approve", ActorRole.OPS_HEAD, OpsDecision),
        _edge(S.OPS_APPROVAL, S.PM_REVIEW, "ops_return", ActorRole.OPS_HEAD, OpsDecision),
        _edge(
            S.MD_FINAL_APPROVAL, S.FINANCE_PAYMENT_PENDING, "md_approve",
            ActorRole.MD, MDDecision,
        ),
        _edge(S.MD_FINAL_APPROVAL, S.PM_REVIEW, "md_return", ActorRole.MD, MDDecision),
        _edge(
            S.FINANCE_PAYMENT_PENDING, S.PROCUREMENT_DISPATCH, "release_payment",
            ActorRole.FINANCE, PaymentRelease,
        ),
        _edge(
            S.PROCUREMENT_DISPATCH, S.GRN_PENDING, "dispatch",
            ActorRole.PROCUREMENT, DispatchNotice,
        ),
        _edge(
            S.GRN_PENDING, S.COMPLETED, "complete_grn",
            ActorRole.SITE_ENGINEER, GRNCompletion,
        ),
        _edge(S.PO_RAISED, S.GOODS_RECEIVED, "confirm_grn", ActorRole.SITE_ENGINEER, GoodsReceipt),
        _edge(S.GOODS_RECEIVED, S.CLOSED, "close", ActorRole.FINANCE, Closure),
    ),
    terminal_states=tuple(s.value for s in TERMINAL_STATES),
    write_once_fields=WRITE_ONCE_FIELDS,
)

logger.info(
    "indent_workflow_registered",
    extra={
        "workflow_name": INDENT_WORKFLOW.name,
        "state_count": len(INDENT_WORKFLOW.states),
        "transition_count": len(INDENT_WORKFLOW.transitions),
        "initial_state": INDENT_WORKFLOW.initial_state,
    },
)
