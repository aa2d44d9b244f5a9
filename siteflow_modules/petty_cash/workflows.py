"""
Petty Cash Workflows.

Claim lifecycle: PM vets, Finance disburses; either may reject.
"""

from siteflow_kernel.domain.workflow import Transition, Workflow
from siteflow_kernel.logging_config import get_logger
from siteflow_modules.petty_cash.models import (
    Disbursement,
    FinanceRejection,
    PettyCashReview,
    PettyCashStatus,
)
from siteflow_modules.roles import ActorRole

logger = get_logger("modules.petty_cash.workflows")

P = PettyCashStatus

PETTY_CASH_WORKFLOW = Workflow(
    name="petty_cash",
    description="Petty-cash reimbursement lifecycle",
    initial_state=P.PENDING_PM_APPROVAL.value,
    states=tuple(s.value for s in PettyCashStatus),
    transitions=(
        Transition(
            P.PENDING_PM_APPROVAL.value,
            P.PENDING_FINANCE_DISBURSEMENT.value,
            action="pm_approve",
            roles=frozenset({ActorRole.PM.value}),
            payload_type=PettyCashReview,
        ),
        Transition(
            P.PENDING_PM_APPROVAL.value,
            P.REJECTED.value,
            action="pm_reject",
            roles=frozenset({ActorRole.PM.value}),
            payload_type=PettyCashReview,
        ),
        Transition(
            P.PENDING_FINANCE_DISBURSEMENT.value,
            P.COMPLETED.value,
            action="disburse",
            roles=frozenset({ActorRole.FINANCE.value}),
            payload_type=Disbursement,
        ),
        Transition(
            P.PENDING_FINANCE_DISBURSEMENT.value,
            P.REJECTED.value,
            action="finance_reject",
            roles=frozenset({ActorRole.FINANCE.value}),
            payload_type=FinanceRejection,
        ),
    ),
    terminal_states=(P.COMPLETED.value, P.REJECTED.value),
    write_once_fields=frozenset({"payment_ref"}),
)

logger.info(
    "petty_cash_workflow_registered",
    extra={
        "workflow_name": PETTY_CASH_WORKFLOW.name,
        "state_count": len(PETTY_CASH_WORKFLOW.states),
        "transition_count": len(PETTY_CASH_WORKFLOW.transitions),
    },
)
