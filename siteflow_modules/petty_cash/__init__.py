"""
Petty Cash Module (``siteflow_modules.petty_cash``).

Reimbursement claims for small site spends: staff submit, the PM vets,
Finance disburses.  Shares the kernel transition engine and the
compare-and-swap write with the indent module.
"""

from siteflow_modules.petty_cash.models import (
    Disbursement,
    FinanceRejection,
    PettyCashClaim,
    PettyCashEntry,
    PettyCashReview,
    PettyCashStatus,
)
from siteflow_modules.petty_cash.service import PettyCashService
from siteflow_modules.petty_cash.workflows import PETTY_CASH_WORKFLOW

__all__ = [
    "Disbursement",
    "FinanceRejection",
    "PETTY_CASH_WORKFLOW",
    "PettyCashClaim",
    "PettyCashEntry",
    "PettyCashReview",
    "PettyCashService",
    "PettyCashStatus",
]
