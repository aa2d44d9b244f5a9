"""
Siteflow Modules.

Domain modules built on the Siteflow kernel.  Each module contains:
- Domain models and payload variants (the nouns)
- Workflows (state machines over the kernel transition engine)
- ORM persistence models
- A service facade owning the transaction boundary

Modules:
- Indent: material indent approval, SE to PM to QS to Procurement to Ops,
  MD, Finance and GRN
- Petty cash: small-spend reimbursement claims
- DPR: daily progress reports
- Tasks: each user's daily office to-do board
"""

from siteflow_modules import dpr, indent, petty_cash, tasks
from siteflow_modules.roles import ActorRole

__all__ = [
    "ActorRole",
    "dpr",
    "indent",
    "petty_cash",
    "tasks",
]
