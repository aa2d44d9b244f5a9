"""
Module: siteflow_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the query side of each module: role inboxes, status and project
    filters, history listings.
Architecture position: Kernel > Selectors.  May import from db/.  MUST NOT
    import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Non-goals:
        BaseSelector defines no queries; subclasses do.
    """

    def __init__(self, session: Session):
        self.session = session
