"""Dashboard roles shared by every workflow module."""

from enum import Enum


class ActorRole(str, Enum):
    """Who is acting; each role sees its own inbox."""
    SITE_ENGINEER = "se"
    PM = "pm"
    COSTING = "costing"  # QS
    PROCUREMENT = "procurement"
    OPS_HEAD = "ops"
    MD = "md"
    FINANCE = "finance"
