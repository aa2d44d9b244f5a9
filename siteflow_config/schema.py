"""
Configuration schema (``siteflow_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every runtime setting.  Parsing from YAML
lives in ``siteflow_config.loader``; this module only defines shapes,
defaults and value checks.

Architecture position
---------------------
**Config layer** -- sits above ``siteflow_kernel`` (it reuses the kernel's
``RetryPolicy``) and below ``siteflow_modules``.  The kernel never imports
from here.

Invariants enforced
-------------------
* Every config object is immutable once built.
* Value checks run at construction: a config that exists is valid.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from siteflow_kernel.services.retry import RetryPolicy

RetryConfig = RetryPolicy


@dataclass(frozen=True)
class IndentConfig:
    """Material indent settings."""
    min_quotes: int = 3
    default_project: str = "Unknown Project"

    def __post_init__(self) -> None:
        if self.min_quotes < 0:
            raise ValueError("indent.min_quotes must not be negative")
        if not self.default_project.strip():
            raise ValueError("indent.default_project must not be blank")


@dataclass(frozen=True)
class DPRConfig:
    """Daily progress report settings."""
    max_photos: int = 5

    def __post_init__(self) -> None:
        if self.max_photos < 0:
            raise ValueError("dpr.max_photos must not be negative")


@dataclass(frozen=True)
class SiteflowConfig:
    """Root configuration object."""
    database_url: str = "sqlite:///./siteflow.db"
    echo_sql: bool = False
    blob_root: str = "./uploads"
    retry: RetryConfig = field(default_factory=RetryConfig)
    indent: IndentConfig = field(default_factory=IndentConfig)
    dpr: DPRConfig = field(default_factory=DPRConfig)

    @classmethod
    def with_defaults(cls) -> SiteflowConfig:
        return cls()
