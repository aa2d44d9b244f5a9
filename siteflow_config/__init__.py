"""
siteflow_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the one way services and scripts obtain
    settings.  It reads the YAML file named by ``SITEFLOW_CONFIG`` (or the
    bundled ``defaults.yaml``), applies the ``SITEFLOW_DATABASE_URL``
    override, and returns a frozen ``SiteflowConfig``.

Architecture position:
    Configuration -- above ``siteflow_kernel``, below ``siteflow_modules``.
    The kernel MUST NEVER import from ``siteflow_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful call emits a ``siteflow_config_loaded`` log entry
    naming the source file and the effective settings (the database URL is
    logged without credentials).
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

from sqlalchemy.engine.url import make_url

from siteflow_config.loader import load_config, parse_config
from siteflow_config.schema import DPRConfig, IndentConfig, RetryConfig, SiteflowConfig
from siteflow_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "SITEFLOW_CONFIG"
DATABASE_URL_ENV_VAR = "SITEFLOW_DATABASE_URL"


def get_active_config(path: str | Path | None = None) -> SiteflowConfig:
    """Load the effective configuration.

    Precedence: explicit ``path``, then ``$SITEFLOW_CONFIG``, then the
    bundled defaults.  ``$SITEFLOW_DATABASE_URL`` always wins for the
    database URL.
    """
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    config = load_config(source)

    override = os.environ.get(DATABASE_URL_ENV_VAR)
    if override:
        config = dataclasses.replace(config, database_url=override)

    logger.info(
        "siteflow_config_loaded",
        extra={
            "source": str(source),
            "database_url": make_url(config.database_url).render_as_string(hide_password=True),
            "database_url_overridden": bool(override),
            "min_quotes": config.indent.min_quotes,
            "max_dpr_photos": config.dpr.max_photos,
            "retry_max_attempts": config.retry.max_attempts,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "load_config",
    "parse_config",
    "SiteflowConfig",
    "RetryConfig",
    "IndentConfig",
    "DPRConfig",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
]
