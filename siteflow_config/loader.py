"""
Configuration Loader (``siteflow_config.loader``).

Responsibility
--------------
Load a YAML file and parse it into ``SiteflowConfig``.  Runtime callers go
through ``siteflow_config.get_active_config()``; this module is the parsing
half of that call.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError`` naming it.
* Out-of-range value  -> ``ValueError`` from the schema's checks.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

from siteflow_config.schema import DPRConfig, IndentConfig, RetryConfig, SiteflowConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    An empty file yields an empty dict.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _check_keys(section: str, data: dict[str, Any], cls: type) -> None:
    allowed = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        label = f"section '{section}'" if section else "top level"
        raise ValueError(f"Unknown configuration key(s) in {label}: {', '.join(unknown)}")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return value


def parse_retry(data: dict[str, Any]) -> RetryConfig:
    _check_keys("retry", data, RetryConfig)
    return RetryConfig(
        max_attempts=int(data.get("max_attempts", 3)),
        backoff_seconds=float(data.get("backoff_seconds", 0.05)),
    )


def parse_indent(data: dict[str, Any]) -> IndentConfig:
    _check_keys("indent", data, IndentConfig)
    return IndentConfig(
        min_quotes=int(data.get("min_quotes", 3)),
        default_project=str(data.get("default_project", "Unknown Project")),
    )


def parse_dpr(data: dict[str, Any]) -> DPRConfig:
    _check_keys("dpr", data, DPRConfig)
    return DPRConfig(max_photos=int(data.get("max_photos", 5)))


def parse_config(data: dict[str, Any]) -> SiteflowConfig:
    """Build a ``SiteflowConfig`` from an already-parsed mapping."""
    _check_keys("", data, SiteflowConfig)
    defaults = SiteflowConfig()
    return SiteflowConfig(
        database_url=str(data.get("database_url", defaults.database_url)),
        echo_sql=bool(data.get("echo_sql", defaults.echo_sql)),
        blob_root=str(data.get("blob_root", defaults.blob_root)),
        retry=parse_retry(_section(data, "retry")),
        indent=parse_indent(_section(data, "indent")),
        dpr=parse_dpr(_section(data, "dpr")),
    )


def load_config(path: str | Path) -> SiteflowConfig:
    return parse_config(load_yaml_file(Path(path)))
