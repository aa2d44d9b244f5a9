"""Kernel utilities."""

from siteflow_kernel.utils.hashing import (
    canonicalize_json,
    hash_bytes,
    hash_payload,
    snapshot,
)

__all__ = ["canonicalize_json", "hash_bytes", "hash_payload", "snapshot"]
