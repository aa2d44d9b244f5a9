"""
Blob storage for attachments.

Responsibility:
    Accepts uploaded files (quote scans, GRN photos, vendor bills, petty-cash
    receipts, DPR photos) and returns the reference that records store in
    their attachment fields.

Architecture position:
    Kernel > Services.  ``BlobStore`` is the collaborator contract;
    ``LocalBlobStore`` is the filesystem implementation used locally and in
    tests.

Invariants enforced:
    - References are content-addressed: the same bytes under the same name
      always yield the same reference and are written once.
    - References are relative to the store root and never escape it.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Protocol, runtime_checkable

from siteflow_kernel.exceptions import StorageError
from siteflow_kernel.logging_config import get_logger
from siteflow_kernel.utils.hashing import hash_bytes

logger = get_logger("services.blob_store")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class BlobStore(Protocol):
    def put(self, name: str, data: bytes) -> str:
        ...

    def get(self, ref: str) -> bytes:
        ...


def safe_name(name: str) -> str:
    """Reduce an uploaded file name to a filesystem-safe basename."""
    base = os.path.basename(name.replace("\\", "/"))
    cleaned = _UNSAFE.sub("_", base).strip("._")
    return cleaned or "upload"


class LocalBlobStore:
    """Filesystem blob store rooted at ``root``.

    Files land at ``<root>/<sha[:2]>/<sha>-<name>``.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def put(self, name: str, data: bytes) -> str:
        digest = hash_bytes(data)
        ref = f"{digest[:2]}/{digest}-{safe_name(name)}"
        path = self._root / ref
        try:
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(path.suffix + ".part")
                tmp.write_bytes(data)
                tmp.replace(path)
                logger.info(
                    "blob_stored",
                    extra={"ref": ref, "size_bytes": len(data)},
                )
        except OSError as exc:
            raise StorageError("blob_put", str(exc)) from exc
        return ref

    def get(self, ref: str) -> bytes:
        path = self._resolve(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError("blob_get", str(exc)) from exc

    def exists(self, ref: str) -> bool:
        return self._resolve(ref).is_file()

    def _resolve(self, ref: str) -> Path:
        root = self._root.resolve()
        path = (root / ref).resolve()
        if root != path and root not in path.parents:
            raise StorageError("blob_resolve", f"reference escapes store root: {ref}")
        return path
