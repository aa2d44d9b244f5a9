"""
Transition payload base (``siteflow_kernel.domain.payloads``).

Responsibility
--------------
Every workflow transition accepts exactly one payload variant: a frozen
dataclass carrying only the fields the acting role writes.  This module
defines the shared behaviour of those variants -- which fields are
required, which are missing, what extra checks apply, and which record
fields the payload writes.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Module payloads subclass
``TransitionPayload``; the transition engine consumes them.

Invariants enforced
-------------------
* A required field counts as missing when it is ``None``, a blank string,
  or an empty sequence.
* ``updates()`` never contains ``None`` or blank strings, so a payload can
  never erase a field that is already set.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class PayloadProblem:
    """A payload check that failed, naming the offending fields."""
    fields: tuple[str, ...]
    reason: str


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (tuple, list, frozenset, set)):
        return len(value) == 0
    return False


class TransitionPayload:
    """Mixin for frozen-dataclass payload variants.

    Subclasses declare ``REQUIRED`` and may override ``problems()`` for
    checks beyond presence.  ``FIELD_MAP`` renames payload fields to the
    record fields they write when the two differ.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ()
    FIELD_MAP: ClassVar[Mapping[str, str]] = {}

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(name for name in self.REQUIRED if is_blank(getattr(self, name, None)))

    def problems(self, context: Mapping[str, Any]) -> list[PayloadProblem]:
        return []

    def updates(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            out[self.FIELD_MAP.get(f.name, f.name)] = value
        return out

    @property
    def kind(self) -> str:
        return type(self).__name__
