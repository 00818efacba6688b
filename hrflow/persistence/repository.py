"""Record store abstraction for workflow persistence."""

from __future__ import annotations

import re
from typing import Any, Protocol

from ..exceptions import ValidationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RecordStore(Protocol):
    """Protocol for a collection of JSON records keyed by ``"id"``.

    Filters passed to :meth:`query` match top-level fields by equality; a
    list or tuple value matches when the field equals any of its items.
    """

    collection: str

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        """Insert ``record``; fails if its id already exists."""

    async def get_by_id(self, record_id: str) -> dict[str, Any] | None:
        """Return the record or ``None``."""

    async def query(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Return matching records in insertion order."""

    async def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Shallow-merge ``patch`` into the record and return the result."""

    async def delete(self, record_id: str) -> None:
        """Remove the record."""


def check_identifier(name: str) -> str:
    """Reject collection or field names that are unsafe to interpolate."""
    if not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid identifier: {name!r}")
    return name


def matches(record: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Evaluate a store filter against an in-memory record."""
    for key, expected in (filters or {}).items():
        actual = record.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True
