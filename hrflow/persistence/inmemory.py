"""In-memory implementation of the record store."""

from __future__ import annotations

import copy
from typing import Any, Dict

from ..exceptions import NotFoundError, ValidationError
from .repository import RecordStore, matches


class InMemoryRecordStore(RecordStore):
    """Store records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self, collection: str = "records") -> None:
        self.collection = collection
        self._records: Dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        record_id = record.get("id")
        if not record_id:
            raise ValidationError("Record requires an 'id'")
        if record_id in self._records:
            raise ValidationError(
                f"Record {record_id} already exists in {self.collection}"
            )
        self._records[record_id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def get_by_id(self, record_id: str) -> dict[str, Any] | None:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def query(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(r) for r in self._records.values() if matches(r, filters)
        ]

    async def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(
                f"Record {record_id} not found in {self.collection}",
                kind=self.collection,
                record_id=record_id,
            )
        record.update(copy.deepcopy(patch))
        record["id"] = record_id
        return copy.deepcopy(record)

    async def delete(self, record_id: str) -> None:
        if self._records.pop(record_id, None) is None:
            raise NotFoundError(
                f"Record {record_id} not found in {self.collection}",
                kind=self.collection,
                record_id=record_id,
            )
