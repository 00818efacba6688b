"""SQLite implementation of the record store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any

from ..exceptions import NotFoundError, ValidationError
from .repository import RecordStore, check_identifier


class SQLiteRecordStore(RecordStore):
    """Persist one collection of JSON records in an SQLite table."""

    def __init__(self, db_path: str | Path, collection: str = "records"):
        self.db_path = str(db_path)
        self.collection = check_identifier(collection)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.collection} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _insert(self, record_id: str, data: str) -> None:
        try:
            self._conn.execute(
                f"INSERT INTO {self.collection} (id, data) VALUES (?, ?)",
                (record_id, data),
            )
        except sqlite3.IntegrityError as exc:
            raise ValidationError(
                f"Record {record_id} already exists in {self.collection}"
            ) from exc
        self._conn.commit()

    def _fetchone(self, record_id: str) -> sqlite3.Row | None:
        cur = self._conn.execute(
            f"SELECT data FROM {self.collection} WHERE id = ?", (record_id,)
        )
        return cur.fetchone()

    def _fetchall(self, where: str, params: list[Any]) -> list[sqlite3.Row]:
        cur = self._conn.execute(
            f"SELECT data FROM {self.collection}{where} ORDER BY rowid", params
        )
        return cur.fetchall()

    def _merge(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        row = self._fetchone(record_id)
        if row is None:
            raise NotFoundError(
                f"Record {record_id} not found in {self.collection}",
                kind=self.collection,
                record_id=record_id,
            )
        record = json.loads(row["data"])
        record.update(patch)
        record["id"] = record_id
        self._conn.execute(
            f"UPDATE {self.collection} SET data = ? WHERE id = ?",
            (json.dumps(record), record_id),
        )
        self._conn.commit()
        return record

    def _remove(self, record_id: str) -> None:
        cur = self._conn.execute(
            f"DELETE FROM {self.collection} WHERE id = ?", (record_id,)
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(
                f"Record {record_id} not found in {self.collection}",
                kind=self.collection,
                record_id=record_id,
            )

    @staticmethod
    def _where(filters: dict[str, Any] | None) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for key, value in (filters or {}).items():
            path = f"json_extract(data, '$.{check_identifier(key)}')"
            if isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{path} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            elif value is None:
                clauses.append(f"{path} IS NULL")
            else:
                clauses.append(f"{path} = ?")
                params.append(value)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    # ------------------------------------------------------------------
    # Store API
    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        record_id = record.get("id")
        if not record_id:
            raise ValidationError("Record requires an 'id'")
        await asyncio.to_thread(self._insert, record_id, json.dumps(record))
        return json.loads(json.dumps(record))

    async def get_by_id(self, record_id: str) -> dict[str, Any] | None:
        row = await asyncio.to_thread(self._fetchone, record_id)
        if not row:
            return None
        return json.loads(row["data"])

    async def query(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        where, params = self._where(filters)
        rows = await asyncio.to_thread(self._fetchall, where, params)
        return [json.loads(r["data"]) for r in rows]

    async def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._merge, record_id, patch)

    async def delete(self, record_id: str) -> None:
        await asyncio.to_thread(self._remove, record_id)
