"""PostgreSQL implementation of the record store."""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from ..exceptions import NotFoundError, ValidationError
from .repository import RecordStore, check_identifier


def _as_text(value: Any) -> str:
    # ``data->>'field'`` renders JSON booleans as 'true'/'false'.
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class PostgresRecordStore(RecordStore):
    """Persist one collection of JSON records in a PostgreSQL JSONB table."""

    def __init__(self, dsn: str, collection: str = "records"):
        self._dsn = dsn
        self.collection = check_identifier(collection)
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.collection} (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                data JSONB NOT NULL
            )
            """
        )

    def _not_found(self, record_id: str) -> NotFoundError:
        return NotFoundError(
            f"Record {record_id} not found in {self.collection}",
            kind=self.collection,
            record_id=record_id,
        )

    # ------------------------------------------------------------------
    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        record_id = record.get("id")
        if not record_id:
            raise ValidationError("Record requires an 'id'")
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO {self.collection} (id, data) VALUES ($1, $2::jsonb)",
                record_id,
                json.dumps(record),
            )
        except asyncpg.UniqueViolationError as exc:
            raise ValidationError(
                f"Record {record_id} already exists in {self.collection}"
            ) from exc
        finally:
            await conn.close()
        return json.loads(json.dumps(record))

    async def get_by_id(self, record_id: str) -> dict[str, Any] | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT data FROM {self.collection} WHERE id = $1", record_id
            )
        finally:
            await conn.close()
        if not row:
            return None
        return json.loads(row["data"])

    async def query(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for key, value in (filters or {}).items():
            path = f"data->>'{check_identifier(key)}'"
            if isinstance(value, (list, tuple, set, frozenset)):
                params.append([_as_text(v) for v in value])
                clauses.append(f"{path} = ANY(${len(params)}::text[])")
            elif value is None:
                clauses.append(f"{path} IS NULL")
            else:
                params.append(_as_text(value))
                clauses.append(f"{path} = ${len(params)}")
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT data FROM {self.collection}{where} ORDER BY seq", *params
            )
        finally:
            await conn.close()
        return [json.loads(r["data"]) for r in rows]

    async def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        patch = {**patch, "id": record_id}
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"""
                UPDATE {self.collection}
                SET data = data || $1::jsonb
                WHERE id = $2
                RETURNING data
                """,
                json.dumps(patch),
                record_id,
            )
        finally:
            await conn.close()
        if not row:
            raise self._not_found(record_id)
        return json.loads(row["data"])

    async def delete(self, record_id: str) -> None:
        conn = await self._connect()
        try:
            status = await conn.execute(
                f"DELETE FROM {self.collection} WHERE id = $1", record_id
            )
        finally:
            await conn.close()
        if status.endswith(" 0"):
            raise self._not_found(record_id)
