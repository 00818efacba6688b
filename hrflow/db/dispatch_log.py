from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..contracts import DispatchResult
from .models import DispatchRecord


class DispatchLogDB:
    """Async database helper recording dispatch outcomes."""

    def __init__(self, database_url: str) -> None:
        connect_args = (
            {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        )
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )
        self._ready = False

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._ready = True

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if not self._ready:
            await self.init_db()
        async with AsyncSession(self.engine) as session:
            yield session

    async def record(
        self, result: DispatchResult, context: Mapping[str, Any]
    ) -> DispatchRecord:
        row = DispatchRecord(
            instance_id=str(context.get("instance_id") or ""),
            workflow_id=context.get("workflow_id"),
            step_id=context.get("step_id"),
            action_id=result.action_id,
            action_type=result.action_type,
            ok=result.ok,
            skipped=result.skipped,
            error_message=result.error,
            dispatched_at=result.at.replace(tzinfo=None),
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def list_for_instance(self, instance_id: str) -> list[DispatchRecord]:
        async with self.session() as session:
            result = await session.execute(
                select(DispatchRecord)
                .where(DispatchRecord.instance_id == instance_id)
                .order_by(DispatchRecord.dispatched_at)
            )
            return list(result.scalars().all())

    async def failures(self) -> list[DispatchRecord]:
        async with self.session() as session:
            result = await session.execute(
                select(DispatchRecord)
                .where(DispatchRecord.ok == False)  # noqa: E712
                .order_by(DispatchRecord.dispatched_at)
            )
            return list(result.scalars().all())
