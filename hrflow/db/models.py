from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class DispatchRecord(SQLModel, table=True):
    """Outcome of one action dispatch, kept for observability."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    instance_id: str = Field(index=True)
    workflow_id: Optional[str] = None
    step_id: Optional[str] = None
    action_id: str
    action_type: str
    ok: bool = True
    skipped: bool = False
    error_message: Optional[str] = None
    dispatched_at: datetime = Field(default_factory=datetime.utcnow)
