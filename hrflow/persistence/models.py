"""Data models for persisted workflow instance state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

InstanceStatus = Literal["pending", "in_progress", "completed", "cancelled", "escalated"]
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})
IN_FLIGHT_STATUSES = ("pending", "in_progress", "escalated")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EscalationRecord(BaseModel):
    """One timeout escalation of a step. Never removed, only resolved."""

    id: str = Field(default_factory=lambda: f"esc_{uuid.uuid4().hex[:12]}")
    step_id: str
    escalated_at: datetime
    escalated_to: str
    reason: str
    resolved: bool = False
    resolved_at: Optional[datetime] = None


class StepTransition(BaseModel):
    """History entry written whenever a step is acted upon."""

    step_id: str
    action: str
    comments: Optional[str] = None
    at: datetime = Field(default_factory=_utcnow)


class WorkflowInstance(BaseModel):
    """Runtime state of one execution of a workflow definition."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    workflow_version: int
    title: str
    status: InstanceStatus = "pending"
    current_step: str
    assignee_email: str = ""
    context_data: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=_utcnow)
    step_started_at: datetime = Field(default_factory=_utcnow)
    deadline: datetime
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    escalations: List[EscalationRecord] = Field(default_factory=list)
    history: List[StepTransition] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def unresolved_escalations(self, step_id: Optional[str] = None) -> List[EscalationRecord]:
        return [
            e
            for e in self.escalations
            if not e.resolved and (step_id is None or e.step_id == step_id)
        ]
