"""Pydantic models describing workflow definitions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..contracts import ActionDescriptor, AssigneeType, Condition

Category = Literal["HR", "Finance", "IT", "Operations", "Compliance", "Recruitment"]
WorkflowType = Literal[
    "leave", "expense", "recruitment", "onboarding", "performance", "policy", "custom"
]
DefinitionStatus = Literal["draft", "active", "archived"]
StepType = Literal[
    "approval", "notification", "task", "condition", "automation", "integration"
]
IntegrationType = Literal[
    "email", "slack", "teams", "webhook", "api", "database", "calendar"
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _DefinitionModel(BaseModel):
    # Definitions are authored in camelCase (``connectedTo``) or snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EscalationRule(_DefinitionModel):
    """Who to hand a step to once it has sat idle for ``timeout_hours``."""

    enabled: bool = True
    timeout_hours: float
    escalate_to: str
    escalation_type: Literal["user", "role", "department"] = "role"
    notification_message: str = ""


class Step(_DefinitionModel):
    """One node of the workflow graph."""

    id: str
    name: str = ""
    type: StepType = "task"
    assignee: str = ""
    assignee_type: AssigneeType = "user"
    description: Optional[str] = None
    auto_advance: bool = False
    time_limit: Optional[float] = Field(default=None, description="Hours")
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[ActionDescriptor] = Field(default_factory=list)
    connected_to: List[str] = Field(default_factory=list)
    required: bool = True
    escalation: Optional[EscalationRule] = None

    @property
    def is_terminal(self) -> bool:
        return not self.connected_to


class Trigger(_DefinitionModel):
    """Named event that callers use to decide when to start an instance."""

    id: str
    event: str
    conditions: List[Condition] = Field(default_factory=list)
    enabled: bool = True


class Integration(_DefinitionModel):
    """External channel a definition's actions are delivered through."""

    id: str
    name: str = ""
    type: IntegrationType
    config: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class WorkflowDefinition(_DefinitionModel):
    """Versioned template graph of steps."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    category: Category = "HR"
    type: WorkflowType = "custom"
    status: DefinitionStatus = "draft"
    version: int = 1
    enabled: bool = True
    steps: List[Step] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)
    integrations: List[Integration] = Field(default_factory=list)
    deadline_days: int = 7
    approvers: List[str] = Field(default_factory=list)
    created_by: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    usage_count: int = 0
    avg_completion_time: Optional[float] = Field(default=None, description="Hours")

    def get_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.steps if s.id == step_id), None)

    def step_ids(self) -> List[str]:
        return [s.id for s in self.steps]

    @property
    def is_startable(self) -> bool:
        return self.status == "active" and self.enabled


class WorkflowTemplate(BaseModel):
    """Reusable starting point for a new draft definition."""

    id: str
    name: str
    description: str = ""
    category: Category = "HR"
    type: WorkflowType = "custom"
    tags: List[str] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    deadline_days: int = 7
