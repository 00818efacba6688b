"""Contracts shared by the engine, the condition evaluator and the dispatcher."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ConditionOperator = Literal[
    "equals", "not_equals", "greater_than", "less_than", "contains"
]
AdvanceAction = Literal["approve", "reject", "complete"]
AssigneeType = Literal["user", "role", "department", "system"]


class Condition(BaseModel):
    """Predicate over instance context data."""

    field: str
    operator: ConditionOperator
    value: Any = None


# ----------------------------------------------------------------------
# Action configs, one schema per action type. Extra keys are kept so
# backends can read provider-specific settings.


class _ActionConfig(BaseModel):
    model_config = ConfigDict(extra="allow")


class EmailConfig(_ActionConfig):
    template: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)
    subject: Optional[str] = None
    message: Optional[str] = None


class SlackConfig(_ActionConfig):
    channel: Optional[str] = None
    message: Optional[str] = None


class WebhookConfig(_ActionConfig):
    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)


class ApiConfig(_ActionConfig):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)


class UpdateFieldConfig(_ActionConfig):
    field: str
    value: Any = None


class CreateTaskConfig(_ActionConfig):
    title: Optional[str] = None
    assignee: Optional[str] = None


class AssignUserConfig(_ActionConfig):
    assignee: str
    assignee_type: AssigneeType = "user"


class CalendarEventConfig(_ActionConfig):
    calendar: Optional[str] = None
    event_type: Optional[str] = None


def _action_id() -> str:
    return f"action_{uuid.uuid4().hex[:8]}"


class _Action(BaseModel):
    id: str = Field(default_factory=_action_id)


class EmailAction(_Action):
    type: Literal["email"] = "email"
    config: EmailConfig = Field(default_factory=EmailConfig)


class SlackAction(_Action):
    type: Literal["slack"] = "slack"
    config: SlackConfig = Field(default_factory=SlackConfig)


class WebhookAction(_Action):
    type: Literal["webhook"] = "webhook"
    config: WebhookConfig


class ApiAction(_Action):
    type: Literal["api"] = "api"
    config: ApiConfig


class UpdateFieldAction(_Action):
    type: Literal["update_field"] = "update_field"
    config: UpdateFieldConfig


class CreateTaskAction(_Action):
    type: Literal["create_task"] = "create_task"
    config: CreateTaskConfig = Field(default_factory=CreateTaskConfig)


class AssignUserAction(_Action):
    type: Literal["assign_user"] = "assign_user"
    config: AssignUserConfig


class CalendarEventAction(_Action):
    type: Literal["calendar_event"] = "calendar_event"
    config: CalendarEventConfig = Field(default_factory=CalendarEventConfig)


ActionDescriptor = Annotated[
    Union[
        EmailAction,
        SlackAction,
        WebhookAction,
        ApiAction,
        UpdateFieldAction,
        CreateTaskAction,
        AssignUserAction,
        CalendarEventAction,
    ],
    Field(discriminator="type"),
]

ACTION_ADAPTER: TypeAdapter = TypeAdapter(ActionDescriptor)

ActionType = Literal[
    "email",
    "slack",
    "webhook",
    "update_field",
    "create_task",
    "assign_user",
    "calendar_event",
    "api",
]


class DispatchResult(BaseModel):
    """Outcome of one best-effort action dispatch."""

    action_id: str
    action_type: str
    attempted: bool = True
    ok: bool = True
    skipped: bool = False
    error: Optional[str] = None
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
