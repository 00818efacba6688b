"""Built-in workflow templates."""

from __future__ import annotations

from typing import Any

from ..exceptions import NotFoundError
from .definitions import parse_definition
from .models import EscalationRule, Step, WorkflowDefinition, WorkflowTemplate

SIMPLE_APPROVAL = WorkflowTemplate(
    id="template_simple_approval",
    name="Simple Approval",
    description="Basic two-step approval workflow",
    tags=["approval", "simple", "general"],
    steps=[
        Step(
            id="step_1",
            name="Manager Approval",
            type="approval",
            assignee="manager",
            assignee_type="role",
            connected_to=["step_2"],
        ),
        Step(
            id="step_2",
            name="Completion",
            type="automation",
            assignee="system",
            assignee_type="system",
            auto_advance=True,
        ),
    ],
)

MULTI_STAGE_REVIEW = WorkflowTemplate(
    id="template_multi_stage",
    name="Multi-Stage Review",
    description="Multiple review stages with escalation",
    tags=["complex", "review", "multi-stage", "escalation"],
    steps=[
        Step(
            id="step_1",
            name="Initial Review",
            type="approval",
            assignee="reviewer",
            assignee_type="role",
            time_limit=48,
            connected_to=["step_2"],
        ),
        Step(
            id="step_2",
            name="Manager Approval",
            type="approval",
            assignee="manager",
            assignee_type="role",
            time_limit=24,
            connected_to=["step_3"],
            escalation=EscalationRule(
                timeout_hours=48,
                escalate_to="department_head",
                escalation_type="role",
                notification_message="Review requires urgent attention",
            ),
        ),
        Step(
            id="step_3",
            name="Final Processing",
            type="automation",
            assignee="system",
            assignee_type="system",
            auto_advance=True,
        ),
    ],
)

NOTIFICATION_WORKFLOW = WorkflowTemplate(
    id="template_notification_workflow",
    name="Notification Workflow",
    description="Automated notifications and record updates",
    category="Operations",
    tags=["notification", "automation", "calendar"],
    steps=[
        Step.model_validate(
            {
                "id": "step_1",
                "name": "Send Notifications",
                "type": "notification",
                "assignee": "system",
                "assigneeType": "system",
                "autoAdvance": True,
                "connectedTo": ["step_2"],
                "actions": [
                    {"id": "action_email", "type": "email", "config": {"template": "notification"}},
                    {
                        "id": "action_calendar",
                        "type": "calendar_event",
                        "config": {"event_type": "reminder"},
                    },
                ],
            }
        ),
        Step(
            id="step_2",
            name="Update Records",
            type="automation",
            assignee="system",
            assignee_type="system",
            auto_advance=True,
        ),
    ],
)

BUILTIN_TEMPLATES = {
    t.id: t for t in (SIMPLE_APPROVAL, MULTI_STAGE_REVIEW, NOTIFICATION_WORKFLOW)
}


def list_templates() -> list[WorkflowTemplate]:
    return list(BUILTIN_TEMPLATES.values())


def get_template(template_id: str) -> WorkflowTemplate:
    try:
        return BUILTIN_TEMPLATES[template_id]
    except KeyError:
        raise NotFoundError(
            f"Template {template_id} not found", kind="template", record_id=template_id
        ) from None


def definition_from_template(
    template_id: str, name: str, **overrides: Any
) -> WorkflowDefinition:
    """Build an unsaved definition from a template.

    ``overrides`` replace any definition field (``category``, ``deadline_days``,
    ``steps``...).
    """
    template = get_template(template_id)
    data: dict[str, Any] = {
        "name": name,
        "description": f"Workflow created from template {template.id}",
        "category": template.category,
        "type": template.type,
        "deadline_days": template.deadline_days,
        "steps": [s.model_dump() for s in template.steps],
    }
    data.update(overrides)
    return parse_definition(data)
