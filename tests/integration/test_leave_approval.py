"""End-to-end leave approval: escalation after timeout, then approval cascade."""

import pytest

from hrflow.contracts import EmailConfig

LEAVE_APPROVAL = {
    "name": "Leave Approval",
    "description": "Standard leave approval process",
    "category": "HR",
    "type": "leave",
    "deadlineDays": 3,
    "steps": [
        {
            "id": "manager_review",
            "name": "Manager Review",
            "type": "approval",
            "assignee": "manager",
            "assigneeType": "role",
            "timeLimit": 48,
            "connectedTo": ["hr_notify"],
            "escalation": {
                "enabled": True,
                "timeoutHours": 72,
                "escalateTo": "department_head",
                "escalationType": "role",
                "notificationMessage": "Leave request awaiting approval for 72 hours",
            },
            "actions": [
                {
                    "type": "email",
                    "config": {"template": "leave_request", "recipients": ["manager@company.com"]},
                }
            ],
        },
        {
            "id": "hr_notify",
            "name": "HR Notification",
            "type": "notification",
            "assignee": "hr_team",
            "assigneeType": "department",
            "autoAdvance": True,
            "connectedTo": ["calendar_update"],
            "actions": [
                {"type": "slack", "config": {"channel": "#hr", "message": "Leave approved"}}
            ],
        },
        {
            "id": "calendar_update",
            "name": "Calendar Update",
            "type": "automation",
            "assignee": "system",
            "assigneeType": "system",
            "autoAdvance": True,
            "actions": [{"type": "calendar_event", "config": {"event_type": "leave"}}],
        },
    ],
}


@pytest.mark.asyncio
async def test_leave_request_escalates_then_completes(orchestrator, clock, recorder):
    definition = await orchestrator.create_definition(LEAVE_APPROVAL, created_by="hr-admin")
    await orchestrator.publish_definition(definition.id)

    instance = await orchestrator.start_instance(
        definition.id, "Annual leave", "jane@company.com", {"days": 3}
    )
    assert instance.status == "in_progress"
    assert instance.current_step == "manager_review"
    assert len(recorder.sent) == 1

    clock.advance(hours=73)

    first = await orchestrator.sweep_escalations()
    second = await orchestrator.sweep_escalations()
    assert len(first) == 1
    assert second == []

    escalated = await orchestrator.get_instance(instance.id)
    assert escalated.status == "escalated"
    assert escalated.assignee_email == "head@company.com"
    [record] = escalated.unresolved_escalations()
    assert record.step_id == "manager_review"
    assert record.escalated_to == "head@company.com"
    assert record.reason == "timeout"

    notification, context = recorder.sent[-1]
    assert isinstance(notification, EmailConfig)
    assert notification.recipients == ["head@company.com"]
    assert notification.message == "Leave request awaiting approval for 72 hours"
    assert context["instance_id"] == instance.id

    overdue = await orchestrator.find_overdue()
    assert [o.instance_id for o in overdue] == [instance.id]
    assert overdue[0].step_overdue and overdue[0].deadline_passed

    done = await orchestrator.advance_instance(instance.id, "approve", comments="Enjoy")
    assert done.status == "completed"
    assert done.current_step == "calendar_update"
    assert done.unresolved_escalations() == []
    assert done.escalations[0].resolved
    assert done.escalations[0].resolved_at == clock.now
    # initial email, escalation email, slack, calendar
    assert len(recorder.sent) == 4


@pytest.mark.asyncio
async def test_escalated_instance_returns_to_in_progress_when_resting(orchestrator, clock):
    data = {
        "name": "Two reviews",
        "steps": [
            {
                "id": "first",
                "connectedTo": ["second"],
                "escalation": {"timeoutHours": 1, "escalateTo": "department_head"},
            },
            {"id": "second"},
        ],
    }
    definition = await orchestrator.create_definition(data)
    await orchestrator.publish_definition(definition.id)
    instance = await orchestrator.start_instance(definition.id, "Review", "a@company.com")

    clock.advance(hours=2)
    await orchestrator.sweep_escalations()
    assert (await orchestrator.get_instance(instance.id)).status == "escalated"

    instance = await orchestrator.advance_instance(instance.id, "approve")
    assert instance.status == "in_progress"
    assert instance.current_step == "second"
    assert instance.escalations[0].resolved


@pytest.mark.asyncio
async def test_disabled_escalation_never_fires(orchestrator, clock):
    data = {
        "name": "Quiet",
        "steps": [
            {
                "id": "only",
                "escalation": {
                    "enabled": False,
                    "timeoutHours": 1,
                    "escalateTo": "department_head",
                },
            }
        ],
    }
    definition = await orchestrator.create_definition(data)
    await orchestrator.publish_definition(definition.id)
    instance = await orchestrator.start_instance(definition.id, "Quiet", "a@company.com")

    clock.advance(hours=100)
    assert await orchestrator.sweep_escalations() == []
    assert (await orchestrator.get_instance(instance.id)).status == "in_progress"
