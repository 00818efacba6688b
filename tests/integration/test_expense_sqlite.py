"""Expense routing on the SQLite store, resumed by a second orchestrator."""

import asyncio

import pytest

from hrflow.config import HrflowConfig
from hrflow.orchestrator import WorkflowOrchestrator

EXPENSE_APPROVAL = {
    "name": "Expense Approval",
    "category": "Finance",
    "type": "expense",
    "deadlineDays": 5,
    "steps": [
        {
            "id": "submit",
            "name": "Submit Expense",
            "type": "task",
            "autoAdvance": True,
            "connectedTo": ["finance_review", "manager_approval"],
            "actions": [
                {"type": "update_field", "config": {"field": "state", "value": "submitted"}}
            ],
        },
        {
            "id": "finance_review",
            "name": "Finance Review",
            "type": "approval",
            "assignee": "finance_team",
            "assigneeType": "department",
            "conditions": [{"field": "amount", "operator": "greater_than", "value": 1000}],
            "connectedTo": ["payment"],
        },
        {
            "id": "manager_approval",
            "name": "Manager Approval",
            "type": "approval",
            "assignee": "manager",
            "assigneeType": "role",
            "connectedTo": ["payment"],
        },
        {
            "id": "payment",
            "name": "Payment Processing",
            "type": "automation",
            "assignee": "system",
            "assigneeType": "system",
            "autoAdvance": True,
            "actions": [
                {"type": "update_field", "config": {"field": "state", "value": "paid"}},
                {"type": "create_task", "config": {"title": "Reimburse"}},
            ],
        },
    ],
}


def _config(tmp_path) -> HrflowConfig:
    return HrflowConfig(
        database_url=f"sqlite://{tmp_path / 'hrflow.db'}",
        dispatch_log_url=f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}",
    )


@pytest.mark.asyncio
async def test_expense_routes_by_amount_and_survives_restart(tmp_path, monkeypatch):
    monkeypatch.delenv("HRFLOW_DATABASE_URL", raising=False)
    config = _config(tmp_path)

    orchestrator = WorkflowOrchestrator.from_config(config)
    definition = await orchestrator.create_definition(EXPENSE_APPROVAL)
    await orchestrator.publish_definition(definition.id)

    large = await orchestrator.start_instance(
        definition.id, "Conference", "sam@company.com", {"amount": 2400}
    )
    small = await orchestrator.start_instance(
        definition.id, "Taxi", "sam@company.com", {"amount": 35}
    )
    assert large.current_step == "finance_review"
    assert large.assignee_email == "finance_team@company.com"
    assert small.current_step == "manager_approval"
    assert small.context_data["state"] == "submitted"
    await orchestrator.close()

    resumed = WorkflowOrchestrator.from_config(config)
    waiting = await resumed.list_instances(status="in_progress")
    assert {i.id for i in waiting} == {large.id, small.id}

    done = await resumed.advance_instance(large.id, "approve")
    assert done.status == "completed"
    assert done.current_step == "payment"
    assert done.context_data == {"amount": 2400, "state": "paid"}

    by_assignee = await resumed.list_instances(assignee_email="manager@company.com")
    assert [i.id for i in by_assignee] == [small.id]

    records = await resumed.dispatch_log.list_for_instance(large.id)
    assert [r.action_type for r in records] == ["update_field", "update_field", "create_task"]
    assert all(r.ok for r in records)

    refreshed = await resumed.get_definition(definition.id)
    assert refreshed.usage_count == 1
    await resumed.close()


@pytest.mark.asyncio
async def test_parallel_completions_all_reach_usage_count(tmp_path, monkeypatch):
    monkeypatch.delenv("HRFLOW_DATABASE_URL", raising=False)
    orchestrator = WorkflowOrchestrator.from_config(_config(tmp_path))
    definition = await orchestrator.create_definition(
        {"name": "Receipt check", "category": "Finance", "steps": [{"id": "check"}]}
    )
    await orchestrator.publish_definition(definition.id)
    started = [
        await orchestrator.start_instance(definition.id, f"Receipt {n}", "sam@company.com")
        for n in range(8)
    ]

    done = await asyncio.gather(
        *(orchestrator.advance_instance(i.id, "approve") for i in started)
    )

    assert {i.status for i in done} == {"completed"}
    refreshed = await orchestrator.get_definition(definition.id)
    assert refreshed.usage_count == 8
    await orchestrator.close()
