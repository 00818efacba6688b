"""Conditional routing: expenses above a threshold go to finance first."""

import asyncio

from hrflow import WorkflowOrchestrator
from hrflow.config import HrflowConfig

EXPENSE_APPROVAL = {
    "name": "Expense Approval",
    "category": "Finance",
    "type": "expense",
    "deadlineDays": 5,
    "steps": [
        {
            "id": "submit",
            "name": "Submit Expense",
            "autoAdvance": True,
            "connectedTo": ["finance_review", "manager_approval"],
        },
        {
            "id": "finance_review",
            "name": "Finance Review",
            "type": "approval",
            "assignee": "finance_team",
            "assigneeType": "department",
            "conditions": [{"field": "amount", "operator": "greater_than", "value": 1000}],
            "connectedTo": ["manager_approval"],
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
            "actions": [{"type": "update_field", "config": {"field": "paid", "value": True}}],
        },
    ],
}


async def main():
    orchestrator = WorkflowOrchestrator.from_config(HrflowConfig())
    definition = await orchestrator.create_definition(EXPENSE_APPROVAL)
    await orchestrator.publish_definition(definition.id)

    for title, amount in (("Team offsite", 4200), ("Taxi", 38)):
        instance = await orchestrator.start_instance(
            definition.id, title, "sam@company.com", {"amount": amount}
        )
        print(f"{title}: waiting at {instance.current_step} for {instance.assignee_email}")
        while instance.status == "in_progress":
            instance = await orchestrator.advance_instance(instance.id, "approve")
        print(f"{title}: {instance.status}, context {instance.context_data}")

    await orchestrator.close()


if __name__ == "__main__":
    asyncio.run(main())
