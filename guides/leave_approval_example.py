"""Leave approval from start to completion, including an escalation."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

from hrflow import WorkflowOrchestrator
from hrflow.cli_utils.files import load_definition_file
from hrflow.config import HrflowConfig, IdentityConfig


class ShiftableClock:
    """Clock the example can move forward to simulate waiting."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now


async def main():
    clock = ShiftableClock()
    config = HrflowConfig(
        log_level="INFO",
        identity=IdentityConfig(directory={"department_head": "head.of.people@company.com"}),
    )
    orchestrator = WorkflowOrchestrator.from_config(config, clock=clock)

    data = load_definition_file(Path(__file__).with_name("leave_approval.yaml"))
    definition = await orchestrator.create_definition(data, created_by="hr-admin")
    await orchestrator.publish_definition(definition.id)

    [instance] = await orchestrator.start_for_event(
        "leave_requested", "Annual leave: 3 days", "jane@company.com", {"days": 3}
    )
    print(f"Started {instance.id}: {instance.status} at {instance.current_step}")

    # Nobody approves for three days.
    clock.now += timedelta(hours=73)
    for record in await orchestrator.sweep_escalations():
        print(f"Escalated {record.step_id} to {record.escalated_to}")

    instance = await orchestrator.advance_instance(instance.id, "approve", "Enjoy the break")
    print(f"Finished: {instance.status} at {instance.current_step}")

    stats = await orchestrator.analytics()
    print(f"Completed instances: {stats.instances_by_status.get('completed', 0)}")
    await orchestrator.close()


if __name__ == "__main__":
    asyncio.run(main())
