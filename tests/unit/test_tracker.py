from datetime import timedelta

import pytest

from conftest import FakeClock
from hrflow.exceptions import InstanceTerminatedError, NotFoundError
from hrflow.persistence import InMemoryRecordStore
from hrflow.registry import DefinitionRegistry, WorkflowDefinition
from hrflow.tracker import InstanceTracker


def _tracker(clock):
    instances = InMemoryRecordStore("workflow_instances")
    registry = DefinitionRegistry(
        InMemoryRecordStore("workflows"), InMemoryRecordStore("workflow_versions"), instances, clock=clock
    )
    return InstanceTracker(instances, registry, clock=clock)


def _definition():
    return WorkflowDefinition.model_validate(
        {"name": "Leave", "deadlineDays": 3, "steps": [{"id": "a", "connectedTo": ["b"]}, {"id": "b"}]}
    )


@pytest.mark.asyncio
async def test_create_sets_entry_step_and_deadline():
    clock = FakeClock()
    tracker = _tracker(clock)
    definition = _definition()

    instance = await tracker.create(
        definition, definition.steps[0], "Leave", "jane@company.com", {"days": 2}
    )
    assert instance.status == "pending"
    assert instance.current_step == "a"
    assert instance.workflow_version == 1
    assert instance.deadline == clock.now + timedelta(days=3)
    assert await tracker.get(instance.id) == instance


@pytest.mark.asyncio
async def test_get_missing_instance():
    with pytest.raises(NotFoundError) as excinfo:
        await _tracker(FakeClock()).get("nope")
    assert excinfo.value.kind == "instance"


@pytest.mark.asyncio
async def test_state_primitives():
    clock = FakeClock()
    tracker = _tracker(clock)
    definition = _definition()
    instance = await tracker.create(definition, definition.steps[0], "Leave", "a@c.com")

    tracker.mark_in_progress(instance)
    clock.advance(hours=1)
    await tracker.move_to(instance, definition.steps[1], "b@c.com")
    assert instance.status == "in_progress"
    assert instance.step_started_at == clock.now

    await tracker.cancel(instance, "withdrawn")
    stored = await tracker.get(instance.id)
    assert stored.status == "cancelled"
    assert stored.cancellation_reason == "withdrawn"
    assert stored.completed_at == clock.now
    assert stored.current_step == "b"
    assert stored.assignee_email == "b@c.com"

    with pytest.raises(InstanceTerminatedError) as excinfo:
        tracker.ensure_active(stored)
    assert excinfo.value.status == "cancelled"

    assert await tracker.in_flight() == []
    assert [i.id for i in await tracker.list(status="cancelled")] == [instance.id]


def test_locks_are_per_instance():
    tracker = _tracker(FakeClock())
    first = tracker.lock("i1")
    assert tracker.lock("i1") is first
    assert tracker.lock("i2") is not first
