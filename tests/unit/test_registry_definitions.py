"""Tests for the definition registry lifecycle."""

import asyncio

import pytest

from conftest import FakeClock, linear_definition
from hrflow.exceptions import InvalidStateError, NotFoundError, StepInUseError, ValidationError
from hrflow.persistence import InMemoryRecordStore
from hrflow.registry import DefinitionRegistry, WorkflowDefinition


def _registry(clock=None, instances=None):
    return DefinitionRegistry(
        InMemoryRecordStore("workflows"),
        InMemoryRecordStore("workflow_versions"),
        instances,
        clock=clock or FakeClock(),
    )


class _YieldingStore(InMemoryRecordStore):
    """Gives other tasks a turn inside every read and write, like a real database."""

    async def get_by_id(self, record_id):
        await asyncio.sleep(0)
        return await super().get_by_id(record_id)

    async def update(self, record_id, patch):
        await asyncio.sleep(0)
        return await super().update(record_id, patch)


@pytest.mark.asyncio
async def test_create_initialises_draft_version_one():
    registry = _registry()
    data = linear_definition(status="active", version=7, usageCount=4)
    definition = await registry.create(data, created_by="hr-admin")

    assert definition.status == "draft"
    assert definition.version == 1
    assert definition.usage_count == 0
    assert definition.created_by == "hr-admin"
    assert await registry.get_by_id(definition.id) == definition
    assert (await registry.get_version(definition.id, 1)).steps == definition.steps


@pytest.mark.asyncio
async def test_create_rejects_invalid_graph_and_schema():
    registry = _registry()
    with pytest.raises(ValidationError) as excinfo:
        await registry.create(
            {"name": "Two heads", "steps": [{"id": "a"}, {"id": "b"}]}
        )
    assert "found 2" in excinfo.value.violations[0]

    with pytest.raises(ValidationError) as excinfo:
        await registry.create({"name": "Bad op", "steps": [
            {"id": "a", "conditions": [{"field": "x", "operator": "matches", "value": 1}]}
        ]})
    assert excinfo.value.violations

    assert await registry.list() == []


@pytest.mark.asyncio
async def test_publish_and_archive_transitions():
    registry = _registry()
    definition = await registry.create(linear_definition())

    with pytest.raises(InvalidStateError):
        await registry.archive(definition.id)

    published = await registry.publish(definition.id)
    assert published.status == "active"
    assert published.is_startable

    with pytest.raises(InvalidStateError) as excinfo:
        await registry.publish(definition.id)
    assert excinfo.value.status == "active"

    archived = await registry.archive(definition.id)
    assert archived.status == "archived"
    assert not archived.is_startable

    with pytest.raises(InvalidStateError):
        await registry.update(definition.id, {"name": "Renamed"})


@pytest.mark.asyncio
async def test_update_bumps_version_and_snapshots():
    clock = FakeClock()
    registry = _registry(clock)
    definition = await registry.create(linear_definition())
    clock.advance(minutes=5)

    updated = await registry.update(definition.id, {"deadlineDays": 10, "name": "Renamed"})
    assert updated.version == 2
    assert updated.deadline_days == 10
    assert updated.updated_at == clock.now
    assert (await registry.get_version(definition.id, 1)).name == "Linear"
    assert (await registry.get_version(definition.id, 2)).name == "Renamed"

    with pytest.raises(NotFoundError):
        await registry.get_version(definition.id, 3)


@pytest.mark.asyncio
async def test_update_rejects_protected_and_unknown_fields():
    registry = _registry()
    definition = await registry.create(linear_definition())

    with pytest.raises(ValidationError) as excinfo:
        await registry.update(definition.id, {"version": 9, "status": "active"})
    assert excinfo.value.violations == [
        "'status' cannot be patched",
        "'version' cannot be patched",
    ]

    with pytest.raises(ValidationError):
        await registry.update(definition.id, {"colour": "blue"})

    with pytest.raises(ValidationError):
        await registry.update(definition.id, {"steps": []})

    assert (await registry.get_by_id(definition.id)).version == 1


@pytest.mark.asyncio
async def test_update_checks_steps_of_in_flight_instances():
    instances = InMemoryRecordStore("workflow_instances")
    registry = _registry(instances=instances)
    definition = await registry.create(linear_definition())
    await instances.create(
        {"id": "i1", "workflow_id": definition.id, "current_step": "s3", "status": "escalated"}
    )
    await instances.create(
        {"id": "i2", "workflow_id": definition.id, "current_step": "s2", "status": "completed"}
    )

    two_steps = [s.model_dump(by_alias=True) for s in definition.steps[:2]]
    two_steps[1]["connectedTo"] = []
    with pytest.raises(StepInUseError) as excinfo:
        await registry.update(definition.id, {"steps": two_steps})
    assert excinfo.value.step_ids == ["s3"]

    # Removing a step nobody is on is fine.
    without_middle = [definition.steps[0].model_dump(by_alias=True), definition.steps[2].model_dump(by_alias=True)]
    without_middle[0]["connectedTo"] = ["s3"]
    updated = await registry.update(definition.id, {"steps": without_middle})
    assert updated.step_ids() == ["s1", "s3"]


@pytest.mark.asyncio
async def test_delete_requires_no_running_instances():
    instances = InMemoryRecordStore("workflow_instances")
    registry = _registry(instances=instances)
    definition = await registry.create(linear_definition())
    await registry.update(definition.id, {"name": "v2"})
    await instances.create(
        {"id": "i1", "workflow_id": definition.id, "current_step": "s1", "status": "pending"}
    )

    with pytest.raises(InvalidStateError):
        await registry.delete(definition.id)

    await instances.update("i1", {"status": "cancelled"})
    await registry.delete(definition.id)
    assert await registry.find(definition.id) is None
    with pytest.raises(NotFoundError):
        await registry.get_version(definition.id, 2)
    with pytest.raises(NotFoundError):
        await registry.delete(definition.id)


@pytest.mark.asyncio
async def test_lookups_by_category_type_and_trigger():
    registry = _registry()
    leave = await registry.create(
        linear_definition(
            name="Leave",
            type="leave",
            triggers=[{"id": "t", "event": "leave_requested"}],
        )
    )
    expense = await registry.create(
        linear_definition(name="Expense", category="Finance", type="expense")
    )

    assert [d.id for d in await registry.find_by_category("Finance")] == [expense.id]
    assert [d.id for d in await registry.find_by_type("leave")] == [leave.id]
    assert await registry.find_by_trigger("leave_requested") == []

    await registry.publish(leave.id)
    assert [d.id for d in await registry.find_by_trigger("leave_requested")] == [leave.id]


@pytest.mark.asyncio
async def test_record_completion_keeps_running_mean_without_version_bump():
    registry = _registry()
    definition = await registry.create(linear_definition())
    await registry.record_completion(definition.id, 10.0)
    await registry.record_completion(definition.id, 20.0)

    stored = await registry.get_by_id(definition.id)
    assert stored.usage_count == 2
    assert stored.avg_completion_time == 15.0
    assert stored.version == 1


def test_definition_accepts_camel_and_snake_case():
    camel = WorkflowDefinition.model_validate(
        {"name": "x", "deadlineDays": 2, "steps": [{"id": "a", "autoAdvance": True}]}
    )
    snake = WorkflowDefinition.model_validate(
        {"name": "x", "deadline_days": 2, "steps": [{"id": "a", "auto_advance": True}]}
    )
    assert camel.deadline_days == snake.deadline_days == 2
    assert camel.steps[0].auto_advance and snake.steps[0].auto_advance


@pytest.mark.asyncio
async def test_concurrent_completions_and_edit_keep_every_count():
    registry = DefinitionRegistry(
        _YieldingStore("workflows"), InMemoryRecordStore("workflow_versions"), clock=FakeClock()
    )
    definition = await registry.create(linear_definition())

    await asyncio.gather(
        *(registry.record_completion(definition.id, 4.0) for _ in range(6)),
        registry.update(definition.id, {"description": "edited"}),
        *(registry.record_completion(definition.id, 4.0) for _ in range(2)),
    )

    stored = await registry.get_by_id(definition.id)
    assert stored.usage_count == 8
    assert stored.avg_completion_time == 4.0
    assert stored.description == "edited"
    assert stored.version == 2
