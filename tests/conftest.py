from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest

from hrflow.backends import AssignUserBackend, RecordingBackend, UpdateFieldBackend
from hrflow.dispatch import ActionDispatcher
from hrflow.escalation import EscalationMonitor
from hrflow.orchestrator import WorkflowOrchestrator
from hrflow.persistence import InMemoryRecordStore
from hrflow.registry import DefinitionRegistry
from hrflow.resolver import DirectoryResolver
from hrflow.tracker import InstanceTracker


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def build_orchestrator(
    clock: FakeClock,
    recorder: Optional[RecordingBackend] = None,
    max_hops: int = 100,
) -> WorkflowOrchestrator:
    recorder = recorder or RecordingBackend()
    resolver = DirectoryResolver(
        directory={"department_head": "head@company.com", "manager": "manager@company.com"}
    )
    backends = {
        t: recorder
        for t in ("email", "slack", "webhook", "api", "create_task", "calendar_event")
    }
    backends["update_field"] = UpdateFieldBackend()
    backends["assign_user"] = AssignUserBackend(resolver)
    dispatcher = ActionDispatcher(backends=backends, timeout=1.0)

    instances = InMemoryRecordStore("workflow_instances")
    registry = DefinitionRegistry(
        InMemoryRecordStore("workflows"),
        InMemoryRecordStore("workflow_versions"),
        instances,
        clock=clock,
    )
    tracker = InstanceTracker(instances, registry, clock=clock)
    monitor = EscalationMonitor(tracker, dispatcher, resolver, clock=clock, interval=0.01)
    return WorkflowOrchestrator(
        registry,
        tracker,
        dispatcher,
        resolver,
        monitor=monitor,
        clock=clock,
        max_hops=max_hops,
    )


def linear_definition(name: str = "Linear", count: int = 3, **extra: Any) -> Dict[str, Any]:
    """Definition dict with ``count`` chained approval steps s1 -> s2 -> ..."""
    steps = []
    for i in range(1, count + 1):
        steps.append(
            {
                "id": f"s{i}",
                "name": f"Step {i}",
                "type": "approval",
                "assignee": "manager",
                "assigneeType": "role",
                "connectedTo": [f"s{i + 1}"] if i < count else [],
            }
        )
    return {"name": name, "category": "HR", "type": "custom", "steps": steps, **extra}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def orchestrator(clock: FakeClock, recorder: RecordingBackend) -> WorkflowOrchestrator:
    return build_orchestrator(clock, recorder)
