"""Instance tracker: persistence and state primitives for workflow instances."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import timedelta
from typing import Any, Dict, Optional, Sequence, Union

from .exceptions import InstanceTerminatedError, NotFoundError
from .persistence import IN_FLIGHT_STATUSES, RecordStore, WorkflowInstance
from .registry import DefinitionRegistry, Step, WorkflowDefinition
from .utils.clock import Clock, hours_between, utcnow

logger = logging.getLogger(__name__)


class InstanceTracker:
    """Creates, loads and transitions workflow instances.

    Every mutation of one instance must happen while holding
    ``tracker.lock(instance_id)``; the orchestrator and the escalation
    monitor both follow this rule. Locks are per instance, never global.
    """

    def __init__(
        self,
        store: RecordStore,
        registry: DefinitionRegistry,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._registry = registry
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def lock(self, instance_id: str) -> asyncio.Lock:
        """Return the lock serialising operations on ``instance_id``."""
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instance_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Persistence
    async def create(
        self,
        definition: WorkflowDefinition,
        entry: Step,
        title: str,
        assignee_email: str,
        context_data: Optional[Dict[str, Any]] = None,
    ) -> WorkflowInstance:
        now = self._clock()
        instance = WorkflowInstance(
            workflow_id=definition.id,
            workflow_version=definition.version,
            title=title,
            status="pending",
            current_step=entry.id,
            assignee_email=assignee_email,
            context_data=dict(context_data or {}),
            started_at=now,
            step_started_at=now,
            deadline=now + timedelta(days=definition.deadline_days),
        )
        await self._store.create(instance.model_dump(mode="json"))
        logger.info(
            f"Started instance {instance.id} of workflow {definition.id} "
            f"v{definition.version} at step {entry.id}"
        )
        return instance

    async def find(self, instance_id: str) -> Optional[WorkflowInstance]:
        record = await self._store.get_by_id(instance_id)
        return WorkflowInstance.model_validate(record) if record else None

    async def get(self, instance_id: str) -> WorkflowInstance:
        instance = await self.find(instance_id)
        if instance is None:
            raise NotFoundError(
                f"Instance {instance_id} not found", kind="instance", record_id=instance_id
            )
        return instance

    async def save(self, instance: WorkflowInstance) -> None:
        await self._store.update(instance.id, instance.model_dump(mode="json"))

    async def list(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[Union[str, Sequence[str]]] = None,
        assignee_email: Optional[str] = None,
    ) -> list[WorkflowInstance]:
        filters: dict[str, Any] = {}
        if workflow_id:
            filters["workflow_id"] = workflow_id
        if status:
            filters["status"] = status if isinstance(status, str) else list(status)
        if assignee_email:
            filters["assignee_email"] = assignee_email
        records = await self._store.query(filters)
        return [WorkflowInstance.model_validate(r) for r in records]

    async def in_flight(self) -> list[WorkflowInstance]:
        return await self.list(status=IN_FLIGHT_STATUSES)

    async def definition_for(self, instance: WorkflowInstance) -> WorkflowDefinition:
        """The definition version the instance was started on."""
        return await self._registry.get_version(
            instance.workflow_id, instance.workflow_version
        )

    # ------------------------------------------------------------------
    # State primitives. Callers hold the instance lock and save afterwards
    # unless the method saves itself.
    @staticmethod
    def ensure_active(instance: WorkflowInstance) -> None:
        if instance.is_terminal:
            raise InstanceTerminatedError(
                f"Instance {instance.id} is {instance.status}",
                instance_id=instance.id,
                status=instance.status,
            )

    @staticmethod
    def mark_in_progress(instance: WorkflowInstance) -> None:
        if instance.status == "pending":
            instance.status = "in_progress"

    async def move_to(
        self, instance: WorkflowInstance, step: Step, assignee_email: str
    ) -> None:
        """Make ``step`` current and persist before any of its actions run."""
        previous = instance.current_step
        instance.current_step = step.id
        instance.step_started_at = self._clock()
        instance.assignee_email = assignee_email
        await self.save(instance)
        logger.info(f"Instance {instance.id} advanced {previous} -> {step.id}")

    async def complete(self, instance: WorkflowInstance) -> None:
        now = self._clock()
        instance.status = "completed"
        instance.completed_at = now
        await self.save(instance)
        await self._registry.record_completion(
            instance.workflow_id, hours_between(instance.started_at, now)
        )
        logger.info(f"Instance {instance.id} completed at step {instance.current_step}")

    async def cancel(self, instance: WorkflowInstance, reason: str) -> None:
        instance.status = "cancelled"
        instance.completed_at = self._clock()
        instance.cancellation_reason = reason
        await self.save(instance)
        logger.info(f"Instance {instance.id} cancelled: {reason}")
