"""Time-based escalation of idle workflow steps."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from .constants import DEFAULT_ESCALATION_INTERVAL_SECONDS, ESCALATION_REASON_TIMEOUT
from .contracts import EmailAction, EmailConfig
from .dispatch import ActionDispatcher
from .exceptions import InstanceTerminatedError, NotFoundError
from .persistence import EscalationRecord, WorkflowInstance
from .registry import Step, WorkflowDefinition
from .resolver import AssigneeResolver
from .tracker import InstanceTracker
from .utils.clock import Clock, hours_between, utcnow

logger = logging.getLogger(__name__)

_SWEPT_STATUSES = ("in_progress", "escalated")


class OverdueInstance(BaseModel):
    """Report row for an instance past its step time limit or deadline."""

    instance_id: str
    workflow_id: str
    title: str
    current_step: str
    assignee_email: str
    hours_on_step: float
    time_limit: Optional[float] = None
    deadline: datetime
    step_overdue: bool = False
    deadline_passed: bool = False


class EscalationMonitor:
    """Periodic sweep that escalates steps idle beyond their timeout.

    Each candidate is re-read under the tracker's per-instance lock before
    anything is written, so a sweep racing an ``advance`` never duplicates
    or resurrects an escalation.
    """

    def __init__(
        self,
        tracker: InstanceTracker,
        dispatcher: ActionDispatcher,
        resolver: AssigneeResolver,
        clock: Clock = utcnow,
        interval: float = DEFAULT_ESCALATION_INTERVAL_SECONDS,
    ) -> None:
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._clock = clock
        self.interval = interval

    def _due(self, instance: WorkflowInstance, step: Optional[Step]) -> bool:
        if step is None or step.escalation is None or not step.escalation.enabled:
            return False
        if instance.unresolved_escalations(step.id):
            return False
        elapsed = hours_between(instance.step_started_at, self._clock())
        return elapsed > step.escalation.timeout_hours

    async def check(self, instance_id: str) -> Optional[EscalationRecord]:
        """Escalate ``instance_id`` if its current step is overdue.

        Raises:
            NotFoundError: unknown instance.
            InstanceTerminatedError: the instance is completed or cancelled.
        """
        async with self._tracker.lock(instance_id):
            instance = await self._tracker.get(instance_id)
            self._tracker.ensure_active(instance)
            definition = await self._tracker.definition_for(instance)
            step = definition.get_step(instance.current_step)
            if not self._due(instance, step):
                return None
            return await self._escalate(instance, definition, step)

    async def _escalate(
        self, instance: WorkflowInstance, definition: WorkflowDefinition, step: Step
    ) -> EscalationRecord:
        rule = step.escalation
        target = await self._resolver.resolve(rule.escalate_to, rule.escalation_type)
        record = EscalationRecord(
            step_id=step.id,
            escalated_at=self._clock(),
            escalated_to=target,
            reason=ESCALATION_REASON_TIMEOUT,
        )
        instance.escalations.append(record)
        instance.status = "escalated"
        instance.assignee_email = target
        await self._tracker.save(instance)
        logger.warning(
            f"Escalated instance {instance.id} at step {step.id} to {target} "
            f"after {rule.timeout_hours}h"
        )

        notification = EmailAction(
            config=EmailConfig(
                recipients=[target],
                subject=f"Escalation: {instance.title}",
                message=rule.notification_message,
            )
        )
        await self._dispatcher.dispatch(
            notification,
            self._context(instance, step, target),
            definition.integrations,
        )
        return record

    @staticmethod
    def _context(
        instance: WorkflowInstance, step: Step, target: str
    ) -> Dict[str, Any]:
        return {
            "instance_id": instance.id,
            "workflow_id": instance.workflow_id,
            "step_id": step.id,
            "title": instance.title,
            "assignee_email": target,
            "context_data": instance.context_data,
        }

    def resolve(self, instance: WorkflowInstance, step_id: str) -> int:
        """Mark open escalations of ``step_id`` resolved.

        Called by the orchestrator inside the locked transition that moves
        the instance off ``step_id``; the caller saves the instance.
        """
        open_records = instance.unresolved_escalations(step_id)
        now = self._clock()
        for record in open_records:
            record.resolved = True
            record.resolved_at = now
        if instance.status == "escalated" and not instance.unresolved_escalations():
            instance.status = "in_progress"
        if open_records:
            logger.info(
                f"Resolved {len(open_records)} escalation(s) on instance "
                f"{instance.id} step {step_id}"
            )
        return len(open_records)

    async def sweep(self) -> list[EscalationRecord]:
        """Run one pass over every in-progress or escalated instance."""
        created: list[EscalationRecord] = []
        for candidate in await self._tracker.list(status=list(_SWEPT_STATUSES)):
            try:
                record = await self.check(candidate.id)
            except (InstanceTerminatedError, NotFoundError) as exc:
                # Finished or removed between the query and taking the lock.
                logger.debug(f"Skipping {candidate.id}: {exc}")
                continue
            if record is not None:
                created.append(record)
        logger.debug(f"Escalation sweep created {len(created)} record(s)")
        return created

    async def find_overdue(self) -> list[OverdueInstance]:
        """In-flight instances past a step time limit or the instance deadline."""
        now = self._clock()
        report: list[OverdueInstance] = []
        for instance in await self._tracker.in_flight():
            definition = await self._tracker.definition_for(instance)
            step = definition.get_step(instance.current_step)
            hours = hours_between(instance.step_started_at, now)
            time_limit = step.time_limit if step is not None else None
            step_overdue = (
                time_limit is not None
                and step is not None
                and not step.auto_advance
                and hours > time_limit
            )
            deadline_passed = now > instance.deadline
            if not (step_overdue or deadline_passed):
                continue
            logger.warning(
                f"Instance {instance.id} is overdue at step {instance.current_step} "
                f"({hours:.1f}h on step, deadline {instance.deadline.isoformat()})"
            )
            report.append(
                OverdueInstance(
                    instance_id=instance.id,
                    workflow_id=instance.workflow_id,
                    title=instance.title,
                    current_step=instance.current_step,
                    assignee_email=instance.assignee_email,
                    hours_on_step=round(hours, 2),
                    time_limit=time_limit,
                    deadline=instance.deadline,
                    step_overdue=step_overdue,
                    deadline_passed=deadline_passed,
                )
            )
        return report

    async def run(self, lifespan: Optional[float] = None) -> None:
        """Sweep every ``interval`` seconds, forever or for ``lifespan`` seconds."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("Escalation sweep failed")
            if lifespan is not None:
                remaining = lifespan - (loop.time() - started)
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self.interval, remaining))
            else:
                await asyncio.sleep(self.interval)
