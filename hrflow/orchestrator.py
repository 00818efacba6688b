"""Workflow orchestrator: the caller-facing API of the engine.

The orchestrator owns the transition algorithm. It loads an instance under
its per-instance lock, resolves the current step from the pinned definition
version, selects a successor by evaluating conditions against the
instance's context data, persists the move and only then dispatches the new
step's actions. ``autoAdvance`` steps are followed within the same locked
call, bounded by ``max_hops``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Union

from .analytics import WorkflowAnalytics, summarize
from .conditions import safe_evaluate
from .config import HrflowConfig, load_config
from .constants import (
    CANCEL_REASON_CYCLE,
    CANCEL_REASON_REJECTED,
    DEFAULT_MAX_HOPS,
    INSTANCES_COLLECTION,
    WORKFLOW_VERSIONS_COLLECTION,
    WORKFLOWS_COLLECTION,
)
from .contracts import AdvanceAction, DispatchResult
from .db import DispatchLogDB
from .dispatch import ActionDispatcher
from .escalation import EscalationMonitor, OverdueInstance
from .exceptions import CycleDetectedError, DefinitionNotActiveError, NotFoundError, ValidationError
from .persistence import EscalationRecord, StepTransition, WorkflowInstance, open_record_store
from .registry import (
    DefinitionRegistry,
    Step,
    WorkflowDefinition,
    WorkflowTemplate,
    definition_from_template,
    entry_step,
    list_templates,
    successors,
)
from .resolver import AssigneeResolver, DirectoryResolver
from .tracker import InstanceTracker
from .utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

_ADVANCE_ACTIONS = ("approve", "reject", "complete")


class WorkflowOrchestrator:
    """Start, advance and cancel workflow instances; manage definitions.

    Args:
        registry: Definition registry.
        tracker: Instance tracker sharing the registry.
        dispatcher: Action dispatcher for step and escalation actions.
        resolver: Assignee resolver for step assignees.
        monitor: Escalation monitor; built from the other parts when omitted.
        clock: Source of "now"; overridable in tests.
        max_hops: Upper bound on steps entered during one call.
    """

    def __init__(
        self,
        registry: DefinitionRegistry,
        tracker: InstanceTracker,
        dispatcher: ActionDispatcher,
        resolver: AssigneeResolver,
        monitor: Optional[EscalationMonitor] = None,
        clock: Clock = utcnow,
        max_hops: int = DEFAULT_MAX_HOPS,
        dispatch_log: Optional[DispatchLogDB] = None,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.resolver = resolver
        self.monitor = monitor or EscalationMonitor(
            tracker, dispatcher, resolver, clock=clock
        )
        self.dispatch_log = dispatch_log
        self._clock = clock
        self.max_hops = max_hops

    @classmethod
    def from_config(
        cls, config: Optional[HrflowConfig] = None, clock: Clock = utcnow
    ) -> "WorkflowOrchestrator":
        """Wire every component from ``config`` (or the loaded default)."""
        config = config or load_config()
        definitions = open_record_store(WORKFLOWS_COLLECTION, config=config)
        versions = open_record_store(WORKFLOW_VERSIONS_COLLECTION, config=config)
        instances = open_record_store(INSTANCES_COLLECTION, config=config)

        dispatch_log = (
            DispatchLogDB(config.dispatch_log_url) if config.dispatch_log_url else None
        )
        resolver = DirectoryResolver.from_config(config.identity)
        dispatcher = ActionDispatcher.from_config(config, resolver=resolver, log=dispatch_log)
        registry = DefinitionRegistry(definitions, versions, instances, clock=clock)
        tracker = InstanceTracker(instances, registry, clock=clock)
        monitor = EscalationMonitor(
            tracker,
            dispatcher,
            resolver,
            clock=clock,
            interval=config.escalation.interval_seconds,
        )
        return cls(
            registry,
            tracker,
            dispatcher,
            resolver,
            monitor=monitor,
            clock=clock,
            max_hops=config.max_hops,
            dispatch_log=dispatch_log,
        )

    async def close(self) -> None:
        await self.dispatcher.close()
        if self.dispatch_log is not None:
            await self.dispatch_log.close()

    # ------------------------------------------------------------------
    # Definitions
    async def create_definition(
        self, definition: Union[WorkflowDefinition, Dict[str, Any]], created_by: str = ""
    ) -> WorkflowDefinition:
        return await self.registry.create(definition, created_by=created_by)

    async def get_definition(self, workflow_id: str) -> WorkflowDefinition:
        return await self.registry.get_by_id(workflow_id)

    async def list_definitions(
        self,
        category: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[WorkflowDefinition]:
        return await self.registry.list(category=category, type=type, status=status)

    async def update_definition(
        self, workflow_id: str, patch: Dict[str, Any]
    ) -> WorkflowDefinition:
        return await self.registry.update(workflow_id, patch)

    async def publish_definition(self, workflow_id: str) -> WorkflowDefinition:
        return await self.registry.publish(workflow_id)

    async def archive_definition(self, workflow_id: str) -> WorkflowDefinition:
        return await self.registry.archive(workflow_id)

    async def delete_definition(self, workflow_id: str) -> None:
        await self.registry.delete(workflow_id)

    def list_templates(self) -> list[WorkflowTemplate]:
        return list_templates()

    async def create_from_template(
        self, template_id: str, name: str, created_by: str = "", **overrides: Any
    ) -> WorkflowDefinition:
        """Create a draft definition from a built-in template."""
        definition = definition_from_template(template_id, name, **overrides)
        return await self.registry.create(definition, created_by=created_by)

    # ------------------------------------------------------------------
    # Instances
    async def get_instance(self, instance_id: str) -> WorkflowInstance:
        return await self.tracker.get(instance_id)

    async def list_instances(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[Union[str, Sequence[str]]] = None,
        assignee_email: Optional[str] = None,
    ) -> list[WorkflowInstance]:
        return await self.tracker.list(
            workflow_id=workflow_id, status=status, assignee_email=assignee_email
        )

    async def start_instance(
        self,
        workflow_id: str,
        title: str,
        assignee_email: str,
        context_data: Optional[Dict[str, Any]] = None,
    ) -> WorkflowInstance:
        """Start an instance of an active definition.

        Raises:
            NotFoundError: unknown definition.
            DefinitionNotActiveError: definition is not active and enabled.
            CycleDetectedError: the autoAdvance cascade exceeded ``max_hops``.
        """
        definition = await self.registry.get_by_id(workflow_id)
        if not definition.is_startable:
            raise DefinitionNotActiveError(
                f"Workflow {workflow_id} is {definition.status}"
                + ("" if definition.enabled else " and disabled"),
                workflow_id=workflow_id,
            )
        entry = entry_step(definition)
        instance = await self.tracker.create(
            definition, entry, title, assignee_email, context_data
        )
        async with self.tracker.lock(instance.id):
            await self._dispatch_step(instance, definition, entry)
            if entry.auto_advance:
                await self._cascade(instance, definition, entry)
            else:
                await self._rest(instance)
        return instance

    async def start_for_event(
        self,
        event: str,
        title: str,
        assignee_email: str,
        context_data: Optional[Dict[str, Any]] = None,
    ) -> list[WorkflowInstance]:
        """Start every definition whose enabled trigger for ``event`` passes."""
        context_data = dict(context_data or {})
        started = []
        for definition in await self.registry.find_by_trigger(event):
            if not any(
                t.enabled and t.event == event and safe_evaluate(t.conditions, context_data)
                for t in definition.triggers
            ):
                continue
            started.append(
                await self.start_instance(
                    definition.id, title, assignee_email, context_data
                )
            )
        logger.info(f"Event '{event}' started {len(started)} instance(s)")
        return started

    async def advance_instance(
        self, instance_id: str, action: AdvanceAction, comments: Optional[str] = None
    ) -> WorkflowInstance:
        """Act on the current step of an instance.

        ``reject`` cancels the whole instance. ``approve`` and ``complete``
        move to the first successor whose conditions pass, completing the
        instance when there is none.

        Raises:
            NotFoundError: unknown instance.
            InstanceTerminatedError: the instance is completed or cancelled.
            CycleDetectedError: the autoAdvance cascade exceeded ``max_hops``.
        """
        if action not in _ADVANCE_ACTIONS:
            raise ValidationError(
                f"Unknown action '{action}'",
                violations=[f"action must be one of {', '.join(_ADVANCE_ACTIONS)}"],
            )
        async with self.tracker.lock(instance_id):
            instance = await self.tracker.get(instance_id)
            self.tracker.ensure_active(instance)
            definition = await self.tracker.definition_for(instance)
            step = self._current_step(instance, definition)

            instance.history.append(
                StepTransition(
                    step_id=step.id, action=action, comments=comments, at=self._clock()
                )
            )
            if action == "reject":
                reason = CANCEL_REASON_REJECTED + (f": {comments}" if comments else "")
                await self.tracker.cancel(instance, reason)
                return instance

            self.monitor.resolve(instance, step.id)
            await self._cascade(instance, definition, step)
            return instance

    async def cancel_instance(self, instance_id: str, reason: str) -> WorkflowInstance:
        """Cancel a non-terminal instance.

        Raises:
            ValidationError: empty reason.
            NotFoundError: unknown instance.
            InstanceTerminatedError: the instance is completed or cancelled.
        """
        if not reason or not reason.strip():
            raise ValidationError(
                "A cancellation reason is required", violations=["reason is empty"]
            )
        async with self.tracker.lock(instance_id):
            instance = await self.tracker.get(instance_id)
            self.tracker.ensure_active(instance)
            instance.history.append(
                StepTransition(
                    step_id=instance.current_step,
                    action="cancel",
                    comments=reason,
                    at=self._clock(),
                )
            )
            await self.tracker.cancel(instance, reason)
            return instance

    async def sweep_escalations(self) -> list[EscalationRecord]:
        return await self.monitor.sweep()

    async def find_overdue(self) -> list[OverdueInstance]:
        return await self.monitor.find_overdue()

    async def analytics(self) -> WorkflowAnalytics:
        definitions = await self.registry.list()
        instances = await self.tracker.list()
        return summarize(definitions, instances)

    # ------------------------------------------------------------------
    # Transition internals. Callers hold the instance lock.
    @staticmethod
    def _current_step(instance: WorkflowInstance, definition: WorkflowDefinition) -> Step:
        step = definition.get_step(instance.current_step)
        if step is None:
            raise NotFoundError(
                f"Step {instance.current_step} not found in workflow "
                f"{definition.id} v{definition.version}",
                kind="step",
                record_id=instance.current_step,
            )
        return step

    @staticmethod
    def _select_successor(
        definition: WorkflowDefinition, step: Step, context_data: Dict[str, Any]
    ) -> Optional[Step]:
        for candidate in successors(definition, step):
            if safe_evaluate(candidate.conditions, context_data):
                return candidate
        return None

    async def _assignee_for(self, instance: WorkflowInstance, step: Step) -> str:
        if not step.assignee and step.assignee_type != "system":
            return instance.assignee_email
        return await self.resolver.resolve(step.assignee, step.assignee_type)

    async def _rest(self, instance: WorkflowInstance) -> None:
        self.tracker.mark_in_progress(instance)
        await self.tracker.save(instance)

    async def _cascade(
        self, instance: WorkflowInstance, definition: WorkflowDefinition, step: Step
    ) -> None:
        """Leave ``step`` and follow autoAdvance steps until the instance rests."""
        hops = 0
        current = step
        while True:
            if current.is_terminal:
                await self.tracker.complete(instance)
                return
            following = self._select_successor(definition, current, instance.context_data)
            if following is None:
                logger.warning(
                    f"No successor of step {current.id} matches instance "
                    f"{instance.id}; completing"
                )
                await self.tracker.complete(instance)
                return

            hops += 1
            if hops > self.max_hops:
                await self.tracker.cancel(instance, CANCEL_REASON_CYCLE)
                raise CycleDetectedError(
                    f"Instance {instance.id} exceeded {self.max_hops} steps in one "
                    f"transition at step {current.id}",
                    hops=hops - 1,
                )

            assignee = await self._assignee_for(instance, following)
            await self.tracker.move_to(instance, following, assignee)
            await self._dispatch_step(instance, definition, following)
            if not following.auto_advance:
                await self._rest(instance)
                return
            current = following

    async def _dispatch_step(
        self, instance: WorkflowInstance, definition: WorkflowDefinition, step: Step
    ) -> list[DispatchResult]:
        """Run ``step``'s actions, saving any write-back they made."""
        if not step.actions:
            return []
        context: Dict[str, Any] = {
            "instance_id": instance.id,
            "workflow_id": instance.workflow_id,
            "step_id": step.id,
            "title": instance.title,
            "assignee_email": instance.assignee_email,
            "context_data": instance.context_data,
        }
        before = dict(instance.context_data)
        results = await self.dispatcher.dispatch_all(
            step.actions, context, definition.integrations
        )
        changed = False
        if context["assignee_email"] != instance.assignee_email:
            instance.assignee_email = context["assignee_email"]
            changed = True
        if instance.context_data != before:
            changed = True
        if changed:
            await self.tracker.save(instance)
        return results
