"""
DefinitionRegistry: lifecycle management for WorkflowDefinition records.

Definitions move draft -> active -> archived. Every successful edit bumps
``version`` and writes an immutable snapshot to the versions store so that
running instances keep resolving steps against the version they started
on.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Optional, Union

import pydantic

from ..exceptions import InvalidStateError, NotFoundError, StepInUseError, ValidationError
from ..persistence import IN_FLIGHT_STATUSES, RecordStore
from ..utils.clock import Clock, utcnow
from .graph import require_valid
from .models import WorkflowDefinition

logger = logging.getLogger(__name__)

# Fields only the registry itself may change.
_PROTECTED_FIELDS = frozenset(
    {"id", "status", "version", "usage_count", "avg_completion_time", "created_at"}
)

# Maintained by record_completion, never written back by update.
_STATISTICS_FIELDS = frozenset({"usage_count", "avg_completion_time"})


def _snapshot_id(workflow_id: str, version: int) -> str:
    return f"{workflow_id}@{version}"


def _violations(exc: pydantic.ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]


def parse_definition(data: Union[WorkflowDefinition, dict[str, Any]]) -> WorkflowDefinition:
    """Coerce ``data`` into a definition, mapping schema errors to ``ValidationError``."""
    if isinstance(data, WorkflowDefinition):
        return data.model_copy(deep=True)
    try:
        return WorkflowDefinition.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Workflow definition does not match the schema",
            violations=_violations(exc),
        ) from exc


def _normalize_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Translate camelCase keys to field names and reject unknown ones."""
    fields = WorkflowDefinition.model_fields
    by_alias = {info.alias: name for name, info in fields.items() if info.alias}
    normalized: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in patch.items():
        name = key if key in fields else by_alias.get(key)
        if name is None:
            unknown.append(key)
        else:
            normalized[name] = value
    if unknown:
        raise ValidationError(
            "Patch contains unknown fields",
            violations=[f"unknown field '{k}'" for k in unknown],
        )
    return normalized


class DefinitionRegistry:
    """Owns workflow definitions and their version snapshots.

    Args:
        store: Record store for the current definitions.
        versions: Record store for immutable per-version snapshots.
        instances: Optional read-only view of instance records, used to
            refuse edits and deletes that would strand running instances.
        clock: Source of "now"; overridable in tests.
    """

    def __init__(
        self,
        store: RecordStore,
        versions: RecordStore,
        instances: Optional[RecordStore] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._versions = versions
        self._instances = instances
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _lock(self, workflow_id: str) -> asyncio.Lock:
        """Lock serialising read-modify-write cycles on one definition."""
        lock = self._locks.get(workflow_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[workflow_id] = lock
        return lock

    async def _save_snapshot(self, definition: WorkflowDefinition) -> None:
        record = definition.model_dump(mode="json")
        record["id"] = _snapshot_id(definition.id, definition.version)
        record["workflow_id"] = definition.id
        await self._versions.create(record)

    async def _in_flight(self, workflow_id: str) -> list[dict[str, Any]]:
        if self._instances is None:
            return []
        return await self._instances.query(
            {"workflow_id": workflow_id, "status": list(IN_FLIGHT_STATUSES)}
        )

    async def _set_status(
        self, workflow_id: str, expected: str, new_status: str
    ) -> WorkflowDefinition:
        definition = await self.get_by_id(workflow_id)
        if definition.status != expected:
            raise InvalidStateError(
                f"Workflow {workflow_id} is '{definition.status}', expected '{expected}'",
                status=definition.status,
            )
        definition.status = new_status
        definition.updated_at = self._clock()
        await self._store.update(
            workflow_id,
            {"status": new_status, "updated_at": definition.updated_at.isoformat()},
        )
        logger.info(f"Workflow {workflow_id} moved {expected} -> {new_status}")
        return definition

    # ── CRUD ──────────────────────────────────────────────────────────────────

    async def create(
        self,
        definition: Union[WorkflowDefinition, dict[str, Any]],
        created_by: str = "",
    ) -> WorkflowDefinition:
        """Validate and persist a new definition in draft status.

        Raises:
            ValidationError: malformed definition or graph.
        """
        workflow = parse_definition(definition)
        require_valid(workflow)

        now = self._clock()
        workflow.status = "draft"
        workflow.version = 1
        workflow.usage_count = 0
        workflow.avg_completion_time = None
        workflow.created_at = now
        workflow.updated_at = now
        if created_by:
            workflow.created_by = created_by

        await self._store.create(workflow.model_dump(mode="json"))
        await self._save_snapshot(workflow)
        logger.info(f"Created workflow {workflow.id} ('{workflow.name}')")
        return workflow

    async def find(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        record = await self._store.get_by_id(workflow_id)
        return WorkflowDefinition.model_validate(record) if record else None

    async def get_by_id(self, workflow_id: str) -> WorkflowDefinition:
        definition = await self.find(workflow_id)
        if definition is None:
            raise NotFoundError(
                f"Workflow {workflow_id} not found", kind="workflow", record_id=workflow_id
            )
        return definition

    async def get_version(self, workflow_id: str, version: int) -> WorkflowDefinition:
        """Return the snapshot of ``workflow_id`` at ``version``."""
        record = await self._versions.get_by_id(_snapshot_id(workflow_id, version))
        if record is None:
            raise NotFoundError(
                f"Workflow {workflow_id} has no version {version}",
                kind="workflow_version",
                record_id=_snapshot_id(workflow_id, version),
            )
        record["id"] = record.pop("workflow_id")
        return WorkflowDefinition.model_validate(record)

    async def list(
        self,
        category: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
        enabled: Optional[bool] = None,
    ) -> list[WorkflowDefinition]:
        filters: dict[str, Any] = {}
        if category:
            filters["category"] = category
        if type:
            filters["type"] = type
        if status:
            filters["status"] = status
        if enabled is not None:
            filters["enabled"] = enabled
        records = await self._store.query(filters)
        return [WorkflowDefinition.model_validate(r) for r in records]

    async def find_by_category(self, category: str) -> list[WorkflowDefinition]:
        return await self.list(category=category)

    async def find_by_type(self, type: str) -> list[WorkflowDefinition]:
        return await self.list(type=type)

    async def find_by_trigger(self, event: str) -> list[WorkflowDefinition]:
        """Startable definitions that declare an enabled trigger for ``event``."""
        candidates = await self.list(status="active", enabled=True)
        return [
            d
            for d in candidates
            if any(t.enabled and t.event == event for t in d.triggers)
        ]

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def publish(self, workflow_id: str) -> WorkflowDefinition:
        """draft -> active."""
        definition = await self.get_by_id(workflow_id)
        require_valid(definition)
        return await self._set_status(workflow_id, "draft", "active")

    async def archive(self, workflow_id: str) -> WorkflowDefinition:
        """active -> archived. Running instances keep their pinned version."""
        return await self._set_status(workflow_id, "active", "archived")

    async def update(self, workflow_id: str, patch: dict[str, Any]) -> WorkflowDefinition:
        """Apply ``patch`` and bump the version.

        Raises:
            ValidationError: patch touches protected fields or breaks the graph.
            InvalidStateError: definition is archived.
            StepInUseError: patch removes a step an in-flight instance sits on.
        """
        async with self._lock(workflow_id):
            return await self._apply_update(workflow_id, patch)

    async def _apply_update(
        self, workflow_id: str, patch: dict[str, Any]
    ) -> WorkflowDefinition:
        current = await self.get_by_id(workflow_id)
        if current.status == "archived":
            raise InvalidStateError(
                f"Workflow {workflow_id} is archived and cannot be edited",
                status=current.status,
            )

        changes = _normalize_patch(patch)
        protected = sorted(_PROTECTED_FIELDS & changes.keys())
        if protected:
            raise ValidationError(
                "Patch modifies protected fields",
                violations=[f"'{name}' cannot be patched" for name in protected],
            )

        merged = current.model_dump()
        merged.update(changes)
        updated = parse_definition(merged)
        require_valid(updated)

        if "steps" in changes:
            remaining = set(updated.step_ids())
            stranded = sorted(
                {
                    r["current_step"]
                    for r in await self._in_flight(workflow_id)
                    if r["current_step"] not in remaining
                }
            )
            if stranded:
                raise StepInUseError(
                    f"Steps still in use by running instances: {', '.join(stranded)}",
                    step_ids=stranded,
                )

        updated.version = current.version + 1
        updated.updated_at = self._clock()
        await self._store.update(
            workflow_id, updated.model_dump(mode="json", exclude=set(_STATISTICS_FIELDS))
        )
        await self._save_snapshot(updated)
        logger.info(f"Workflow {workflow_id} updated to version {updated.version}")
        return updated

    async def delete(self, workflow_id: str) -> None:
        """Remove a definition and its snapshots once nothing is running on it."""
        definition = await self.get_by_id(workflow_id)
        running = await self._in_flight(workflow_id)
        if running:
            raise InvalidStateError(
                f"Workflow {workflow_id} has {len(running)} running instance(s)",
                status=definition.status,
            )
        for version in range(1, definition.version + 1):
            if await self._versions.get_by_id(_snapshot_id(workflow_id, version)):
                await self._versions.delete(_snapshot_id(workflow_id, version))
        await self._store.delete(workflow_id)
        logger.info(f"Deleted workflow {workflow_id}")

    # ── Statistics ────────────────────────────────────────────────────────────

    async def record_completion(self, workflow_id: str, hours: float) -> None:
        """Fold one completed instance into the usage statistics."""
        async with self._lock(workflow_id):
            definition = await self.find(workflow_id)
            if definition is None:
                return
            count = definition.usage_count + 1
            previous = definition.avg_completion_time or 0.0
            average = previous + (hours - previous) / count
            await self._store.update(
                workflow_id,
                {"usage_count": count, "avg_completion_time": round(average, 4)},
            )
