"""Aggregate statistics over definitions and instances."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field

from .persistence import WorkflowInstance
from .registry import WorkflowDefinition
from .utils.clock import hours_between


class CategoryStats(BaseModel):
    workflows: int = 0
    instances: int = 0


class WorkflowAnalytics(BaseModel):
    total_workflows: int = 0
    active_workflows: int = 0
    total_instances: int = 0
    instances_by_status: Dict[str, int] = Field(default_factory=dict)
    avg_completion_hours: Optional[float] = None
    by_category: Dict[str, CategoryStats] = Field(default_factory=dict)


def summarize(
    definitions: Iterable[WorkflowDefinition],
    instances: Iterable[WorkflowInstance],
) -> WorkflowAnalytics:
    definitions = list(definitions)
    instances = list(instances)

    categories: Dict[str, CategoryStats] = {}
    category_of: Dict[str, str] = {}
    for definition in definitions:
        category_of[definition.id] = definition.category
        categories.setdefault(definition.category, CategoryStats()).workflows += 1

    for instance in instances:
        category = category_of.get(instance.workflow_id)
        if category is not None:
            categories[category].instances += 1

    durations = [
        hours_between(i.started_at, i.completed_at)
        for i in instances
        if i.status == "completed" and i.completed_at is not None
    ]

    return WorkflowAnalytics(
        total_workflows=len(definitions),
        active_workflows=sum(1 for d in definitions if d.status == "active"),
        total_instances=len(instances),
        instances_by_status=dict(Counter(i.status for i in instances)),
        avg_completion_hours=(
            round(sum(durations) / len(durations), 2) if durations else None
        ),
        by_category=categories,
    )
