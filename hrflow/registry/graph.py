"""
Graph utilities for workflow step traversal.

All functions are pure (no I/O) so they can be called from the registry
at create/publish time and from the orchestrator at transition time.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from ..exceptions import ValidationError
from .models import Step, WorkflowDefinition


def get_entry_points(steps: Iterable[Step]) -> list[str]:
    """Return step ids with no incoming edges."""
    steps = list(steps)
    targets = {target for s in steps for target in s.connected_to}
    return [s.id for s in steps if s.id not in targets]


def get_exit_points(steps: Iterable[Step]) -> list[str]:
    """Return step ids with no successors."""
    return [s.id for s in steps if s.is_terminal]


def validate_steps(steps: Iterable[Step]) -> list[str]:
    """Return every structural problem found in ``steps``.

    A valid graph has unique step ids, edges that resolve inside the same
    definition and exactly one entry step.
    """
    steps = list(steps)
    if not steps:
        return ["Workflow must contain at least one step"]

    errors: list[str] = []
    counts = Counter(s.id for s in steps)
    for step_id, count in counts.items():
        if count > 1:
            errors.append(f"Duplicate step id '{step_id}'")

    known = set(counts)
    for step in steps:
        for target in step.connected_to:
            if target not in known:
                errors.append(
                    f"Step '{step.id}' connects to unknown step '{target}'"
                )

    entries = get_entry_points(steps)
    if len(entries) != 1:
        errors.append(
            f"Workflow must have exactly one entry step, found {len(entries)}"
            + (f": {', '.join(entries)}" if entries else "")
        )
    return errors


def require_valid(definition: WorkflowDefinition) -> None:
    """Raise ``ValidationError`` listing all violations, if any."""
    errors = validate_steps(definition.steps)
    if errors:
        raise ValidationError(
            f"Workflow '{definition.name}' is invalid", violations=errors
        )


def entry_step(definition: WorkflowDefinition) -> Step:
    entries = get_entry_points(definition.steps)
    if len(entries) != 1:
        raise ValidationError(
            f"Workflow '{definition.name}' has no single entry step",
            violations=[f"entry steps: {entries}"],
        )
    return definition.get_step(entries[0])  # type: ignore[return-value]


def successors(definition: WorkflowDefinition, step: Step) -> list[Step]:
    """Successor steps of ``step`` in ``connected_to`` order."""
    result = []
    for target in step.connected_to:
        candidate = definition.get_step(target)
        if candidate is not None:
            result.append(candidate)
    return result
