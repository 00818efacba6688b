"""Typed exception hierarchy. Every error hrflow can raise."""

from __future__ import annotations

from typing import Optional


class HrflowError(Exception):
    """Base exception for all hrflow errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class WorkflowError(HrflowError):
    """Base for errors surfaced to callers of the orchestrator API."""


class ValidationError(WorkflowError):
    """Definition is malformed: bad graph, missing entry step, bad patch."""

    def __init__(self, message: str, violations: Optional[list[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []


class InvalidStateError(WorkflowError):
    """Illegal lifecycle transition on a definition."""

    def __init__(self, message: str, status: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.status = status


class StepInUseError(WorkflowError):
    """Edit would remove a step an in-flight instance is sitting on."""

    def __init__(self, message: str, step_ids: Optional[list[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_ids = step_ids or []


class DefinitionNotActiveError(WorkflowError):
    """Start attempted against a draft, archived or disabled definition."""

    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class NotFoundError(WorkflowError):
    """Unknown instance, definition or template id."""

    def __init__(self, message: str, kind: str = "", record_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.record_id = record_id


class InstanceTerminatedError(WorkflowError):
    """Operation attempted on a completed or cancelled instance."""

    def __init__(self, message: str, instance_id: str = "", status: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.instance_id = instance_id
        self.status = status


class CycleDetectedError(WorkflowError):
    """autoAdvance cascade exceeded the hop guard."""

    def __init__(self, message: str, hops: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.hops = hops


class TypeMismatchError(HrflowError):
    """Ordering comparison on a value that is not numeric.

    Raised by the condition evaluator only; the orchestrator downgrades it
    to a failed condition.
    """

    def __init__(self, message: str, field: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
