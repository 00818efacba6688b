"""Workflow definition models, graph checks and the definition registry."""

from __future__ import annotations

from .models import (
    EscalationRule,
    Integration,
    Step,
    Trigger,
    WorkflowDefinition,
    WorkflowTemplate,
)
from .graph import entry_step, get_entry_points, require_valid, successors, validate_steps
from .definitions import DefinitionRegistry, parse_definition
from .templates import definition_from_template, get_template, list_templates

__all__ = [
    "DefinitionRegistry",
    "EscalationRule",
    "Integration",
    "Step",
    "Trigger",
    "WorkflowDefinition",
    "WorkflowTemplate",
    "definition_from_template",
    "entry_step",
    "get_entry_points",
    "get_template",
    "list_templates",
    "parse_definition",
    "require_valid",
    "successors",
    "validate_steps",
]
