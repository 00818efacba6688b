"""hrflow: HR workflow engine with versioned definitions and escalations."""

from .conditions import evaluate
from .contracts import ActionDescriptor, Condition, DispatchResult
from .dispatch import ActionDispatcher
from .escalation import EscalationMonitor
from .orchestrator import WorkflowOrchestrator
from .persistence import WorkflowInstance, open_record_store
from .registry import DefinitionRegistry, Step, WorkflowDefinition
from .tracker import InstanceTracker

__version__ = "0.1.0"
__all__ = [
    "ActionDescriptor",
    "ActionDispatcher",
    "Condition",
    "DefinitionRegistry",
    "DispatchResult",
    "EscalationMonitor",
    "InstanceTracker",
    "Step",
    "WorkflowDefinition",
    "WorkflowInstance",
    "WorkflowOrchestrator",
    "evaluate",
    "open_record_store",
]
