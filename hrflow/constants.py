"""Shared constants for hrflow."""

DEFAULT_MAX_HOPS = 100
DEFAULT_ESCALATION_INTERVAL_SECONDS = 60.0
DEFAULT_DISPATCH_TIMEOUT_SECONDS = 5.0
DEFAULT_DISPATCH_MAX_ATTEMPTS = 3

WORKFLOWS_COLLECTION = "workflows"
WORKFLOW_VERSIONS_COLLECTION = "workflow_versions"
INSTANCES_COLLECTION = "workflow_instances"

ESCALATION_REASON_TIMEOUT = "timeout"
CANCEL_REASON_REJECTED = "rejected"
CANCEL_REASON_CYCLE = "cycle detected"
