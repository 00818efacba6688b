"""Command line interface for managing hrflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from hrflow.cli_utils.files import load_definition_file, parse_context
from hrflow.config import load_config
from hrflow.exceptions import HrflowError, ValidationError
from hrflow.orchestrator import WorkflowOrchestrator
from hrflow.persistence import WorkflowInstance
from hrflow.registry import WorkflowDefinition, list_templates

T = TypeVar("T")

app = typer.Typer(help="CLI for hrflow HR workflows")

# Command groups
definition_app = typer.Typer(help="Commands for managing workflow definitions")
template_app = typer.Typer(help="Commands for built-in workflow templates")
instance_app = typer.Typer(help="Commands for running workflow instances")
escalation_app = typer.Typer(help="Commands for step escalation")

app.add_typer(definition_app, name="definition")
app.add_typer(template_app, name="template")
app.add_typer(instance_app, name="instance")
app.add_typer(escalation_app, name="escalation")


@app.callback()
def main() -> None:
    """hrflow CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(operation: Callable[[WorkflowOrchestrator], Awaitable[T]]) -> T:
    """Run ``operation`` against a freshly wired orchestrator.

    Typed engine errors become a red message and exit code 1.
    """

    async def runner() -> T:
        orchestrator = WorkflowOrchestrator.from_config()
        try:
            return await operation(orchestrator)
        finally:
            await orchestrator.close()

    try:
        return asyncio.run(runner())
    except ValidationError as exc:
        typer.secho(exc.message, fg=typer.colors.RED)
        for violation in exc.violations:
            typer.secho(f"  - {violation}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except HrflowError as exc:
        typer.secho(exc.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_definition(definition: WorkflowDefinition) -> None:
    typer.echo(
        f"Workflow {definition.id}: {definition.name} "
        f"[{definition.status}] v{definition.version}"
    )
    typer.echo(
        f"Category: {definition.category}  Type: {definition.type}  "
        f"Deadline: {definition.deadline_days}d  Enabled: {definition.enabled}"
    )
    for step in definition.steps:
        flags = " auto" if step.auto_advance else ""
        target = ", ".join(step.connected_to) or "(end)"
        typer.echo(
            f"- {step.id} ({step.type}{flags}) {step.name} "
            f"assignee={step.assignee or '-'}:{step.assignee_type} -> {target}"
        )


def _echo_instance(instance: WorkflowInstance) -> None:
    typer.echo(f"Instance {instance.id}: {instance.status}")
    typer.echo(f"Title: {instance.title}")
    typer.echo(
        f"Workflow: {instance.workflow_id} v{instance.workflow_version}  "
        f"Step: {instance.current_step}  Assignee: {instance.assignee_email or '-'}"
    )
    typer.echo(f"Started: {instance.started_at}  Deadline: {instance.deadline}")
    if instance.completed_at:
        typer.echo(f"Finished: {instance.completed_at}")
    if instance.cancellation_reason:
        typer.echo(f"Cancellation reason: {instance.cancellation_reason}")
    if instance.context_data:
        typer.echo(f"Context: {json.dumps(instance.context_data, default=str)}")
    for entry in instance.history:
        typer.echo(
            f"- {entry.step_id}: {entry.action} at {entry.at}"
            + (f" ({entry.comments})" if entry.comments else "")
        )
    for record in instance.escalations:
        state = "resolved" if record.resolved else "open"
        typer.echo(
            f"! escalated {record.step_id} to {record.escalated_to} "
            f"at {record.escalated_at} ({record.reason}, {state})"
        )


# ----------------------------------------------------------------------
# Definitions
@definition_app.command("create")
def definition_create(
    path: Path, created_by: str = typer.Option("", help="Author recorded on the definition")
) -> None:
    """
    Create a draft workflow definition from a YAML or JSON file.

    Example:
        hrflow definition create ./leave_approval.yaml
    """
    try:
        data = load_definition_file(path)
    except (OSError, ValueError) as exc:
        typer.secho(f"Cannot read {path}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    definition = _run(lambda o: o.create_definition(data, created_by=created_by))
    typer.echo(f"Created workflow {definition.id} ({definition.status})")


@definition_app.command("list")
def definition_list(
    category: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
) -> None:
    """List workflow definitions, optionally filtered."""
    definitions = _run(
        lambda o: o.list_definitions(category=category, type=type, status=status)
    )
    if not definitions:
        typer.echo("No workflows found")
        return
    for d in definitions:
        typer.echo(f"{d.id}\t{d.status}\tv{d.version}\t{d.category}\t{d.name}")


@definition_app.command("show")
def definition_show(workflow_id: str) -> None:
    """Show a workflow definition and its step graph."""
    _echo_definition(_run(lambda o: o.get_definition(workflow_id)))


@definition_app.command("publish")
def definition_publish(workflow_id: str) -> None:
    """Move a draft definition to active."""
    definition = _run(lambda o: o.publish_definition(workflow_id))
    typer.echo(f"Workflow {definition.id} is {definition.status}")


@definition_app.command("archive")
def definition_archive(workflow_id: str) -> None:
    """Archive an active definition. Running instances continue."""
    definition = _run(lambda o: o.archive_definition(workflow_id))
    typer.echo(f"Workflow {definition.id} is {definition.status}")


@definition_app.command("delete")
def definition_delete(workflow_id: str) -> None:
    """Delete a definition that has no running instances."""
    _run(lambda o: o.delete_definition(workflow_id))
    typer.echo(f"Deleted workflow {workflow_id}")


# ----------------------------------------------------------------------
# Templates
@template_app.command("list")
def template_list() -> None:
    """List built-in templates."""
    for template in list_templates():
        typer.echo(
            f"{template.id}\t{template.category}\t{template.name} - {template.description}"
        )


@template_app.command("create")
def template_create(template_id: str, name: str) -> None:
    """
    Create a draft definition from a built-in template.

    Example:
        hrflow template create template_simple_approval "Laptop request"
    """
    definition = _run(lambda o: o.create_from_template(template_id, name))
    typer.echo(f"Created workflow {definition.id} from {template_id}")


# ----------------------------------------------------------------------
# Instances
@instance_app.command("start")
def instance_start(
    workflow_id: str,
    title: str,
    assignee: str,
    context: Optional[str] = typer.Option(None, help="Context data as a JSON object"),
) -> None:
    """
    Start an instance of an active workflow.

    Example:
        hrflow instance start <workflow-id> "Annual leave" jane@company.com --context '{"days": 5}'
    """
    try:
        context_data = parse_context(context)
    except ValueError as exc:
        typer.secho(f"Invalid context: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    instance = _run(lambda o: o.start_instance(workflow_id, title, assignee, context_data))
    typer.echo(f"Started instance {instance.id}: {instance.status} at {instance.current_step}")


@instance_app.command("advance")
def instance_advance(
    instance_id: str,
    action: str = typer.Argument(..., help="approve, reject or complete"),
    comments: Optional[str] = None,
) -> None:
    """Approve, reject or complete the current step of an instance."""
    instance = _run(lambda o: o.advance_instance(instance_id, action, comments))  # type: ignore[arg-type]
    typer.echo(f"Instance {instance.id}: {instance.status} at {instance.current_step}")


@instance_app.command("cancel")
def instance_cancel(instance_id: str, reason: str) -> None:
    """Cancel a running instance."""
    instance = _run(lambda o: o.cancel_instance(instance_id, reason))
    typer.echo(f"Instance {instance.id}: {instance.status}")


@instance_app.command("list")
def instance_list(
    workflow: Optional[str] = None,
    status: Optional[str] = None,
    assignee: Optional[str] = None,
) -> None:
    """List instances, optionally filtered by workflow, status or assignee."""
    instances = _run(
        lambda o: o.list_instances(
            workflow_id=workflow, status=status, assignee_email=assignee
        )
    )
    if not instances:
        typer.echo("No instances found")
        return
    for i in instances:
        typer.echo(f"{i.id}\t{i.status}\t{i.current_step}\t{i.assignee_email}\t{i.title}")


@instance_app.command("show")
def instance_show(instance_id: str) -> None:
    """Show an instance with its history and escalations."""
    _echo_instance(_run(lambda o: o.get_instance(instance_id)))


# ----------------------------------------------------------------------
# Escalation
@escalation_app.command("sweep")
def escalation_sweep() -> None:
    """Run one escalation sweep."""
    records = _run(lambda o: o.sweep_escalations())
    typer.echo(f"Escalated {len(records)} step(s)")
    for record in records:
        typer.echo(f"- {record.step_id} -> {record.escalated_to}")


@escalation_app.command("watch")
def escalation_watch(
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run until stopped)"
    ),
) -> None:
    """Sweep for escalations every configured interval."""
    typer.echo("Watching for overdue steps")
    _run(lambda o: o.monitor.run(lifespan=lifespan))


@escalation_app.command("overdue")
def escalation_overdue() -> None:
    """List instances past a step time limit or their deadline."""
    overdue = _run(lambda o: o.find_overdue())
    if not overdue:
        typer.echo("No overdue instances")
        return
    for item in overdue:
        reasons = []
        if item.step_overdue:
            reasons.append(f"step over {item.time_limit}h")
        if item.deadline_passed:
            reasons.append("deadline passed")
        typer.echo(
            f"{item.instance_id}\t{item.current_step}\t{item.hours_on_step}h\t"
            f"{', '.join(reasons)}\t{item.title}"
        )


@app.command("analytics")
def analytics() -> None:
    """Show workflow and instance statistics."""
    stats = _run(lambda o: o.analytics())
    typer.echo(f"Workflows: {stats.total_workflows} ({stats.active_workflows} active)")
    typer.echo(f"Instances: {stats.total_instances}")
    for status, count in sorted(stats.instances_by_status.items()):
        typer.echo(f"  {status}: {count}")
    if stats.avg_completion_hours is not None:
        typer.echo(f"Average completion: {stats.avg_completion_hours}h")
    for category, item in sorted(stats.by_category.items()):
        typer.echo(f"{category}: {item.workflows} workflow(s), {item.instances} instance(s)")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
