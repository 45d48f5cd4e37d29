"""Command line interface for inspecting and reviewing roomflow workflows."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from roomflow.cli_utils.formatting import (
    _format_entry,
    _format_instance,
    _format_instance_line,
    _format_pending,
)
from roomflow.config import RoomflowConfig, configure_logging, load_config
from roomflow.contracts import Actor
from roomflow.engine import WorkflowEngine
from roomflow.errors import WorkflowError
from roomflow.ledger import AuditLedger, get_ledger
from roomflow.permissions import RoleMatrixGate
from roomflow.persistence import WorkflowRepository, get_repository
from roomflow.service import WorkflowService
from roomflow.templates import TemplateRegistry

app = typer.Typer(help="CLI for roomflow approval workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting and reviewing workflows")
ledger_app = typer.Typer(help="Commands for reading the audit ledger")

app.add_typer(workflow_app, name="workflow")
app.add_typer(ledger_app, name="ledger")

_config: Optional[RoomflowConfig] = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", help="Path to roomflow.yaml"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
) -> None:
    """roomflow CLI entry point."""
    global _config
    _config = load_config(config)
    configure_logging(log_level, config=_config)


def _get_config() -> RoomflowConfig:
    return _config or load_config()


def _repository() -> WorkflowRepository:
    return get_repository(config=_get_config())


def _ledger() -> AuditLedger:
    return get_ledger(config=_get_config())


def _service() -> WorkflowService:
    config = _get_config()
    gate = RoleMatrixGate(config.permissions, superuser_roles=config.superuser_roles)
    return WorkflowService(
        repository=_repository(),
        engine=WorkflowEngine(gate=gate, ledger=_ledger()),
        registry=TemplateRegistry(config),
        config=config,
    )


def _fail(exc: WorkflowError) -> None:
    typer.secho(f"{exc.code}: {exc.message}", fg=typer.colors.RED)
    gaps = getattr(exc, "gaps", None) or []
    for gap in gaps:
        typer.secho(f"  - {gap.message}", fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.command("templates")
def templates() -> None:
    """
    List the registered workflow templates and their review stages.

    Example:
        roomflow templates
        # Output: installation - Store installation: visit, unboxing, ...
        #           Stages: ops_review -> art_review -> business_review -> final_review
    """
    registry = TemplateRegistry(_get_config())
    for name in registry.names():
        template = registry.build(name)
        typer.echo(f"{name} - {template.description or 'No description'}")
        typer.echo(f"  Stages: {' -> '.join(template.stages)}")


@workflow_app.command("list")
def workflow_list(
    resource_type: Optional[str] = typer.Option(None, "--type", help="Only this resource type"),
    status: Optional[str] = typer.Option(None, "--status", help="Only this pipeline status"),
) -> None:
    """
    List workflows with their pipeline status.

    Example:
        roomflow workflow list --type installation
        # Output: 6f1c...    store-12    installation    in_stage(1:art_review)
    """
    repo = _repository()
    workflows = asyncio.run(repo.list_workflows(resource_type=resource_type, status=status))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(_format_instance_line(wf))


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """
    Show the steps, pipeline status and rejection reason of a workflow.

    Example:
        roomflow workflow show 6f1c...
        # Output: Workflow 6f1c...: rejected
        #         Rejected at stage 1: missing SN
        #         [x] 0 appointment by alice at 2024-05-01 10:00 | appointment_time=...
    """
    repo = _repository()
    wf = asyncio.run(repo.get_workflow(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    for line in _format_instance(wf):
        typer.echo(line)


@workflow_app.command("approve")
def workflow_approve(
    workflow_id: str,
    actor: str = typer.Option(..., "--actor", help="Reviewer name"),
    role: str = typer.Option(..., "--role", help="Reviewer role"),
) -> None:
    """Approve the stage currently under review."""
    service = _service()

    async def _approve():
        await service.approve(workflow_id, Actor(name=actor, role=role))
        return await service.get(workflow_id)

    try:
        wf = asyncio.run(_approve())
    except WorkflowError as exc:
        _fail(exc)
        return
    typer.echo(f"Workflow {workflow_id}: {wf.pipeline.label()}")


@workflow_app.command("reject")
def workflow_reject(
    workflow_id: str,
    reason: str = typer.Option(..., "--reason", help="Why the stage is rejected"),
    actor: str = typer.Option(..., "--actor", help="Reviewer name"),
    role: str = typer.Option(..., "--role", help="Reviewer role"),
) -> None:
    """Reject the stage currently under review with a reason."""
    service = _service()
    try:
        asyncio.run(service.reject(workflow_id, Actor(name=actor, role=role), reason))
    except WorkflowError as exc:
        _fail(exc)
        return
    typer.echo(f"Workflow {workflow_id}: rejected ({reason.strip()})")


@ledger_app.command("unit")
def ledger_unit(unit_ref: str) -> None:
    """Print the audit trail of a unit in append order."""
    entries = _ledger().list_for_unit(unit_ref)
    if not entries:
        typer.echo("No audit entries found")
        return
    for entry in entries:
        typer.echo(_format_entry(entry))


@ledger_app.command("pending")
def ledger_pending(resource_type: str) -> None:
    """List units of a resource type waiting on a review stage."""
    pending = _ledger().list_pending(resource_type)
    if not pending:
        typer.echo("Nothing pending")
        return
    for review in pending:
        typer.echo(_format_pending(review))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
