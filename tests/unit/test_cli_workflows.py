import asyncio

import pytest
from typer.testing import CliRunner

from roomflow.cli import app
from roomflow.contracts import Actor
from roomflow.engine import WorkflowEngine
from roomflow.ledger import InMemoryAuditLedger, use_ledger
from roomflow.persistence import InMemoryWorkflowRepository, SQLiteWorkflowRepository, use_repository
from roomflow.templates import TemplateRegistry

INSTALLER = Actor(name="wang", role="installer")


@pytest.fixture(autouse=True)
def _no_env_urls(monkeypatch):
    for name in ("ROOMFLOW_CONFIG", "ROOMFLOW_DATABASE_URL", "DATABASE_URL", "ROOMFLOW_LEDGER_URL"):
        monkeypatch.delenv(name, raising=False)


def _setup():
    repo = use_repository(InMemoryWorkflowRepository())
    audit = use_ledger(InMemoryAuditLedger())
    return repo, audit


def _submitted_request(repo, audit, unit_ref="dev-1"):
    engine = WorkflowEngine(ledger=audit)
    wf = TemplateRegistry().instantiate("ops_status", unit_ref)
    engine.update_step(wf, 0, {"target_status": "repairing", "reason": "flicker"})
    engine.complete_step(wf, 0, INSTALLER)
    asyncio.run(repo.save(wf))
    return wf


def test_templates_command_lists_stages():
    runner = CliRunner()
    result = runner.invoke(app, ["templates"])
    assert result.exit_code == 0, result.stdout
    assert "installation" in result.stdout
    assert "ops_review -> art_review -> business_review -> final_review" in result.stdout


def test_workflow_list_and_show():
    repo, audit = _setup()
    wf = _submitted_request(repo, audit)

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0, result.stdout
    assert wf.id in result.stdout
    assert "in_stage(0:review)" in result.stdout

    result = runner.invoke(app, ["workflow", "list", "--type", "installation"])
    assert "No workflows found" in result.stdout

    result = runner.invoke(app, ["workflow", "show", wf.id])
    assert result.exit_code == 0, result.stdout
    assert "[x] 0 request by wang" in result.stdout
    assert "target_status=repairing" in result.stdout

    result_missing = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert result_missing.exit_code == 1
    assert "Workflow not found" in result_missing.stdout


def test_workflow_approve_and_reject():
    repo, audit = _setup()
    approved = _submitted_request(repo, audit, "dev-1")
    rejected = _submitted_request(repo, audit, "dev-2")

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "approve", approved.id, "--actor", "zhao", "--role", "ops_manager"])
    assert result.exit_code == 0, result.stdout
    assert "approved" in result.stdout

    result = runner.invoke(
        app, ["workflow", "reject", rejected.id, "--reason", "no photo", "--actor", "zhao", "--role", "ops_manager"]
    )
    assert result.exit_code == 0, result.stdout
    stored = asyncio.run(repo.get_workflow(rejected.id))
    assert stored.pipeline.reject_reason == "no photo"


def test_review_errors_exit_with_code():
    repo, audit = _setup()
    wf = _submitted_request(repo, audit)

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "approve", wf.id, "--actor", "wang", "--role", "installer"])
    assert result.exit_code == 1
    assert "forbidden" in result.stdout

    result = runner.invoke(app, ["workflow", "reject", wf.id, "--reason", " ", "--actor", "zhao", "--role", "ops_manager"])
    assert result.exit_code == 1
    assert "missing_reason" in result.stdout


def test_ledger_commands():
    repo, audit = _setup()
    _submitted_request(repo, audit)

    runner = CliRunner()
    result = runner.invoke(app, ["ledger", "unit", "dev-1"])
    assert result.exit_code == 0, result.stdout
    assert "complete\tstep:0:request" in result.stdout
    assert "submit\tpipeline" in result.stdout

    result = runner.invoke(app, ["ledger", "pending", "ops_status"])
    assert "dev-1" in result.stdout
    assert "stage 0" in result.stdout

    result = runner.invoke(app, ["ledger", "unit", "nobody"])
    assert "No audit entries found" in result.stdout


def test_config_option_selects_stores(tmp_path):
    _setup()
    repo = SQLiteWorkflowRepository(tmp_path / "wf.db")
    wf = _submitted_request(repo, InMemoryAuditLedger())
    config_file = tmp_path / "cfg.yaml"
    config_file.write_text(
        f"database_url: sqlite://{tmp_path / 'wf.db'}\nledger_url: sqlite:///{tmp_path / 'audit.db'}\n"
    )

    runner = CliRunner()
    result = runner.invoke(app, ["--config", str(config_file), "workflow", "list"])
    assert result.exit_code == 0, result.stdout
    assert wf.id in result.stdout

    result = runner.invoke(
        app,
        ["--config", str(config_file), "workflow", "approve", wf.id, "--actor", "zhao", "--role", "ops_manager"],
    )
    assert result.exit_code == 0, result.stdout
    assert asyncio.run(repo.get_workflow(wf.id)).pipeline.status.value == "approved"

    result = runner.invoke(app, ["--config", str(config_file), "ledger", "unit", "dev-1"])
    assert "approve" in result.stdout

    result = runner.invoke(app, ["workflow", "list"])
    assert "No workflows found" in result.stdout
