"""Tests for workflow repositories."""

import pytest

from roomflow.config import RoomflowConfig
from roomflow.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repository,
    use_repository,
)
from roomflow.templates import TemplateRegistry


def _installation(unit_ref="store-1"):
    return TemplateRegistry().instantiate("installation", unit_ref, rooms=["101"], modules=["screen"])


async def _exercise(repo):
    first = _installation()
    first.update_step_payload(0, "2024-05-01 09:00")
    first.complete_step(0, "wang")
    second = _installation()
    other = TemplateRegistry().instantiate("ops_status", "dev-1")
    for wf in (first, second, other):
        await repo.save(wf)

    loaded = await repo.get_workflow(first.id)
    assert loaded == first
    assert loaded is not first

    first.update_step_payload(1, "2024-05-01 09:30")
    assert (await repo.get_workflow(first.id)).steps[1].payload.values == {}
    await repo.save(first)
    assert (await repo.get_workflow(first.id)).steps[1].payload.values == {"check_in_time": "2024-05-01 09:30"}

    assert [wf.id for wf in await repo.list_for_unit("store-1")] == [first.id, second.id]
    assert {wf.id for wf in await repo.list_workflows()} == {first.id, second.id, other.id}
    assert [wf.id for wf in await repo.list_workflows(resource_type="ops_status")] == [other.id]
    assert await repo.list_workflows(status="approved") == []
    assert await repo.get_workflow("missing") is None


@pytest.mark.asyncio
async def test_in_memory_repository():
    await _exercise(InMemoryWorkflowRepository())


@pytest.mark.asyncio
async def test_sqlite_repository(tmp_path):
    await _exercise(SQLiteWorkflowRepository(tmp_path / "wf.db"))


@pytest.mark.asyncio
async def test_sqlite_repository_persists_across_connections(tmp_path):
    wf = _installation("store-7")
    await SQLiteWorkflowRepository(tmp_path / "wf.db").save(wf)

    reopened = SQLiteWorkflowRepository(tmp_path / "wf.db")
    loaded = await reopened.get_workflow(wf.id)
    assert loaded is not None
    assert loaded.definitions[3].categories[0].name == "screen"


def test_get_repository_selects_backend(tmp_path):
    use_repository(InMemoryWorkflowRepository())

    assert isinstance(get_repository(config=RoomflowConfig()), InMemoryWorkflowRepository)
    repo = get_repository(f"sqlite://{tmp_path / 'wf.db'}")
    assert isinstance(repo, SQLiteWorkflowRepository)
    assert get_repository() is repo

    with pytest.raises(ValueError):
        get_repository("mysql://nope")


def test_get_repository_follows_config_url(tmp_path):
    cached = use_repository(InMemoryWorkflowRepository())
    assert get_repository(config=RoomflowConfig()) is cached

    config = RoomflowConfig(database_url=f"sqlite://{tmp_path / 'wf.db'}")
    repo = get_repository(config=config)
    assert isinstance(repo, SQLiteWorkflowRepository)
    assert get_repository(config=config) is repo
    assert get_repository() is repo
    assert isinstance(get_repository(config=RoomflowConfig()), InMemoryWorkflowRepository)
