from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from shipyard.errors import NotFoundError, PersistenceError
from shipyard.model import FAILED, RUNNING, SUCCESS, Job, Step, Workflow, WorkflowRun, utcnow
from shipyard.storage import MemoryStorage, SQLStorage


def _workflow(name: str = "demo") -> Workflow:
    return Workflow(
        name=name,
        jobs={
            "build": Job(target="ubuntu", steps=[Step("Compile", "make")]),
            "ship": Job(target="alpine", steps=[Step("Ship", "echo ship")]),
        },
        job_order=["build", "ship"],
        triggers={"push": {"branches": ["main"]}},
    )


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryStorage()
    else:
        s = SQLStorage(f"sqlite:///{tmp_path / 'shipyard.db'}")
    yield s
    s.close()


def test_workflow_crud(store):
    store.save_workflow(_workflow("a"))
    store.save_workflow(_workflow("b"))

    got = store.get_workflow("a")
    assert got.job_order == ["build", "ship"]
    assert got.jobs["ship"].target == "alpine"
    assert got.triggers == {"push": {"branches": ["main"]}}
    assert {w.name for w in store.list_workflows()} == {"a", "b"}

    store.delete_workflow("a")
    with pytest.raises(NotFoundError):
        store.get_workflow("a")
    with pytest.raises(NotFoundError):
        store.delete_workflow("a")


def test_save_workflow_replaces_by_name(store):
    store.save_workflow(_workflow())
    replacement = _workflow()
    replacement.jobs["build"].steps = [Step("Compile", "make all")]
    store.save_workflow(replacement)

    assert len(store.list_workflows()) == 1
    assert store.get_workflow("demo").jobs["build"].steps[0].run == "make all"


def test_run_roundtrip(store):
    run = WorkflowRun.start(_workflow())
    store.save_run(run)

    got = store.get_run(run.id)
    assert got.id == run.id
    assert got.status == RUNNING
    assert got.job_order == ["build", "ship"]
    assert got.started_at == run.started_at
    assert got.completed_at is None

    with pytest.raises(NotFoundError):
        store.get_run("run-missing")


def test_update_run_is_not_an_upsert(store):
    run = WorkflowRun.start(_workflow())
    with pytest.raises(NotFoundError):
        store.update_run(run)
    with pytest.raises(NotFoundError):
        store.get_run(run.id)


def test_update_run_replaces_progress(store):
    run = WorkflowRun.start(_workflow())
    store.save_run(run)

    job = run.get_job("build")
    job.status = SUCCESS
    job.output = "built\n"
    job.started_at = utcnow()
    job.ended_at = job.started_at + timedelta(seconds=1)
    run.update_job("build", job)
    run.complete(SUCCESS)
    store.update_run(run)

    got = store.get_run(run.id)
    assert got.status == SUCCESS
    assert got.completed_at == run.completed_at
    assert got.jobs["build"].output == "built\n"
    assert got.jobs["build"].ended_at == job.ended_at


def test_returned_runs_are_copies(store):
    run = WorkflowRun.start(_workflow())
    store.save_run(run)

    # mutating the caller's run does not leak into the store
    run.set_status(FAILED)
    assert store.get_run(run.id).status == RUNNING

    got = store.get_run(run.id)
    got.jobs["build"].status = FAILED
    got.job_order.clear()
    again = store.get_run(run.id)
    assert again.jobs["build"].status == "pending"
    assert again.job_order == ["build", "ship"]


def test_list_runs_newest_first(store):
    base = utcnow()
    ids = []
    for i in range(3):
        run = WorkflowRun.start(_workflow())
        run.started_at = base + timedelta(seconds=i)
        store.save_run(run)
        ids.append(run.id)

    assert [r.id for r in store.list_runs()] == list(reversed(ids))


def test_delete_runs_by_workflow_cascades(store):
    for name in ("a", "a", "a", "b"):
        store.save_run(WorkflowRun.start(_workflow(name)))

    assert store.delete_runs_by_workflow("a") == 3
    assert [r.workflow_name for r in store.list_runs()] == ["b"]
    assert store.delete_runs_by_workflow("a") == 0


def test_concurrent_saves(store):
    wf = _workflow()
    errors: list[Exception] = []

    def worker() -> None:
        try:
            for _ in range(10):
                run = WorkflowRun.start(wf)
                store.save_run(run)
                run.complete(SUCCESS)
                store.update_run(run)
                store.get_run(run.id)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    runs = store.list_runs()
    assert len(runs) == 80
    assert all(r.status == SUCCESS for r in runs)


def test_sql_storage_survives_reopen(tmp_path):
    url = f"sqlite:///{tmp_path / 'durable.db'}"
    first = SQLStorage(url)
    first.save_workflow(_workflow())
    run = WorkflowRun.start(_workflow())
    first.save_run(run)
    first.close()

    second = SQLStorage(url)
    try:
        assert second.get_workflow("demo").job_order == ["build", "ship"]
        assert second.get_run(run.id).started_at == run.started_at
    finally:
        second.close()


def test_sql_storage_in_memory_url_shares_one_database():
    s = SQLStorage("sqlite://")
    try:
        s.save_workflow(_workflow())
        seen: list[str] = []
        t = threading.Thread(target=lambda: seen.append(s.get_workflow("demo").name))
        t.start()
        t.join()
        assert seen == ["demo"]
    finally:
        s.close()


def test_sql_storage_unreachable_database(tmp_path):
    with pytest.raises(PersistenceError, match="failed to initialize storage"):
        SQLStorage(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
