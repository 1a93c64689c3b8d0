from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from cdns.models import BackgroundTask, QueryRequest, TaskStatus
from cdns.services.task_service import TaskRegistry, TaskRunner, new_task_id, results_filename


def _task(task_id: str, status: TaskStatus = TaskStatus.pending) -> BackgroundTask:
    return BackgroundTask(
        id=task_id,
        domain="example.com",
        nameservers=["1.1.1.1"],
        status=status,
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture()
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture()
def runner(registry: TaskRegistry, tmp_path: Path) -> TaskRunner:
    r = TaskRunner(registry, results_dir=tmp_path / "results", max_workers=2)
    yield r
    r.shutdown(wait=True)


def test_registry_add_get_and_filter(registry: TaskRegistry) -> None:
    registry.add_task(_task("t1"))
    registry.add_task(_task("t2", TaskStatus.completed))
    registry.add_task(_task("t3", TaskStatus.failed))

    assert registry.get_task("t1").status == TaskStatus.pending
    assert registry.get_task("missing") is None
    assert {t.id for t in registry.list_tasks()} == {"t1", "t2", "t3"}
    assert {t.id for t in registry.list_tasks("")} == {"t1", "t2", "t3"}
    assert [t.id for t in registry.list_tasks("completed")] == ["t2"]
    assert registry.list_tasks("running") == []


def test_registry_hands_out_copies(registry: TaskRegistry) -> None:
    registry.add_task(_task("t1"))
    copy = registry.get_task("t1")
    copy.status = TaskStatus.failed
    assert registry.get_task("t1").status == TaskStatus.pending


def test_terminal_status_is_absorbing(registry: TaskRegistry) -> None:
    registry.add_task(_task("t1"))
    registry.transition("t1", status=TaskStatus.running)
    registry.transition("t1", status=TaskStatus.failed, error="boom")
    with pytest.raises(RuntimeError):
        registry.transition("t1", status=TaskStatus.completed)

    registry.transition("t1", completed_at=datetime.now(timezone.utc))
    with pytest.raises(RuntimeError):
        registry.transition("t1", completed_at=datetime.now(timezone.utc))


def test_transition_rejects_non_lifecycle_fields(registry: TaskRegistry) -> None:
    registry.add_task(_task("t1"))
    with pytest.raises(ValueError):
        registry.transition("t1", domain="other.com")


def test_task_ids_are_unique() -> None:
    ids = {new_task_id() for _ in range(1000)}
    assert len(ids) == 1000
    assert all(i.startswith("task_") for i in ids)


def test_results_filename_sanitizes_domain() -> None:
    name = results_filename("sub.example.com.")
    assert name.startswith("dns_results_sub_example_com_")
    assert name.endswith(".json")
    assert "/" not in results_filename("a/b.example.com")


def test_runner_completes_and_writes_file(fake_dns, runner: TaskRunner, registry: TaskRegistry) -> None:
    request = QueryRequest(domain="example.com", nameservers=["1.1.1.1", "8.8.8.8"], filter=["A", "MX"])
    task, future = runner.submit(request)
    assert task.status == TaskStatus.pending

    future.result(timeout=10)

    done = registry.get_task(task.id)
    assert done.status == TaskStatus.completed
    assert done.completed_at is not None
    assert done.error is None
    assert [r.nameserver for r in done.results] == ["1.1.1.1", "8.8.8.8"]

    files = list(runner.results_dir.glob("dns_results_example_com_*.json"))
    assert len(files) == 1
    saved = json.loads(files[0].read_text(encoding="utf-8"))
    assert [r["nameserver"] for r in saved] == ["1.1.1.1", "8.8.8.8"]
    assert saved[0]["records"]["A"][0]["address"] == "93.184.216.34"


@pytest.mark.parametrize(
    ("domain", "nameservers", "message"),
    [
        ("not-a-domain", ["1.1.1.1"], "Invalid domain"),
        ("example.com", ["-1.1.1.1", "x:y:z"], "No valid nameservers provided"),
    ],
)
def test_runner_fails_on_bad_input(
    fake_dns, runner: TaskRunner, registry: TaskRegistry, domain: str, nameservers: list[str], message: str
) -> None:
    task, future = runner.submit(QueryRequest(domain=domain, nameservers=nameservers))
    future.result(timeout=10)

    failed = registry.get_task(task.id)
    assert failed.status == TaskStatus.failed
    assert failed.error == message
    assert failed.completed_at is not None
    assert failed.results is None
    assert fake_dns.calls == []


def test_runner_fails_when_results_cannot_be_saved(fake_dns, registry: TaskRegistry, tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    runner = TaskRunner(registry, results_dir=blocker, max_workers=1)
    try:
        task, future = runner.submit(
            QueryRequest(domain="example.com", nameservers=["1.1.1.1"], filter=["A"])
        )
        future.result(timeout=10)
    finally:
        runner.shutdown(wait=True)

    failed = registry.get_task(task.id)
    assert failed.status == TaskStatus.failed
    assert failed.error == "Failed to save results to file"
    assert failed.completed_at is not None
