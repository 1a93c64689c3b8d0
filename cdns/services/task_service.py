from __future__ import annotations

import json
import logging
import re
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .. import config
from ..models import BackgroundTask, QueryRequest, Result, TaskStatus, dump_results
from .query_service import QueryValidationError, build_query_config, run_query

log = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({TaskStatus.completed, TaskStatus.failed})
_LIFECYCLE_FIELDS = frozenset({"status", "results", "error", "completed_at"})


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return f"task_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


def results_filename(domain: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_-]", "_", domain.strip().rstrip(".").replace(".", "_"))
    return f"dns_results_{safe}_{time.time_ns()}.json"


class TaskRegistry:
    """
    In-memory store of background tasks keyed by id.

    One lock guards the whole map. Readers get deep copies, so a task is never
    observed half-way through a transition. Entries are never evicted.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, BackgroundTask] = {}
        self._lock = threading.Lock()

    def add_task(self, task: BackgroundTask) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def get_task(self, task_id: str) -> BackgroundTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def list_tasks(self, status: str | None = None) -> list[BackgroundTask]:
        with self._lock:
            return [
                t.model_copy(deep=True)
                for t in self._tasks.values()
                if not status or t.status.value == status
            ]

    def transition(self, task_id: str, **changes: Any) -> None:
        """
        Apply one lifecycle change atomically. Terminal statuses are absorbing
        and completed_at can only be set once.
        """
        unknown = set(changes) - _LIFECYCLE_FIELDS
        if unknown:
            raise ValueError(f"not a lifecycle field: {', '.join(sorted(unknown))}")
        with self._lock:
            task = self._tasks[task_id]
            if "status" in changes and task.status in TERMINAL_STATUSES:
                raise RuntimeError(f"task {task_id} is already {task.status.value}")
            if "completed_at" in changes and task.completed_at is not None:
                raise RuntimeError(f"task {task_id} already has completed_at")
            for field, value in changes.items():
                setattr(task, field, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)


class TaskRunner:
    """Runs background queries on a worker pool and records their lifecycle in a TaskRegistry."""

    def __init__(
        self,
        registry: TaskRegistry,
        results_dir: Path | str | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.registry = registry
        self.results_dir = Path(results_dir) if results_dir else config.results_dir()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or config.task_workers(),
            thread_name_prefix="cdns-task",
        )

    def submit(self, request: QueryRequest) -> tuple[BackgroundTask, Future]:
        task = BackgroundTask(
            id=new_task_id(),
            domain=request.domain,
            nameservers=list(request.nameservers),
            status=TaskStatus.pending,
            created_at=_now_utc(),
        )
        self.registry.add_task(task)
        snapshot = task.model_copy(deep=True)
        return snapshot, self.spawn(task.id, request)

    def spawn(self, task_id: str, request: QueryRequest) -> Future:
        return self._executor.submit(self.run, task_id, request)

    def run(self, task_id: str, request: QueryRequest) -> None:
        self.registry.transition(task_id, status=TaskStatus.running)
        try:
            self._execute(task_id, request)
        except Exception as e:
            log.exception("Background task %s crashed", task_id)
            current = self.registry.get_task(task_id)
            if current and current.status not in TERMINAL_STATUSES:
                self.registry.transition(task_id, status=TaskStatus.failed, error=f"Unexpected error: {e}")
        finally:
            self.registry.transition(task_id, completed_at=_now_utc())

    def _execute(self, task_id: str, request: QueryRequest) -> None:
        query_config = build_query_config(request.timeout, request.retries, request.filter)
        try:
            results = run_query(request.domain, request.nameservers, query_config)
        except QueryValidationError as e:
            self.registry.transition(task_id, status=TaskStatus.failed, error=str(e))
            return

        try:
            path = self.save_results(request.domain, results)
        except (OSError, TypeError, ValueError) as e:
            log.error("Failed to save results to file: %s", e)
            self.registry.transition(task_id, status=TaskStatus.failed, error="Failed to save results to file")
            return

        self.registry.transition(task_id, status=TaskStatus.completed, results=results)
        log.info("Background task completed: task_id=%s file=%s", task_id, path)

    def save_results(self, domain: str, results: list[Result]) -> Path:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.results_dir / results_filename(domain)
        path.write_text(
            json.dumps(dump_results(results), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return path

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)
