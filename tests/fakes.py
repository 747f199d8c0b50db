"""Test doubles for the sync engine: a simulated clock and an in-memory sheet."""

from __future__ import annotations

import copy
import itertools
from typing import Any, Callable, Dict, List, Optional

from models.goal import Goal
from models.task import Task
from services.transport import PullResult, Transport


BASE_TIME = "2024-03-01T10:00:00.000Z"


def make_task(task_id: str, title: str = "Task", last_modified: str = BASE_TIME, **fields: Any) -> Task:
    values: Dict[str, Any] = {
        "id": task_id,
        "title": title,
        "status": "To Do",
        "priority": "Medium",
        "dueDate": "2024-03-05",
        "createdDate": "2024-02-01T09:00:00.000Z",
        "statusChangeDate": "2024-02-01T09:00:00.000Z",
        "lastModified": last_modified,
    }
    values.update(fields)
    return Task(**values)


def shifted(stamp: str, milliseconds: int) -> str:
    from datetime import timedelta

    from datetime_utils import parse_rfc3339, to_iso_millis

    return to_iso_millis(parse_rfc3339(stamp) + timedelta(milliseconds=milliseconds))


class _Job:
    _seq = itertools.count()

    def __init__(self, due: float, interval: Optional[float], fn: Callable[[], None]) -> None:
        self.due = due
        self.interval = interval
        self.fn = fn
        self.cancelled = False
        self.seq = next(self._seq)

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Deterministic scheduler driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.jobs: List[_Job] = []

    def after(self, delay: float, fn: Callable[[], None]) -> _Job:
        job = _Job(self.now + delay, None, fn)
        self.jobs.append(job)
        return job

    def every(self, interval: float, fn: Callable[[], None]) -> _Job:
        job = _Job(self.now + interval, interval, fn)
        self.jobs.append(job)
        return job

    def pending(self) -> List[_Job]:
        return [job for job in self.jobs if not job.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds + 1e-9
        while True:
            due = [job for job in self.pending() if job.due <= target]
            if not due:
                break
            job = min(due, key=lambda item: (item.due, item.seq))
            self.now = max(self.now, job.due)
            if job.interval is None:
                job.cancelled = True
            else:
                job.due += job.interval
            job.fn()
        self.now = target


class FakeTransport(Transport):
    method = "fake"

    def __init__(
        self,
        tasks: Optional[List[Task]] = None,
        goals: Optional[List[Goal]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        target: str = "fake-sheet",
    ) -> None:
        super().__init__(target)
        self.remote_tasks = list(tasks or [])
        self.remote_goals = list(goals or [])
        self.metadata = metadata
        self.pull_calls = 0
        self.prepare_calls = 0
        self.pushes: List[Dict[str, Any]] = []
        self.fail_pull: Optional[Exception] = None
        self.fail_push: Optional[Exception] = None

    def test_connection(self) -> bool:
        return True

    def prepare(self) -> None:
        self.prepare_calls += 1

    def pull(self) -> PullResult:
        self.pull_calls += 1
        if self.fail_pull is not None:
            raise self.fail_pull
        return PullResult(
            tasks=copy.deepcopy(self.remote_tasks),
            goals=copy.deepcopy(self.remote_goals),
            metadata=copy.deepcopy(self.metadata),
        )

    def push(self, tasks, goals, metadata) -> None:
        if self.fail_push is not None:
            raise self.fail_push
        self.pushes.append({"tasks": copy.deepcopy(list(tasks)), "goals": copy.deepcopy(list(goals)), "metadata": metadata})
        self.remote_tasks = copy.deepcopy(list(tasks))
        self.remote_goals = copy.deepcopy(list(goals))
        self.metadata = copy.deepcopy(metadata)
