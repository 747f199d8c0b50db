"""Transport contract shared by the direct API and script proxy back-ends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models.goal import Goal
from models.task import Task
from services.errors import DecodeError
from services.metadata import decode_metadata, encode_metadata_payload, is_metadata_row
from services.row_codec import (
    GOAL_HEADERS,
    TASK_HEADERS,
    decode_goal,
    decode_task,
    encode_goal,
    encode_task,
    goals_index,
    header_map,
    is_header_row,
)


logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    tasks: List[Task] = field(default_factory=list)
    goals: List[Goal] = field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None


def decode_task_table(rows: Sequence[Sequence[Any]]) -> Tuple[List[Task], Optional[Dict[str, Any]]]:
    """Decode a task table whose first row may be a header row.

    Rows that fail to decode are skipped; they never fail the whole pull.
    """

    tasks: List[Task] = []
    metadata: Optional[Dict[str, Any]] = None
    if not rows:
        return tasks, metadata

    headers = None
    body = list(rows)
    if is_header_row(body[0]):
        headers = header_map(body[0])
        body = body[1:]

    for index, row in enumerate(body):
        if not row or is_header_row(row):
            continue
        if is_metadata_row(row, headers):
            metadata = decode_metadata(row, headers) or metadata
            continue
        try:
            task = decode_task(row, headers)
        except DecodeError as exc:
            logger.warning("Skipping task row %d: %s", index + 1, exc)
            continue
        if task is not None:
            tasks.append(task)
    return tasks, metadata


def decode_goal_table(rows: Sequence[Sequence[Any]]) -> List[Goal]:
    goals: List[Goal] = []
    for row in rows or []:
        if is_header_row(row):
            continue
        goal = decode_goal(row)
        if goal is not None:
            goals.append(goal)
    return goals


def build_task_rows(
    tasks: Sequence[Task],
    goals: Sequence[Goal],
    metadata: Optional[Dict[str, Any]],
) -> List[List[Any]]:
    """Data rows for the task table; the metadata row, if any, comes first."""

    index = goals_index(goals)
    rows = [encode_task(task, index) for task in tasks]
    if metadata is not None:
        rows.insert(0, encode_metadata_payload(metadata))
    return rows


def build_goal_rows(goals: Sequence[Goal]) -> List[List[Any]]:
    return [encode_goal(goal) for goal in goals]


class Transport(ABC):
    """One remote store reachable through one medium.

    A transport is bound to its target (spreadsheet id or script URL) at
    construction time; a new target means a new transport.
    """

    method: str = "none"

    def __init__(self, target: str) -> None:
        self.target = target

    @abstractmethod
    def test_connection(self) -> bool:
        ...

    def prepare(self) -> None:
        """Schema initialisation before the first pull; no-op by default."""

    @abstractmethod
    def pull(self) -> PullResult:
        ...

    @abstractmethod
    def push(self, tasks: Sequence[Task], goals: Sequence[Goal], metadata: Optional[Dict[str, Any]]) -> None:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.target!r})"


__all__ = [
    "GOAL_HEADERS",
    "PullResult",
    "TASK_HEADERS",
    "Transport",
    "build_goal_rows",
    "build_task_rows",
    "decode_goal_table",
    "decode_task_table",
]
