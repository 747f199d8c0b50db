"""Reconciliation of local and freshly pulled remote data."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from core.settings import SHEET_SYNC
from datetime_utils import epoch_ms
from models.goal import Goal
from models.task import Task


logger = logging.getLogger(__name__)

SKEW_TOLERANCE_MS = SHEET_SYNC.skew_tolerance_ms


@dataclass
class MergeResult:
    merged: List[Task]
    local_is_stale: bool = False
    remote_changed: bool = False
    # Ids edited on both sides within the skew window; local was kept.
    tie_conflicts: List[str] = field(default_factory=list)


def merge_tasks(local: Iterable[Task], remote: Iterable[Task], is_polling_pass: bool) -> MergeResult:
    """Merge ``remote`` into ``local`` using ``lastModified`` with hysteresis.

    Local is the default truth.  A remote copy replaces the local one only
    when it is newer by more than the skew tolerance and actually differs;
    a local copy newer by more than the tolerance marks the remote store as
    stale, which only matters outside polling passes.
    """

    by_id: Dict[str, Task] = {}
    for task in local:
        by_id[task.id] = task

    local_wins = False
    remote_changed = False
    ties: List[str] = []

    for candidate in remote:
        current = by_id.get(candidate.id)
        if current is None:
            by_id[candidate.id] = candidate
            remote_changed = True
            continue

        local_time = epoch_ms(current.lastModified)
        remote_time = epoch_ms(candidate.lastModified)
        if remote_time > local_time + SKEW_TOLERANCE_MS:
            if current != candidate:
                by_id[candidate.id] = candidate
                remote_changed = True
        elif local_time > remote_time + SKEW_TOLERANCE_MS:
            local_wins = True
        elif current != candidate:
            ties.append(candidate.id)

    if ties:
        logger.info("Kept local copy of %d task(s) edited on both sides: %s", len(ties), ", ".join(ties))

    return MergeResult(
        merged=list(by_id.values()),
        local_is_stale=local_wins and not is_polling_pass,
        remote_changed=remote_changed,
        tie_conflicts=ties,
    )


def merge_goals(local: Iterable[Goal], remote: Iterable[Goal]) -> List[Goal]:
    """Union by id; the remote entry overwrites a local one unconditionally."""

    by_id: Dict[str, Goal] = {}
    for goal in local:
        by_id[goal.id] = goal
    for goal in remote:
        by_id[goal.id] = goal
    return list(by_id.values())


__all__ = ["MergeResult", "SKEW_TOLERANCE_MS", "merge_goals", "merge_tasks"]
