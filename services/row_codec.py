"""Mapping between task/goal entities and spreadsheet rows.

Every task row carries two representations: human-editable columns (so a
person editing the spreadsheet directly is respected) and a trailing
``JSON_DATA`` column holding the complete entity.  On decode the JSON is the
base and the manual columns are applied on top of it:

* a manual cell overrides its field only when it is non-blank and differs
  from what the embedded entity itself would have written to that cell;
* ``Last Modified`` replaces the embedded stamp only when it is strictly
  newer;
* ``Goal Title`` is informational and never read back.

When the JSON column is missing or unparsable the row is rebuilt from the
manual columns alone (legacy rows, rows typed in by hand).
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from datetime_utils import EPOCH, epoch_ms, now_iso, parse_rfc3339, to_iso_millis
from models.goal import DEFAULT_GOAL_COLOR, Goal
from models.task import DEFAULT_PRIORITY, DEFAULT_STATUS, Blocker, Subtask, Task
from services.errors import DecodeError


logger = logging.getLogger(__name__)

TASK_HEADERS = [
    "ID",
    "Title",
    "Status",
    "Priority",
    "Due Date",
    "Time Est (h)",
    "Actual Time (s)",
    "Tags",
    "Scheduled Start",
    "Blockers",
    "Dependencies",
    "Subtasks",
    "Description",
    "Last Modified",
    "Goal ID",
    "Goal Title",
    "JSON_DATA",
]

GOAL_HEADERS = ["ID", "Title", "Color", "Description", "Created Date", "Text Color"]

METADATA_ROW_ID = "__METADATA__"
METADATA_ROW_TITLE = "APP_METADATA_DO_NOT_DELETE"
UNASSIGNED_GOAL_TITLE = "Unassigned"

COL_JSON = TASK_HEADERS.index("JSON_DATA")

HeaderMap = Dict[str, int]


# ----------------------------------------------------------------------
# cell helpers
def safe_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def safe_number(value: Any) -> float | int:
    number = _parse_number(value)
    return 0 if number is None else number


def _parse_number(value: Any) -> Optional[float | int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if isinstance(number, float):
        if number != number:  # NaN
            return None
        if number.is_integer():
            return int(number)
    return number


def _is_blank(value: Any) -> bool:
    return value is None or safe_string(value).strip() == ""


def _split_list(value: Any, separator: str) -> List[str]:
    text = safe_string(value)
    return [part.strip() for part in text.split(separator) if part.strip()]


def header_map(header_row: Sequence[Any]) -> HeaderMap:
    """Map header names to column indexes, tolerating re-ordered columns."""

    mapping: HeaderMap = {}
    for index, cell in enumerate(header_row or []):
        name = safe_string(cell).strip()
        if name and name not in mapping:
            mapping[name] = index
    return mapping


def is_header_row(row: Sequence[Any]) -> bool:
    if not row:
        return False
    first = safe_string(row[0]).strip()
    return first in ("ID", "Title")


def _cell(row: Sequence[Any], column: str, headers: Optional[HeaderMap]) -> Any:
    if headers:
        if column not in headers:
            return None
        index = headers[column]
    else:
        index = TASK_HEADERS.index(column)
    if index < len(row):
        return row[index]
    return None


# ----------------------------------------------------------------------
# task projections
def _blockers_cell(task: Task) -> str:
    return "; ".join(b.reason for b in task.blockers if not b.resolved)


def _subtasks_cell(task: Task) -> str:
    return "\n".join(f"{'[x]' if s.isCompleted else '[ ]'} {s.title}" for s in task.subtasks)


def encode_task(task: Task, goals_by_id: Optional[Mapping[str, Goal]] = None) -> List[Any]:
    """Return the 17-cell row for ``task``; no cell is ever ``None``."""

    goal_title = UNASSIGNED_GOAL_TITLE
    if task.goalId and goals_by_id:
        goal = goals_by_id.get(task.goalId)
        if goal is not None:
            goal_title = goal.title

    return [
        safe_string(task.id),
        safe_string(task.title),
        safe_string(task.status),
        safe_string(task.priority),
        safe_string(task.dueDate),
        safe_number(task.timeEstimate),
        safe_number(task.actualTimeSpent),
        ", ".join(task.tags),
        safe_string(task.scheduledStartDateTime),
        _blockers_cell(task),
        ", ".join(task.dependencies),
        _subtasks_cell(task),
        safe_string(task.description),
        safe_string(task.lastModified),
        safe_string(task.goalId),
        safe_string(goal_title),
        json.dumps(task.to_dict(), ensure_ascii=False),
    ]


# ----------------------------------------------------------------------
# manual column overrides
def _merge_blockers(task: Task, cell: Any) -> None:
    reasons = _split_list(cell, ";")
    open_by_reason: Dict[str, Blocker] = {}
    for blocker in task.blockers:
        if not blocker.resolved:
            open_by_reason.setdefault(blocker.reason, blocker)
    merged = [b for b in task.blockers if b.resolved]
    for reason in reasons:
        existing = open_by_reason.pop(reason, None)
        merged.append(existing or Blocker(id=f"restored-{uuid.uuid4().hex[:12]}", reason=reason, createdDate=now_iso()))
    task.blockers = merged


def _parse_subtask_line(line: str) -> Optional[tuple[str, bool]]:
    text = line.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered.startswith("[x]"):
        return text[3:].strip(), True
    if text.startswith("[ ]"):
        return text[3:].strip(), False
    return text, False


def _merge_subtasks(task: Task, cell: Any) -> None:
    pool: Dict[str, List[Subtask]] = {}
    for subtask in task.subtasks:
        pool.setdefault(subtask.title, []).append(subtask)
    merged: List[Subtask] = []
    for line in safe_string(cell).splitlines():
        parsed = _parse_subtask_line(line)
        if parsed is None:
            continue
        title, done = parsed
        candidates = pool.get(title)
        if candidates:
            existing = candidates.pop(0)
            merged.append(Subtask(id=existing.id, title=title, isCompleted=done))
        else:
            merged.append(Subtask(id=f"sub-{uuid.uuid4().hex[:12]}", title=title, isCompleted=done))
    task.subtasks = merged


def _set_text(attr: str) -> Callable[[Task, Any], None]:
    def apply(task: Task, cell: Any) -> None:
        setattr(task, attr, safe_string(cell).strip())

    return apply


def _set_number(attr: str) -> Callable[[Task, Any], None]:
    def apply(task: Task, cell: Any) -> None:
        number = _parse_number(cell)
        if number is None:
            logger.debug("Ignoring non-numeric %s cell %r for task %s", attr, cell, task.id)
            return
        setattr(task, attr, number)

    return apply


def _set_list(attr: str, separator: str) -> Callable[[Task, Any], None]:
    def apply(task: Task, cell: Any) -> None:
        setattr(task, attr, _split_list(cell, separator))

    return apply


# column -> how a non-blank, differing cell is written back onto the entity
_MANUAL_COLUMNS: Dict[str, Callable[[Task, Any], None]] = {
    "Title": _set_text("title"),
    "Status": _set_text("status"),
    "Priority": _set_text("priority"),
    "Due Date": _set_text("dueDate"),
    "Time Est (h)": _set_number("timeEstimate"),
    "Actual Time (s)": _set_number("actualTimeSpent"),
    "Tags": _set_list("tags", ","),
    "Scheduled Start": _set_text("scheduledStartDateTime"),
    "Blockers": _merge_blockers,
    "Dependencies": _set_list("dependencies", ","),
    "Subtasks": _merge_subtasks,
    "Description": _set_text("description"),
    "Goal ID": _set_text("goalId"),
}
_NUMERIC_COLUMNS = {"Time Est (h)", "Actual Time (s)"}


def _differs(column: str, cell: Any, projected: Any) -> bool:
    if column in _NUMERIC_COLUMNS:
        return _parse_number(cell) != _parse_number(projected)
    if column == "Subtasks":
        return [ln.strip() for ln in safe_string(cell).splitlines() if ln.strip()] != [
            ln.strip() for ln in safe_string(projected).splitlines() if ln.strip()
        ]
    if column in ("Tags", "Dependencies"):
        return _split_list(cell, ",") != _split_list(projected, ",")
    if column == "Blockers":
        return _split_list(cell, ";") != _split_list(projected, ";")
    return safe_string(cell).strip() != safe_string(projected).strip()


def _apply_manual_columns(task: Task, row: Sequence[Any], headers: Optional[HeaderMap]) -> Task:
    projection = encode_task(task)
    for column, apply in _MANUAL_COLUMNS.items():
        cell = _cell(row, column, headers)
        if _is_blank(cell):
            continue
        projected = projection[TASK_HEADERS.index(column)]
        if _differs(column, cell, projected):
            logger.debug("Manual edit in %r for task %s", column, task.id)
            apply(task, cell)

    manual_stamp = _cell(row, "Last Modified", headers)
    if not _is_blank(manual_stamp) and epoch_ms(safe_string(manual_stamp)) > epoch_ms(task.lastModified):
        task.lastModified = to_iso_millis(parse_rfc3339(safe_string(manual_stamp))) or task.lastModified
    return task


# ----------------------------------------------------------------------
# decoding
def _legacy_task(row: Sequence[Any], headers: Optional[HeaderMap]) -> Task:
    now = now_iso()
    blocker_cell = safe_string(_cell(row, "Blockers", headers)).strip()
    blockers: List[Blocker] = []
    if blocker_cell and not blocker_cell.startswith("{"):
        blockers.append(Blocker(id=f"restored-{uuid.uuid4().hex[:12]}", reason=blocker_cell, createdDate=now))

    stamp = safe_string(_cell(row, "Last Modified", headers)).strip()
    parsed_stamp = parse_rfc3339(stamp)
    # Without a stamp the row must not outrank an existing local copy.
    last_modified = to_iso_millis(parsed_stamp or EPOCH) or ""

    return Task(
        id=safe_string(_cell(row, "ID", headers)).strip(),
        title=safe_string(_cell(row, "Title", headers)).strip() or "Untitled Task",
        status=safe_string(_cell(row, "Status", headers)).strip() or DEFAULT_STATUS,
        priority=safe_string(_cell(row, "Priority", headers)).strip() or DEFAULT_PRIORITY,
        dueDate=safe_string(_cell(row, "Due Date", headers)).strip() or now[:10],
        timeEstimate=safe_number(_cell(row, "Time Est (h)", headers)),
        actualTimeSpent=safe_number(_cell(row, "Actual Time (s)", headers)),
        tags=_split_list(_cell(row, "Tags", headers), ","),
        scheduledStartDateTime=safe_string(_cell(row, "Scheduled Start", headers)).strip() or None,
        blockers=blockers,
        dependencies=_split_list(_cell(row, "Dependencies", headers), ","),
        subtasks=[],
        description=safe_string(_cell(row, "Description", headers)),
        lastModified=last_modified,
        createdDate=now,
        statusChangeDate=now,
        xpAwarded=False,
        goalId=safe_string(_cell(row, "Goal ID", headers)).strip() or None,
    )


def _embedded_task(row: Sequence[Any], row_id: str, headers: Optional[HeaderMap]) -> Optional[Task]:
    raw = _cell(row, "JSON_DATA", headers)
    if _is_blank(raw):
        return None
    try:
        payload = json.loads(safe_string(raw))
    except json.JSONDecodeError:
        logger.warning("Corrupt JSON_DATA cell for row %r; using manual columns", row_id)
        return None
    if not isinstance(payload, dict):
        logger.warning("JSON_DATA for row %r is not an object; using manual columns", row_id)
        return None
    task = Task.from_dict(payload)
    if not task.id:
        task.id = row_id
    return task


def decode_task(row: Sequence[Any], headers: Optional[HeaderMap] = None) -> Optional[Task]:
    """Return the task stored in ``row``.

    ``None`` is returned for the metadata sentinel and for rows without an
    id.  Rows whose content cannot be interpreted at all raise
    :class:`DecodeError`.
    """

    if not isinstance(row, (list, tuple)) or not row:
        return None
    row_id = safe_string(_cell(row, "ID", headers)).strip()
    if not row_id or row_id == METADATA_ROW_ID or row_id == "ID":
        return None
    try:
        task = _embedded_task(row, row_id, headers)
        if task is None:
            return _legacy_task(row, headers)
        return _apply_manual_columns(task, row, headers)
    except (TypeError, ValueError, AttributeError) as exc:
        raise DecodeError(f"Row {row_id!r} could not be decoded: {exc}") from exc


def encode_goal(goal: Goal) -> List[str]:
    return [
        safe_string(goal.id),
        safe_string(goal.title),
        safe_string(goal.color),
        safe_string(goal.description),
        safe_string(goal.createdDate),
        safe_string(goal.textColor),
    ]


def decode_goal(row: Sequence[Any]) -> Optional[Goal]:
    if not isinstance(row, (list, tuple)) or len(row) < 2:
        return None
    goal_id = safe_string(row[0]).strip()
    if not goal_id or goal_id == "ID":
        return None
    cells = list(row) + [None] * (len(GOAL_HEADERS) - len(row))
    return Goal(
        id=goal_id,
        title=safe_string(cells[1]),
        color=safe_string(cells[2]) or DEFAULT_GOAL_COLOR,
        description=safe_string(cells[3]),
        createdDate=safe_string(cells[4]) or now_iso(),
        textColor=safe_string(cells[5]) or None,
    )


def goals_index(goals: Iterable[Goal]) -> Dict[str, Goal]:
    return {goal.id: goal for goal in goals}


__all__ = [
    "COL_JSON",
    "GOAL_HEADERS",
    "METADATA_ROW_ID",
    "METADATA_ROW_TITLE",
    "TASK_HEADERS",
    "UNASSIGNED_GOAL_TITLE",
    "decode_goal",
    "decode_task",
    "encode_goal",
    "encode_task",
    "goals_index",
    "header_map",
    "is_header_row",
    "safe_number",
    "safe_string",
]
