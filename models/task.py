# planner/models/task.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from datetime_utils import EPOCH, epoch_ms, now_iso, to_iso_millis


STATUSES = ("To Do", "In Progress", "Review", "Blocker", "Hold", "Won't Complete", "Done")
PRIORITIES = ("Critical", "High", "Medium", "Low")
DEFAULT_STATUS = STATUSES[0]
DEFAULT_PRIORITY = "Medium"


@dataclass
class Subtask:
    id: str
    title: str
    isCompleted: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subtask":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            isCompleted=bool(data.get("isCompleted", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "isCompleted": self.isCompleted}


@dataclass
class Blocker:
    id: str
    reason: str
    createdDate: str
    resolved: bool = False
    resolvedDate: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Blocker":
        return cls(
            id=str(data.get("id") or ""),
            reason=str(data.get("reason") or ""),
            createdDate=str(data.get("createdDate") or ""),
            resolved=bool(data.get("resolved", False)),
            resolvedDate=data.get("resolvedDate"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "reason": self.reason,
            "createdDate": self.createdDate,
            "resolved": self.resolved,
        }
        if self.resolvedDate is not None:
            payload["resolvedDate"] = self.resolvedDate
        return payload


# Scalar fields in wire order; lists are handled separately.
_SCALAR_FIELDS = (
    "id",
    "title",
    "description",
    "status",
    "priority",
    "dueDate",
    "assignedTo",
    "timeEstimate",
    "createdDate",
    "lastModified",
    "statusChangeDate",
    "actualTimeSpent",
    "completionDate",
    "xpAwarded",
    "scheduledStartDateTime",
    "isBlockedByDependencies",
    "currentSessionStartTime",
    "goalId",
    "isPinned",
)
_LIST_FIELDS = ("tags", "subtasks", "dependencies", "blockers")


@dataclass
class Task:
    id: str
    title: str
    status: str = DEFAULT_STATUS
    priority: str = DEFAULT_PRIORITY
    dueDate: str = ""
    lastModified: str = ""
    createdDate: str = ""
    statusChangeDate: str = ""
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    assignedTo: Optional[str] = None
    timeEstimate: Optional[float] = None
    subtasks: List[Subtask] = field(default_factory=list)
    actualTimeSpent: Optional[float] = None
    completionDate: Optional[str] = None
    xpAwarded: Optional[bool] = None
    scheduledStartDateTime: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    isBlockedByDependencies: Optional[bool] = None
    blockers: List[Blocker] = field(default_factory=list)
    currentSessionStartTime: Optional[float] = None
    goalId: Optional[str] = None
    isPinned: Optional[bool] = None
    # Keys written by newer clients that this version does not model.
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        if not isinstance(data, dict):
            raise TypeError("task payload must be a JSON object")
        known = set(_SCALAR_FIELDS) | set(_LIST_FIELDS)
        values: Dict[str, Any] = {name: data[name] for name in _SCALAR_FIELDS if name in data}
        values["id"] = str(data.get("id") or "")
        values["title"] = str(data.get("title") or "")
        for name in ("status", "priority", "dueDate", "lastModified", "createdDate", "statusChangeDate"):
            if values.get(name) is None:
                values.pop(name, None)
        values["tags"] = [str(tag) for tag in data.get("tags") or []]
        values["dependencies"] = [str(dep) for dep in data.get("dependencies") or []]
        values["subtasks"] = [Subtask.from_dict(item) for item in data.get("subtasks") or [] if isinstance(item, dict)]
        values["blockers"] = [Blocker.from_dict(item) for item in data.get("blockers") or [] if isinstance(item, dict)]
        values["extra"] = {key: value for key, value in data.items() if key not in known}
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        for name in _SCALAR_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        payload["tags"] = list(self.tags)
        payload["subtasks"] = [item.to_dict() for item in self.subtasks]
        payload["dependencies"] = list(self.dependencies)
        payload["blockers"] = [item.to_dict() for item in self.blockers]
        return payload

    def touch(self, now: Optional[str] = None) -> str:
        """Advance ``lastModified``; the stamp never moves backwards."""

        candidate = now or now_iso()
        previous = epoch_ms(self.lastModified)
        if epoch_ms(candidate) <= previous:
            candidate = to_iso_millis(EPOCH + timedelta(milliseconds=previous + 1)) or candidate
        self.lastModified = candidate
        return candidate


__all__ = [
    "Blocker",
    "DEFAULT_PRIORITY",
    "DEFAULT_STATUS",
    "PRIORITIES",
    "STATUSES",
    "Subtask",
    "Task",
]
