# planner/models/goal.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DEFAULT_GOAL_COLOR = "#6366f1"
_FIELDS = ("id", "title", "color", "textColor", "description", "createdDate")


@dataclass
class Goal:
    id: str
    title: str
    color: str = DEFAULT_GOAL_COLOR
    description: str = ""
    createdDate: str = ""
    textColor: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            color=str(data.get("color") or DEFAULT_GOAL_COLOR),
            description=str(data.get("description") or ""),
            createdDate=str(data.get("createdDate") or ""),
            textColor=data.get("textColor") or None,
            extra={key: value for key, value in data.items() if key not in _FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            id=self.id,
            title=self.title,
            color=self.color,
            description=self.description,
            createdDate=self.createdDate,
        )
        if self.textColor:
            payload["textColor"] = self.textColor
        return payload


__all__ = ["DEFAULT_GOAL_COLOR", "Goal"]
