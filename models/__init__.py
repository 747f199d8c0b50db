"""Entities and session records exposed by the SheetSync Planner."""
from .goal import Goal
from .local_state import LocalStateRecord
from .sync_session import SyncSession
from .task import Blocker, Subtask, Task

__all__ = ["Blocker", "Goal", "LocalStateRecord", "Subtask", "SyncSession", "Task"]
