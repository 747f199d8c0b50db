"""The locally held task/goal/settings/gamification aggregate."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.goal import Goal
from models.task import Task
from storage.state_store import StateStore


logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
GOALS_KEY = "goals"
SETTINGS_KEY = "settings"
GAMIFICATION_KEY = "gamification"

Listener = Callable[[], None]


class LocalState:
    """Authoritative in-memory state with a single update entry point.

    Local edits and applied pulls both go through :meth:`update`; every
    update persists the changed parts and then notifies listeners once.
    """

    def __init__(self, store: Optional[StateStore] = None) -> None:
        self.store = store
        self._lock = threading.RLock()
        self._tasks: List[Task] = []
        self._goals: List[Goal] = []
        self._settings: Dict[str, Any] = {}
        self._gamification: Optional[Dict[str, Any]] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    def load(self) -> None:
        """Hydrate from the store without notifying listeners."""

        if self.store is None:
            return
        with self._lock:
            self._tasks = [Task.from_dict(item) for item in self.store.get(TASKS_KEY, []) or []]
            self._goals = [Goal.from_dict(item) for item in self.store.get(GOALS_KEY, []) or []]
            self._settings = dict(self.store.get(SETTINGS_KEY, {}) or {})
            self._gamification = self.store.get(GAMIFICATION_KEY)
        logger.debug("Loaded %d tasks and %d goals from local store", len(self._tasks), len(self._goals))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def locked(self) -> threading.RLock:
        """Hold across read-merge-apply so local edits cannot interleave."""

        return self._lock

    # ------------------------------------------------------------------
    @property
    def tasks(self) -> List[Task]:
        with self._lock:
            return copy.deepcopy(self._tasks)

    @property
    def goals(self) -> List[Goal]:
        with self._lock:
            return copy.deepcopy(self._goals)

    @property
    def settings(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._settings)

    @property
    def gamification(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._gamification)

    def update(
        self,
        *,
        tasks: Optional[Sequence[Task]] = None,
        goals: Optional[Sequence[Goal]] = None,
        settings: Optional[Dict[str, Any]] = None,
        gamification: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            if tasks is not None:
                self._tasks = copy.deepcopy(list(tasks))
                self._persist(TASKS_KEY, [task.to_dict() for task in self._tasks])
            if goals is not None:
                self._goals = copy.deepcopy(list(goals))
                self._persist(GOALS_KEY, [goal.to_dict() for goal in self._goals])
            if settings is not None:
                self._settings = copy.deepcopy(dict(settings))
                self._persist(SETTINGS_KEY, self._settings)
            if gamification is not None:
                self._gamification = copy.deepcopy(dict(gamification))
                self._persist(GAMIFICATION_KEY, self._gamification)
        for listener in list(self._listeners):
            listener()

    def upsert_task(self, task: Task) -> None:
        """Local edit helper: stamps ``lastModified`` and stores the task."""

        with self._lock:
            task.touch()
            current = self.tasks
            for index, existing in enumerate(current):
                if existing.id == task.id:
                    current[index] = task
                    break
            else:
                current.append(task)
            self.update(tasks=current)

    def _persist(self, key: str, value: Any) -> None:
        if self.store is not None:
            self.store.set(key, value)


__all__ = ["LocalState"]
