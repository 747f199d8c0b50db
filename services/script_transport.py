"""Transport talking to a user-deployed Apps Script web app over plain HTTP."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence

import requests

from core.settings import SHEET_SYNC
from models.goal import Goal
from models.sync_session import METHOD_SCRIPT_PROXY
from models.task import Task
from services.errors import TransportError
from services.transport import (
    PullResult,
    Transport,
    build_goal_rows,
    build_task_rows,
    decode_goal_table,
    decode_task_table,
)


logger = logging.getLogger(__name__)


class ScriptProxyTransport(Transport):
    """``GET ?action=check``, ``GET ?action=sync_down`` and ``POST sync_up``.

    The script owns the sheet schema and the write lock; the client sends no
    credentials.
    """

    method = METHOD_SCRIPT_PROXY

    def __init__(
        self,
        url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = SHEET_SYNC.request_timeout_sec,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(url)
        self.session = session or requests.Session()
        self.timeout = timeout
        self._clock = clock

    def _get(self, action: str) -> requests.Response:
        params = {"action": action, "t": int(self._clock() * 1000)}
        return self.session.get(self.target, params=params, timeout=self.timeout, allow_redirects=True)

    @staticmethod
    def _json(response: requests.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{action}: malformed JSON reply") from exc

    # ------------------------------------------------------------------
    # Transport API
    def test_connection(self) -> bool:
        try:
            response = self._get("check")
        except requests.RequestException as exc:
            logger.debug("Script check failed: %s", exc)
            return False
        if not response.ok:
            return False
        try:
            data = response.json()
        except ValueError:
            return False
        return isinstance(data, dict) and data.get("status") == "ok"

    def pull(self) -> PullResult:
        try:
            response = self._get("sync_down")
        except requests.RequestException as exc:
            raise TransportError(f"sync_down failed: {exc}", retryable=True) from exc
        if not response.ok:
            raise TransportError(
                f"HTTP Error {response.status_code}",
                response.status_code,
                response.status_code in SHEET_SYNC.retryable_status,
            )

        data = self._json(response, "sync_down")
        if not isinstance(data, dict):
            raise TransportError("sync_down: reply is not a JSON object")
        if data.get("status") == "error":
            raise TransportError(data.get("message") or "Script error")

        task_rows = data.get("tasks") or []
        goal_rows = data.get("goals") or []
        if not isinstance(task_rows, list) or not isinstance(goal_rows, list):
            raise TransportError("sync_down: tasks/goals must be arrays")

        tasks, metadata = decode_task_table(task_rows)
        goals = decode_goal_table(goal_rows)
        return PullResult(tasks=tasks, goals=goals, metadata=metadata)

    def push(self, tasks: Sequence[Task], goals: Sequence[Goal], metadata: Optional[Dict[str, Any]]) -> None:
        body = {
            "action": "sync_up",
            "rows": build_task_rows(tasks, goals, metadata),
            "goals": build_goal_rows(goals),
        }
        try:
            # The script reads the raw body (e.postData.contents) and parses it itself.
            response = self.session.post(
                self.target,
                data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"sync_up failed: {exc}", retryable=True) from exc
        if not response.ok:
            raise TransportError(
                f"HTTP Error {response.status_code}",
                response.status_code,
                response.status_code in SHEET_SYNC.retryable_status,
            )
        try:
            data = response.json()
        except ValueError as exc:
            # An HTML page with status 200 is what a crashed or unauthorised script returns.
            logger.warning("sync_up reply from %s was not JSON; treating the push as failed", self.target)
            raise TransportError("sync_up: reply is not a JSON acknowledgement", retryable=True) from exc
        if not isinstance(data, dict):
            raise TransportError("sync_up: reply is not a JSON object")
        if data.get("status") == "error":
            raise TransportError(data.get("message") or "Script error")


__all__ = ["ScriptProxyTransport"]
