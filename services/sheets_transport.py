"""Direct Google Sheets API transport."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError, RefreshError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from core.settings import SHEET_SYNC
from models.goal import Goal
from models.sync_session import METHOD_DIRECT_API
from models.task import Task
from services.errors import AuthRequiredError, TransportError
from services.transport import (
    GOAL_HEADERS,
    TASK_HEADERS,
    PullResult,
    Transport,
    build_goal_rows,
    build_task_rows,
    decode_goal_table,
    decode_task_table,
)


logger = logging.getLogger(__name__)


def _http_status(exc: HttpError) -> Optional[int]:
    status = getattr(getattr(exc, "resp", None), "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class SheetsApiTransport(Transport):
    """Reads and writes the spreadsheet in bulk ranges.

    Push overwrites the whole table from ``A1`` and then clears every row
    below the written block, so a shrinking task list never leaves stale
    rows behind.  The goals tab is optional.
    """

    method = METHOD_DIRECT_API

    def __init__(
        self,
        sheet_id: str,
        credentials: Any = None,
        *,
        service: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(sheet_id)
        if service is None and credentials is None:
            raise AuthRequiredError("The Sheets API transport needs signed-in credentials")
        self.credentials = credentials
        self.service = service
        self._sleep = sleep
        self.tasks_tab = SHEET_SYNC.tasks_tab
        self.goals_tab = SHEET_SYNC.goals_tab

    # ------------------------------------------------------------------
    # Initialisation helpers
    def _ensure_service(self):
        if self.service is None:
            self.service = build("sheets", "v4", credentials=self.credentials, cache_discovery=False)
        return self.service

    def _values(self):
        return self._ensure_service().spreadsheets().values()

    def _execute(self, request_factory: Callable[[], Any], action: str) -> Dict[str, Any]:
        delay = SHEET_SYNC.initial_backoff_sec
        for attempt in range(SHEET_SYNC.max_retries):
            try:
                return request_factory().execute() or {}
            except HttpError as exc:
                status = _http_status(exc)
                retryable = status in SHEET_SYNC.retryable_status
                if not retryable or attempt == SHEET_SYNC.max_retries - 1:
                    raise TransportError(f"{action} failed with HTTP {status}: {exc}", status, retryable) from exc
                logger.warning("%s failed with HTTP %s, retrying in %.1fs", action, status, delay)
            except RefreshError as exc:
                raise AuthRequiredError(f"{action} failed: Google session expired ({exc})") from exc
            except (GoogleAuthError, HttpLib2Error, OSError) as exc:
                if attempt == SHEET_SYNC.max_retries - 1:
                    raise TransportError(f"{action} failed: {exc}", retryable=True) from exc
                logger.warning("%s failed (%s), retrying in %.1fs", action, exc, delay)
            self._sleep(delay)
            delay = min(delay * 2, SHEET_SYNC.max_backoff_sec)
        raise TransportError(f"{action} failed")

    def _range(self, tab: str, cells: str) -> str:
        return f"{tab}!{cells}"

    # ------------------------------------------------------------------
    # Transport API
    def test_connection(self) -> bool:
        try:
            self._execute(
                lambda: self._ensure_service().spreadsheets().get(spreadsheetId=self.target, fields="spreadsheetId"),
                "Connection check",
            )
        except TransportError as exc:
            logger.info("Spreadsheet %s is not reachable: %s", self.target, exc)
            return False
        return True

    def prepare(self) -> None:
        """Write the header row when it is missing or shorter than the schema."""

        header_range = self._range(self.tasks_tab, f"A1:{SHEET_SYNC.tasks_last_column}1")
        response = self._execute(
            lambda: self._values().get(spreadsheetId=self.target, range=header_range),
            "Header check",
        )
        values = response.get("values") or []
        if values and len(values[0]) >= len(TASK_HEADERS):
            return
        logger.info("Initialising header row of %s", self.target)
        self._execute(
            lambda: self._values().update(
                spreadsheetId=self.target,
                range=header_range,
                valueInputOption="RAW",
                body={"values": [TASK_HEADERS]},
            ),
            "Header initialisation",
        )

    def pull(self) -> PullResult:
        tasks_range = self._range(self.tasks_tab, f"A1:{SHEET_SYNC.tasks_last_column}")
        response = self._execute(
            lambda: self._values().get(spreadsheetId=self.target, range=tasks_range),
            "Task pull",
        )
        tasks, metadata = decode_task_table(response.get("values") or [])

        goals: List[Goal] = []
        goals_range = self._range(self.goals_tab, f"A1:{SHEET_SYNC.goals_last_column}")
        try:
            goal_response = self._execute(
                lambda: self._values().get(spreadsheetId=self.target, range=goals_range),
                "Goal pull",
            )
            goals = decode_goal_table(goal_response.get("values") or [])
        except TransportError as exc:
            logger.warning("Could not read %r tab: %s", self.goals_tab, exc)

        return PullResult(tasks=tasks, goals=goals, metadata=metadata)

    def push(self, tasks: Sequence[Task], goals: Sequence[Goal], metadata: Optional[Dict[str, Any]]) -> None:
        task_values = [TASK_HEADERS] + build_task_rows(tasks, goals, metadata)
        self._write_table(self.tasks_tab, task_values, SHEET_SYNC.tasks_last_column, "Task push")

        goal_values = [GOAL_HEADERS] + build_goal_rows(goals)
        try:
            self._write_table(self.goals_tab, goal_values, SHEET_SYNC.goals_last_column, "Goal push")
        except TransportError as exc:
            logger.warning("Could not write %r tab: %s", self.goals_tab, exc)

    def _write_table(self, tab: str, values: List[List[Any]], last_column: str, action: str) -> None:
        self._execute(
            lambda: self._values().update(
                spreadsheetId=self.target,
                range=self._range(tab, "A1"),
                valueInputOption="RAW",
                body={"values": values},
            ),
            action,
        )
        next_row = len(values) + 1
        self._execute(
            lambda: self._values().clear(
                spreadsheetId=self.target,
                range=self._range(tab, f"A{next_row}:{last_column}"),
                body={},
            ),
            f"{action} cleanup",
        )


__all__ = ["SheetsApiTransport"]
