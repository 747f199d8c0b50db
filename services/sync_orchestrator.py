from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import SHEET_SYNC, SYNC_LOG_PATH
from datetime_utils import now_iso
from models.sync_session import (
    METHOD_NONE,
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_SUCCESS,
    STATUS_SYNCING,
    SyncSession,
    choose_method,
)
from services.errors import AuthRequiredError, ConfigurationError, SyncError
from services.local_state import LocalState
from services.merge import MergeResult, merge_goals, merge_tasks
from services.metadata import build_metadata, merge_remote_settings
from services.scheduler import Handle, Scheduler, cancel
from services.transport import Transport
from services.transport_factory import TransportFactory


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("planner.sheetsync")
    if not logger.handlers:
        Path(SYNC_LOG_PATH).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


class SyncOrchestrator:
    """Push/pull state machine between :class:`LocalState` and one transport.

    * Nothing is pushed for a target until a pull from it has succeeded.
    * Local changes mark the session dirty and (re)arm a short debounce
      timer; the push happens when it expires.
    * Applying a pull sets a one-shot flag so the resulting change
      notification is not mistaken for a local edit.
    * Background polls and focus refreshes are skipped while syncing, while
      dirty and before the initial pull; their failures never flip the status.
    * At most one push or pull runs at a time (``_sync_lock``).
    """

    def __init__(
        self,
        state: LocalState,
        scheduler: Scheduler,
        transport_factory: TransportFactory,
        *,
        poll_interval: float = SHEET_SYNC.poll_interval_sec,
        debounce_delay: float = SHEET_SYNC.debounce_delay_sec,
        initial_delay: float = SHEET_SYNC.initial_pull_delay_sec,
    ) -> None:
        self.state = state
        self.scheduler = scheduler
        self._factory = transport_factory
        self.poll_interval = poll_interval
        self.debounce_delay = debounce_delay
        self.initial_delay = initial_delay
        self.session = SyncSession()
        self.transport: Optional[Transport] = None
        self.logger = _ensure_logger()

        self._sync_lock = threading.Lock()
        self._timer_lock = threading.RLock()
        self._debounce: Optional[Handle] = None
        self._poll: Optional[Handle] = None
        self._initial: Optional[Handle] = None
        self._push_failures = 0
        self._unsubscribe = state.subscribe(self.on_local_change)

    # ------------------------------------------------------------------
    # Configuration
    def configure(self, script_url: Optional[str], sheet_id: Optional[str], signed_in: bool) -> SyncSession:
        method, target = choose_method(script_url, sheet_id, signed_in)
        unchanged = method == self.session.method and target == self.session.target
        if unchanged and (method != METHOD_NONE or self.session.status == STATUS_IDLE):
            return self.session

        self._cancel_timers()
        self.transport = None
        self.session = SyncSession(method=method, target=target)
        self._push_failures = 0

        if method == METHOD_NONE:
            self.logger.info("No sync target configured; sync is idle")
            return self.session

        try:
            self.transport = self._factory(method, target)
        except AuthRequiredError as exc:
            self.logger.warning("Cannot use %s: %s", method, exc)
            self.session = SyncSession(status=STATUS_ERROR, error_message=str(exc))
            return self.session
        except ConfigurationError as exc:
            self.logger.info("Sync target rejected: %s", exc)
            self.session = SyncSession()
            return self.session

        self.logger.info("Sync target set: %s via %s", target, method)
        with self._timer_lock:
            self._initial = self.scheduler.after(self.initial_delay, self._initial_pull)
            self._poll = self.scheduler.every(self.poll_interval, self._poll_tick)
        return self.session

    def shutdown(self) -> None:
        self._cancel_timers()
        self._unsubscribe()

    def snapshot(self) -> Dict[str, Any]:
        return self.session.as_dict()

    # ------------------------------------------------------------------
    # Local change detection
    def on_local_change(self) -> None:
        session = self.session
        if session.remote_update:
            session.remote_update = False
            return
        if not session.configured or not session.initial_pull_complete:
            return
        session.dirty = True
        self._arm_debounce(self.debounce_delay)

    def on_focus(self) -> bool:
        """The application regained the foreground."""

        self.logger.info("Focus regained; refreshing")
        return self._background_pull("focus")

    # ------------------------------------------------------------------
    # Public operations
    def manual_pull(self) -> bool:
        session, transport = self.session, self.transport
        if not session.configured or transport is None:
            return False
        if not self._sync_lock.acquire(timeout=SHEET_SYNC.request_timeout_sec):
            self.logger.warning("Manual pull skipped: another sync is still running")
            return False
        try:
            session.status = STATUS_SYNCING
            self._pull_and_apply(session, transport, is_polling_pass=False)
        except SyncError as exc:
            self._fail(session, "Pull failed", exc)
            return False
        finally:
            self._sync_lock.release()
        self._after_reconcile(session)
        return True

    def manual_push(self) -> bool:
        with self._timer_lock:
            cancel(self._debounce)
            self._debounce = None
        return self.push(blocking=True)

    def push(self, blocking: bool = False) -> bool:
        session, transport = self.session, self.transport
        if not session.configured or transport is None:
            return False
        if not session.initial_pull_complete:
            self.logger.warning("Push blocked: initial pull pending")
            return False

        if blocking:
            acquired = self._sync_lock.acquire(timeout=SHEET_SYNC.request_timeout_sec)
        else:
            acquired = self._sync_lock.acquire(blocking=False)
        if not acquired:
            self.logger.debug("Push deferred: another sync is in flight")
            session.dirty = True
            self._arm_debounce(self.debounce_delay)
            return False

        failed = False
        crash: Optional[Exception] = None
        try:
            session.status = STATUS_SYNCING
            with self.state.locked():
                tasks = self.state.tasks
                goals = self.state.goals
                metadata = build_metadata(self.state.settings, self.state.gamification)
                # Edits made while the upload runs mark the session dirty again.
                session.dirty = False
            self.logger.info("Pushing %d tasks and %d goals to %s", len(tasks), len(goals), transport)
            try:
                transport.push(tasks, goals, metadata)
            except SyncError as exc:
                session.dirty = True
                self._fail(session, "Push failed", exc)
                failed = True
            except Exception as exc:
                session.dirty = True
                self._fail(session, "Push crashed", exc)
                failed = True
                crash = exc
            else:
                session.status = STATUS_SUCCESS
                session.error_message = None
                session.last_sync_time = now_iso()
        finally:
            self._sync_lock.release()

        if failed:
            self._schedule_push_retry(session)
            if crash is not None:
                raise crash
            return False
        if session is not self.session:
            return True
        self._push_failures = 0
        if session.dirty:
            self._arm_debounce(self.debounce_delay)
        return True

    # ------------------------------------------------------------------
    # Timer callbacks
    def _initial_pull(self) -> None:
        with self._timer_lock:
            self._initial = None
        session, transport = self.session, self.transport
        if not session.configured or transport is None or session.initial_pull_complete:
            return
        if not self._sync_lock.acquire(blocking=False):
            with self._timer_lock:
                self._initial = self.scheduler.after(self.initial_delay, self._initial_pull)
            return
        try:
            session.status = STATUS_SYNCING
            self.logger.info("Initial pull via %s", session.method)
            transport.prepare()
            self._pull_and_apply(session, transport, is_polling_pass=False)
        except SyncError as exc:
            self._fail(session, "Initial pull failed", exc)
            return
        except Exception as exc:
            self._fail(session, "Initial pull crashed", exc)
            raise
        finally:
            self._sync_lock.release()
        self._after_reconcile(session)

    def _poll_tick(self) -> None:
        session = self.session
        if not session.configured:
            return
        if not session.initial_pull_complete:
            # Retry a failed initial pull on the polling cadence.
            if session.status == STATUS_ERROR and self._initial is None:
                self._initial_pull()
            return
        self._background_pull("poll")

    def _on_debounce(self) -> None:
        with self._timer_lock:
            self._debounce = None
        if self.session.dirty:
            self.push()

    # ------------------------------------------------------------------
    # Helpers
    def _background_pull(self, reason: str) -> bool:
        session, transport = self.session, self.transport
        if not session.configured or transport is None:
            return False
        if session.status == STATUS_SYNCING or session.dirty or not session.initial_pull_complete:
            return False
        if not self._sync_lock.acquire(blocking=False):
            return False
        try:
            self._pull_and_apply(session, transport, is_polling_pass=True)
        except SyncError as exc:
            self.logger.warning("Background pull (%s) failed: %s", reason, exc)
            return False
        finally:
            self._sync_lock.release()
        return True

    def _pull_and_apply(self, session: SyncSession, transport: Transport, is_polling_pass: bool) -> MergeResult:
        if not is_polling_pass:
            self.logger.info("Pulling via %s", session.method)
        remote = transport.pull()

        with self.state.locked():
            result = merge_tasks(self.state.tasks, remote.tasks, is_polling_pass)
            goals = merge_goals(self.state.goals, remote.goals)

            if not is_polling_pass or result.remote_changed:
                self.logger.info(
                    "Merge result: %d tasks, remote changes: %s", len(result.merged), result.remote_changed
                )
                settings = None
                gamification = None
                metadata = remote.metadata or {}
                if isinstance(metadata.get("gamification"), dict):
                    gamification = metadata["gamification"]
                if isinstance(metadata.get("settings"), dict):
                    settings = merge_remote_settings(self.state.settings, metadata["settings"])

                session.remote_update = True
                try:
                    self.state.update(
                        tasks=result.merged,
                        goals=goals,
                        settings=settings,
                        gamification=gamification,
                    )
                finally:
                    session.remote_update = False

        session.last_sync_time = now_iso()
        session.initial_pull_complete = True
        session.status = STATUS_SUCCESS
        session.error_message = None
        if result.local_is_stale:
            self.logger.info("Local data is newer than the sheet; scheduling a repair push")
            session.dirty = True
        return result

    def _schedule_push_retry(self, session: SyncSession) -> None:
        if session is not self.session:
            return
        self._push_failures += 1
        retry_in = min(self.debounce_delay * (2 ** (self._push_failures - 1)), self.poll_interval)
        self.logger.info("Retrying push in %.1fs (attempt %d)", retry_in, self._push_failures)
        self._arm_debounce(retry_in)

    def _after_reconcile(self, session: SyncSession) -> None:
        if session is self.session and session.dirty:
            self._arm_debounce(self.debounce_delay)

    def _fail(self, session: SyncSession, what: str, exc: Exception) -> None:
        session.status = STATUS_ERROR
        session.error_message = str(exc) or what
        self.logger.error("%s: %s", what, exc)

    def _arm_debounce(self, delay: float) -> None:
        with self._timer_lock:
            cancel(self._debounce)
            self._debounce = self.scheduler.after(delay, self._on_debounce)

    def _cancel_timers(self) -> None:
        with self._timer_lock:
            for handle in (self._debounce, self._poll, self._initial):
                cancel(handle)
            self._debounce = self._poll = self._initial = None


__all__ = ["SyncOrchestrator"]
