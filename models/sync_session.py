"""State carried by one synchronisation session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


METHOD_NONE = "none"
METHOD_DIRECT_API = "direct-api"
METHOD_SCRIPT_PROXY = "script-proxy"

STATUS_IDLE = "idle"
STATUS_SYNCING = "syncing"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def choose_method(
    script_url: Optional[str],
    sheet_id: Optional[str],
    signed_in: bool,
) -> Tuple[str, Optional[str]]:
    """Return ``(method, target)``; a script URL takes precedence over a sheet id."""

    script_url = (script_url or "").strip()
    sheet_id = (sheet_id or "").strip()
    if script_url:
        return METHOD_SCRIPT_PROXY, script_url
    if sheet_id and signed_in:
        return METHOD_DIRECT_API, sheet_id
    return METHOD_NONE, None


@dataclass
class SyncSession:
    method: str = METHOD_NONE
    target: Optional[str] = None
    status: str = STATUS_IDLE
    initial_pull_complete: bool = False
    dirty: bool = False
    # One-shot flag: the next local change notification is our own pull being applied.
    remote_update: bool = False
    last_sync_time: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def configured(self) -> bool:
        return self.method != METHOD_NONE and bool(self.target)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "target": self.target,
            "status": self.status,
            "initialPullComplete": self.initial_pull_complete,
            "dirty": self.dirty,
            "lastSyncTime": self.last_sync_time,
            "error": self.error_message,
        }


__all__ = [
    "METHOD_DIRECT_API",
    "METHOD_NONE",
    "METHOD_SCRIPT_PROXY",
    "STATUS_ERROR",
    "STATUS_IDLE",
    "STATUS_SUCCESS",
    "STATUS_SYNCING",
    "SyncSession",
    "choose_method",
]
