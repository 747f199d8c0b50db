"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "SheetSync Planner"


DATA_DIR = get_default_data_dir(APP_NAME)
STORAGE_DIR = DATA_DIR / "storage"
SECRETS_DIR = DATA_DIR / "secrets"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, STORAGE_DIR, SECRETS_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


STATE_DB_PATH = STORAGE_DIR / "state.db"
CONFIG_PATH = DATA_DIR / "config.json"
TOKEN_PATH = DATA_DIR / "token.json"
CLIENT_SECRET_PATH = SECRETS_DIR / "client_secret.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class SheetSyncSettings:
    poll_interval_sec: float = 15.0
    debounce_delay_sec: float = 1.0
    initial_pull_delay_sec: float = 0.1
    skew_tolerance_ms: int = 1000
    tasks_tab: str = "Sheet1"
    goals_tab: str = "Goals"
    tasks_last_column: str = "Q"
    goals_last_column: str = "F"
    scopes: tuple[str, ...] = (
        "https://www.googleapis.com/auth/spreadsheets",
    )
    retryable_status: tuple[int, ...] = (429, 500, 502, 503, 504)
    max_retries: int = 4
    initial_backoff_sec: float = 1.0
    max_backoff_sec: float = 16.0
    request_timeout_sec: float = 30.0
    secret_setting_keys: tuple[str, ...] = (
        "geminiApiKey",
        "googleApiKey",
        "googleClientId",
    )
    connection_setting_keys: tuple[str, ...] = (
        "googleAppsScriptUrl",
        "googleSheetId",
    )


SHEET_SYNC = SheetSyncSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "SECRETS_DIR",
    "LOG_DIR",
    "STATE_DB_PATH",
    "CONFIG_PATH",
    "TOKEN_PATH",
    "CLIENT_SECRET_PATH",
    "SYNC_LOG_PATH",
    "SHEET_SYNC",
    "get_default_data_dir",
]
