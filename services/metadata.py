"""Settings and gamification state carried in the sentinel metadata row."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from core.settings import SHEET_SYNC
from services.row_codec import (
    COL_JSON,
    METADATA_ROW_ID,
    METADATA_ROW_TITLE,
    TASK_HEADERS,
    HeaderMap,
    safe_string,
)


logger = logging.getLogger(__name__)


def sanitize_settings(settings: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of ``settings`` without credential-like keys."""

    safe = dict(settings or {})
    for key in SHEET_SYNC.secret_setting_keys:
        safe.pop(key, None)
    return safe


def build_metadata(
    settings: Optional[Mapping[str, Any]],
    gamification: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    return {
        "gamification": dict(gamification) if gamification is not None else None,
        "settings": sanitize_settings(settings),
    }


def encode_metadata(
    settings: Optional[Mapping[str, Any]],
    gamification: Optional[Mapping[str, Any]],
) -> list:
    return encode_metadata_payload(build_metadata(settings, gamification))


def encode_metadata_payload(metadata: Mapping[str, Any]) -> list:
    payload = dict(metadata)
    if "settings" in payload:
        payload["settings"] = sanitize_settings(payload["settings"])
    row: list = [METADATA_ROW_ID, METADATA_ROW_TITLE, "Done", "Low"]
    row.extend(["", "", 0])
    row.extend([""] * (COL_JSON - len(row)))
    row.append(json.dumps(payload, ensure_ascii=False))
    return row


def is_metadata_row(row: Sequence[Any], headers: Optional[HeaderMap] = None) -> bool:
    if not row:
        return False
    index = headers.get(TASK_HEADERS[0], 0) if headers else 0
    return index < len(row) and safe_string(row[index]).strip() == METADATA_ROW_ID


def decode_metadata(row: Sequence[Any], headers: Optional[HeaderMap] = None) -> Optional[Dict[str, Any]]:
    if not isinstance(row, (list, tuple)) or not is_metadata_row(row, headers):
        return None
    index = COL_JSON
    if headers and TASK_HEADERS[COL_JSON] in headers:
        index = headers[TASK_HEADERS[COL_JSON]]
    if index >= len(row) or not safe_string(row[index]).strip():
        return None
    try:
        payload = json.loads(safe_string(row[index]))
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse metadata row: %s", exc)
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def merge_remote_settings(
    local: Optional[Mapping[str, Any]],
    remote: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Remote settings win, except for values that must stay on this device.

    Credentials and connection settings are taken from ``local`` whenever it
    has them; audio preferences are merged key by key.
    """

    local = dict(local or {})
    merged = dict(remote or {})
    for key in SHEET_SYNC.secret_setting_keys + SHEET_SYNC.connection_setting_keys:
        value = local.get(key) or merged.get(key)
        if value:
            merged[key] = value
        else:
            merged.pop(key, None)
    local_audio = local.get("audio")
    remote_audio = merged.get("audio")
    if isinstance(local_audio, dict) or isinstance(remote_audio, dict):
        audio = dict(local_audio or {})
        audio.update(remote_audio or {})
        merged["audio"] = audio
    return merged


__all__ = [
    "build_metadata",
    "decode_metadata",
    "encode_metadata",
    "encode_metadata_payload",
    "is_metadata_row",
    "merge_remote_settings",
    "sanitize_settings",
]
