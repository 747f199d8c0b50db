from pathlib import Path
import json
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.metadata import (
    build_metadata,
    decode_metadata,
    encode_metadata,
    is_metadata_row,
    merge_remote_settings,
    sanitize_settings,
)
from services.row_codec import COL_JSON, METADATA_ROW_ID, TASK_HEADERS, header_map


SETTINGS = {
    "theme": "dark",
    "geminiApiKey": "secret-1",
    "googleApiKey": "secret-2",
    "googleClientId": "client",
    "googleSheetId": "sheet-123",
    "audio": {"enabled": True, "volume": 0.5},
}


def test_sanitize_strips_credentials_only():
    safe = sanitize_settings(SETTINGS)
    assert "geminiApiKey" not in safe
    assert "googleApiKey" not in safe
    assert "googleClientId" not in safe
    assert safe["theme"] == "dark"
    assert safe["googleSheetId"] == "sheet-123"
    assert SETTINGS["geminiApiKey"] == "secret-1"


def test_sentinel_row_layout():
    row = encode_metadata(SETTINGS, {"xp": 120, "level": 3})
    assert len(row) == len(TASK_HEADERS)
    assert row[0] == METADATA_ROW_ID
    assert row[1] == "APP_METADATA_DO_NOT_DELETE"
    assert "secret" not in row[COL_JSON]
    payload = json.loads(row[COL_JSON])
    assert payload["gamification"] == {"xp": 120, "level": 3}


def test_decode_metadata_round_trip():
    row = encode_metadata(SETTINGS, {"xp": 5})
    decoded = decode_metadata(row)
    assert decoded == build_metadata(SETTINGS, {"xp": 5})


def test_decode_metadata_with_reordered_headers():
    headers = header_map(["JSON_DATA", "ID"])
    row = ['{"settings": {"theme": "light"}}', METADATA_ROW_ID]
    assert is_metadata_row(row, headers)
    assert decode_metadata(row, headers) == {"settings": {"theme": "light"}}


def test_decode_metadata_ignores_other_rows_and_bad_json():
    assert decode_metadata(["t-1", "Task"]) is None
    row = encode_metadata({}, None)
    row[COL_JSON] = "{broken"
    assert decode_metadata(row) is None


def test_merge_remote_settings_keeps_device_values():
    local = {"geminiApiKey": "mine", "googleSheetId": "local-sheet", "audio": {"volume": 0.9, "muted": False}}
    remote = {"theme": "light", "googleSheetId": "remote-sheet", "audio": {"volume": 0.2}}

    merged = merge_remote_settings(local, remote)

    assert merged["theme"] == "light"
    assert merged["geminiApiKey"] == "mine"
    assert merged["googleSheetId"] == "local-sheet"
    assert merged["audio"] == {"volume": 0.2, "muted": False}


def test_merge_remote_settings_without_local_values():
    merged = merge_remote_settings({}, {"theme": "light", "googleAppsScriptUrl": ""})
    assert merged == {"theme": "light"}
