from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import settings
from storage.config import SyncConfig, load_config, save_config, update_config


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_linux_data_dir_default_home():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={},
        home=Path("/home/test"),
    )
    assert result == Path("/home/test/.local/share") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    expected = Path("/Users/test/Library/Application Support") / settings.APP_NAME
    assert result == expected


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    expected = Path(env["APPDATA"]) / settings.APP_NAME
    assert result == expected


def test_runtime_paths_inside_data_dir():
    assert settings.STATE_DB_PATH.parent == settings.STORAGE_DIR
    assert settings.TOKEN_PATH.parent == settings.DATA_DIR
    assert settings.CLIENT_SECRET_PATH.parent == settings.SECRETS_DIR
    assert settings.SYNC_LOG_PATH.parent == settings.LOG_DIR


def test_sync_timings():
    assert settings.SHEET_SYNC.poll_interval_sec == 15.0
    assert settings.SHEET_SYNC.debounce_delay_sec == 1.0
    assert settings.SHEET_SYNC.skew_tolerance_ms == 1000


def test_config_round_trip(tmp_path):
    path = tmp_path / "config.json"
    assert load_config(path) == SyncConfig()

    save_config(SyncConfig(sheet_id="abc"), path)
    assert load_config(path).sheet_id == "abc"

    cfg = update_config(path, apps_script_url="https://script.example/exec", sheet_id="")
    assert cfg == SyncConfig(sheet_id=None, apps_script_url="https://script.example/exec")
    assert load_config(path) == cfg
    assert not path.with_suffix(".tmp").exists()


def test_corrupt_config_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")
    assert load_config(path) == SyncConfig()
