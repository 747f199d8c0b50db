from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models.sync_session import METHOD_DIRECT_API, METHOD_NONE, METHOD_SCRIPT_PROXY, choose_method
from services.errors import AuthRequiredError, ConfigurationError
from services.google_auth import GoogleAuth
from services.script_transport import ScriptProxyTransport
from services.sheets_transport import SheetsApiTransport
from services.transport_factory import build_transport, transport_factory


def test_choose_method_precedence():
    assert choose_method(" https://s.example/exec ", "sheet", True) == (METHOD_SCRIPT_PROXY, "https://s.example/exec")
    assert choose_method("", "sheet", True) == (METHOD_DIRECT_API, "sheet")
    assert choose_method(None, "sheet", False) == (METHOD_NONE, None)
    assert choose_method(None, None, True) == (METHOD_NONE, None)


def test_build_script_transport():
    transport = build_transport(METHOD_SCRIPT_PROXY, "https://s.example/exec")
    assert isinstance(transport, ScriptProxyTransport)
    assert transport.target == "https://s.example/exec"


def test_build_direct_transport_needs_credentials():
    with pytest.raises(AuthRequiredError):
        build_transport(METHOD_DIRECT_API, "sheet", lambda: None)

    transport = transport_factory(lambda: object())(METHOD_DIRECT_API, "sheet")
    assert isinstance(transport, SheetsApiTransport)


@pytest.mark.parametrize("method,target", [(METHOD_SCRIPT_PROXY, ""), ("carrier-pigeon", "sheet")])
def test_build_transport_rejects_bad_configuration(method, target):
    with pytest.raises(ConfigurationError):
        build_transport(method, target)


def test_google_auth_without_token_is_signed_out(tmp_path):
    auth = GoogleAuth(secrets_path=tmp_path / "secrets" / "client.json", token_path=tmp_path / "token.json")
    assert auth.is_signed_in() is False
    assert auth.get_credentials() is None
