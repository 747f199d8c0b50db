"""Selection of the transport for the configured sync target."""

from __future__ import annotations

from typing import Any, Callable, Optional

from models.sync_session import METHOD_DIRECT_API, METHOD_SCRIPT_PROXY
from services.errors import AuthRequiredError, ConfigurationError
from services.script_transport import ScriptProxyTransport
from services.sheets_transport import SheetsApiTransport
from services.transport import Transport


CredentialsProvider = Callable[[], Any]
TransportFactory = Callable[[str, str], Transport]


def build_transport(
    method: str,
    target: Optional[str],
    credentials_provider: Optional[CredentialsProvider] = None,
) -> Transport:
    if not target:
        raise ConfigurationError("No spreadsheet or script URL configured")
    if method == METHOD_SCRIPT_PROXY:
        return ScriptProxyTransport(target)
    if method == METHOD_DIRECT_API:
        credentials = credentials_provider() if credentials_provider else None
        if credentials is None:
            raise AuthRequiredError("Sign in to Google to sync through the Sheets API")
        return SheetsApiTransport(target, credentials)
    raise ConfigurationError(f"Unknown sync method {method!r}")


def transport_factory(credentials_provider: Optional[CredentialsProvider] = None) -> TransportFactory:
    def factory(method: str, target: str) -> Transport:
        return build_transport(method, target, credentials_provider)

    return factory


__all__ = ["TransportFactory", "build_transport", "transport_factory"]
