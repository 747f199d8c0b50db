"""Exception taxonomy for the spreadsheet synchronisation engine."""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for every synchronisation failure."""


class TransportError(SyncError):
    """Network/HTTP failure, non-2xx reply or malformed envelope."""

    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class DecodeError(SyncError):
    """A single remote row could not be turned into an entity."""


class ConfigurationError(SyncError):
    """No synchronisation target is configured."""


class AuthRequiredError(SyncError):
    """The direct API transport was requested without a signed-in session."""


__all__ = [
    "AuthRequiredError",
    "ConfigurationError",
    "DecodeError",
    "SyncError",
    "TransportError",
]
