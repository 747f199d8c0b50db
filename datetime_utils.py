from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _normalize_fraction(s: str) -> str:
    """Pad or trim fractional seconds to 6 digits."""

    digits = s[:6]
    if len(digits) < 6:
        digits = digits + "0" * (6 - len(digits))
    return digits


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse a RFC3339 string and return a timezone-aware UTC datetime."""

    if not s:
        return None

    value = str(s).strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        tz_sign = "+"
        tz_suffix = "00:00"
        if "+" in tail:
            frac, tz_suffix = tail.split("+", 1)
            tz_sign = "+"
        elif "-" in tail:
            frac, tz_suffix = tail.split("-", 1)
            tz_sign = "-"
        else:
            frac = tail
        frac = _normalize_fraction(frac)
        value = f"{head}.{frac}{tz_sign}{tz_suffix}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def to_iso_millis(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to ``YYYY-MM-DDTHH:MM:SS.mmmZ``, the format stored in the sheet."""

    if dt is None:
        return None
    value = ensure_utc(dt)
    if value is None:
        return None
    millis = value.microsecond // 1000
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"


def now_iso() -> str:
    return to_iso_millis(utc_now()) or ""


def epoch_ms(value: Optional[str]) -> int:
    """Milliseconds since the epoch; unparsable values count as the epoch itself."""

    dt = parse_rfc3339(value)
    if dt is None:
        return 0
    delta = dt - EPOCH
    return delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds // 1000


__all__ = [
    "UTC",
    "EPOCH",
    "ensure_utc",
    "epoch_ms",
    "now_iso",
    "parse_rfc3339",
    "to_iso_millis",
    "utc_now",
]
