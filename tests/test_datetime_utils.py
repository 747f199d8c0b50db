from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from datetime_utils import EPOCH, epoch_ms, parse_rfc3339, to_iso_millis


def test_parse_rfc3339_variants():
    assert parse_rfc3339("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert parse_rfc3339("2024-03-01T10:00:00.5+02:00") == datetime(2024, 3, 1, 8, 0, 0, 500000, tzinfo=timezone.utc)
    assert parse_rfc3339("") is None
    assert parse_rfc3339("yesterday") is None


def test_to_iso_millis_format():
    value = datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert to_iso_millis(value) == "2024-03-01T10:00:00.123Z"
    naive = datetime(2024, 3, 1, 10, 0, 0)
    assert to_iso_millis(naive) == "2024-03-01T10:00:00.000Z"
    assert to_iso_millis(None) is None


def test_epoch_ms():
    assert epoch_ms("1970-01-01T00:00:01.250Z") == 1250
    assert epoch_ms(to_iso_millis(EPOCH + timedelta(days=1))) == 86_400_000
    # unparsable stamps sort before everything else
    assert epoch_ms("garbage") == 0
    assert epoch_ms(None) == 0
