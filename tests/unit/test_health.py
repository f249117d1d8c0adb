from datetime import datetime, timedelta, timezone

from apiproxy.health import iso_timestamp


def test_iso_timestamp_format():
    now = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)

    assert iso_timestamp(now) == '2024-05-01T12:30:15.123Z'


def test_iso_timestamp_converts_to_utc():
    now = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    assert iso_timestamp(now) == '2024-05-01T12:00:00.000Z'


def test_iso_timestamp_defaults_to_now():
    parsed = datetime.fromisoformat(iso_timestamp().replace('Z', '+00:00'))

    assert abs(datetime.now(timezone.utc) - parsed) < timedelta(seconds=5)
