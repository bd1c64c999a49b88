"""Tests for UTC helpers."""

from datetime import datetime, timedelta, timezone

import pytz

from teampulse.utils.timezone import (
    UTC,
    days_ago,
    ensure_utc,
    from_epoch_millis,
    from_epoch_seconds,
    isoformat,
    to_epoch_millis,
    utc_day_key,
)


class TestEnsureUtc:

    def test_naive_is_assumed_utc(self):
        result = ensure_utc(datetime(2025, 1, 15, 12))

        assert result.tzinfo is not None
        assert result.hour == 12

    def test_other_zone_is_converted(self):
        eastern = pytz.timezone("America/New_York").localize(datetime(2025, 1, 15, 7))

        assert ensure_utc(eastern).hour == 12

    def test_none(self):
        assert ensure_utc(None) is None


class TestEpochConversion:

    def test_millis(self):
        dt = from_epoch_millis(1736942400000)

        assert dt == datetime(2025, 1, 15, 12, tzinfo=timezone.utc)
        assert to_epoch_millis(dt) == 1736942400000

    def test_slack_style_seconds_string(self):
        dt = from_epoch_seconds("1736942400.000200")

        assert dt.replace(microsecond=0) == datetime(2025, 1, 15, 12, tzinfo=timezone.utc)

    def test_missing_values(self):
        assert from_epoch_millis(None) is None
        assert from_epoch_seconds("") is None


class TestFormatting:

    def test_day_key_uses_utc(self):
        late_evening_pacific = pytz.timezone("America/Los_Angeles").localize(datetime(2025, 1, 14, 20))

        assert utc_day_key(late_evening_pacific) == "2025-01-15"

    def test_isoformat(self):
        assert isoformat(datetime(2025, 1, 15, 12)) == "2025-01-15T12:00:00+00:00"
        assert isoformat(None) is None

    def test_days_ago(self):
        now = datetime(2025, 1, 15, tzinfo=UTC)

        assert days_ago(7, now=now) == now - timedelta(days=7)
