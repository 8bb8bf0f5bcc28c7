"""
Unit tests for sync interval parsing and due checks.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from crossseed_ui.services.interval import (
    DEFAULT_INTERVAL,
    is_due,
    next_run_time,
    parse_interval,
    utcnow,
)


class TestParseInterval:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("15 minutes", timedelta(minutes=15)),
            ("1 minute", timedelta(minutes=1)),
            ("6 hours", timedelta(hours=6)),
            ("1 hour", timedelta(hours=1)),
            ("1 day", timedelta(days=1)),
            ("2 days", timedelta(days=2)),
            ("  30 Minutes ", timedelta(minutes=30)),
        ],
    )
    def test_valid_intervals(self, text, expected):
        assert parse_interval(text) == expected

    @pytest.mark.parametrize("text", ["weekly", "", None, "5 fortnights", "-1 hour", "hour", "0 minutes", "0 hours", "00 days"])
    def test_unparseable_falls_back_to_one_hour(self, text):
        assert parse_interval(text) == DEFAULT_INTERVAL == timedelta(hours=1)

    def test_unparseable_logs_warning(self):
        with patch("crossseed_ui.services.interval.logger") as mock_logger:
            parse_interval("weekly")

        mock_logger.warning.assert_called_once()
        args, kwargs = mock_logger.warning.call_args
        assert args == ("sync_interval_unparseable",)
        assert kwargs["interval"] == "weekly"

    def test_valid_interval_does_not_warn(self):
        with patch("crossseed_ui.services.interval.logger") as mock_logger:
            parse_interval("2 hours")

        mock_logger.warning.assert_not_called()

    def test_zero_interval_warns_and_is_not_always_due(self):
        now = datetime(2026, 1, 1, 12, 0, 0)

        with patch("crossseed_ui.services.interval.logger") as mock_logger:
            interval = parse_interval("0 minutes")

        assert mock_logger.warning.call_args.args == ("sync_interval_unparseable",)
        assert is_due(now, interval, now) is False


class TestIsDue:
    def test_never_run_is_due(self):
        assert is_due(None, timedelta(hours=1)) is True

    def test_due_exactly_at_interval(self):
        last = datetime(2026, 1, 1, 12, 0, 0)
        assert is_due(last, timedelta(hours=1), now=datetime(2026, 1, 1, 13, 0, 0)) is True

    def test_not_due_before_interval(self):
        last = datetime(2026, 1, 1, 12, 0, 0)
        assert is_due(last, timedelta(hours=1), now=datetime(2026, 1, 1, 12, 59, 59)) is False

    @freeze_time("2026-03-01 10:00:00")
    def test_uses_current_time_by_default(self):
        assert is_due(datetime(2026, 3, 1, 9, 0, 0), timedelta(hours=1)) is True
        assert is_due(datetime(2026, 3, 1, 9, 30, 0), timedelta(hours=1)) is False


class TestNextRunTime:
    def test_last_run_plus_interval(self):
        last = datetime(2026, 1, 1, 12, 0, 0)
        assert next_run_time(last, timedelta(minutes=15)) == datetime(2026, 1, 1, 12, 15, 0)

    @freeze_time("2026-03-01 10:00:00")
    def test_never_run_is_now(self):
        assert next_run_time(None, timedelta(hours=1)) == datetime(2026, 3, 1, 10, 0, 0)

    @freeze_time("2026-03-01 10:00:00")
    def test_utcnow_is_naive(self):
        now = utcnow()
        assert now.tzinfo is None
        assert now == datetime(2026, 3, 1, 10, 0, 0)
