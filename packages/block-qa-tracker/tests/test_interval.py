"""Tests for interval parsing."""

from __future__ import annotations

import pytest

from block_qa_tracker.errors import InvalidIntervalError, StartupError
from block_qa_tracker.interval import format_interval, parse_interval


class TestParseInterval:
    """Tests for parse_interval()."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("30s", 30.0),
            ("5m", 300.0),
            ("1h", 3600.0),
            ("1h30m", 5400.0),
            ("1.5h", 5400.0),
            ("500ms", 0.5),
            ("2m30s", 150.0),
            (" 10s ", 10.0),
            ("+10s", 10.0),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_interval(text) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "text",
        ["", "   ", "abc", "30", "5x", "-5m", "0s", "0h0m", "1h 30m", "m"],
    )
    def test_invalid(self, text):
        with pytest.raises(InvalidIntervalError):
            parse_interval(text)

    def test_error_message_lists_examples(self):
        with pytest.raises(InvalidIntervalError) as exc_info:
            parse_interval("abc")
        message = str(exc_info.value)
        assert "'abc'" in message
        assert "30s, 5m, 1h" in message

    def test_invalid_interval_is_fatal(self):
        """Interval errors belong to the startup family."""
        with pytest.raises(StartupError):
            parse_interval("never")

    def test_micro_units(self):
        assert parse_interval("1500us") == pytest.approx(0.0015)
        assert parse_interval("1500µs") == pytest.approx(0.0015)


class TestFormatInterval:
    """Tests for format_interval()."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(30, "30s"), (300, "5m"), (5400, "1h30m"), (3600, "1h"), (0.5, "500ms"), (90.5, "1m30.5s")],
    )
    def test_format(self, seconds, expected):
        assert format_interval(seconds) == expected
