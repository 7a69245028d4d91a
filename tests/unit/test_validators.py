"""
Tests for duration, time-of-day and track name parsing.
"""

import pytest
from datetime import datetime

from vibesnap.utils.errors import ParseError
from vibesnap.utils.validators import parse_duration, parse_time_of_day, validate_track_name


class TestParseDuration:

    @pytest.mark.parametrize("text,seconds", [
        ("45s", 45),
        ("30m", 1800),
        ("2h", 7200),
        ("1d", 86400),
        ("1h30m", 5400),
        ("1H30M", 5400),
    ])
    def test_valid(self, text, seconds):
        assert parse_duration(text) == seconds

    @pytest.mark.parametrize("text", ["", "abc", "30", "1h30", "5x", "0m", "m30", "1h 30m"])
    def test_invalid(self, text):
        with pytest.raises(ParseError):
            parse_duration(text)


class TestParseTimeOfDay:

    def test_hours_and_minutes_today(self):
        now = datetime(2024, 5, 17, 18, 0, 0)

        assert parse_time_of_day("14:30", now) == int(datetime(2024, 5, 17, 14, 30).timestamp())

    def test_with_seconds(self):
        now = datetime(2024, 5, 17, 18, 0, 0)

        assert parse_time_of_day("09:05:07", now) == int(datetime(2024, 5, 17, 9, 5, 7).timestamp())

    @pytest.mark.parametrize("text", ["14", "25:00", "12:60", "ab:cd", "1:2:3:4"])
    def test_invalid(self, text):
        with pytest.raises(ParseError):
            parse_time_of_day(text)


class TestTrackName:

    def test_valid(self):
        assert validate_track_name("feature-x") == "feature-x"

    @pytest.mark.parametrize("name", ["", "   ", "two words", "tab\tname"])
    def test_invalid(self, name):
        with pytest.raises(ParseError):
            validate_track_name(name)
