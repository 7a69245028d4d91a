"""
Input validation and parsing utilities for VibeSnap.
"""

from typing import Optional
from datetime import datetime, time as dt_time
import re

from .errors import ParseError


DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

_DURATION_TOKEN = re.compile(r"(\d+)([a-z])")


def parse_duration(text: str) -> int:
    """
    Parse a compact duration such as ``30m``, ``2h``, ``1h30m`` or ``45s``.

    Returns:
        Total number of seconds (always positive)

    Raises:
        ParseError: on empty input, unknown units, dangling digits or a zero total
    """
    value = (text or "").strip().lower()
    if not value:
        raise ParseError(f"Invalid duration format: {text!r}")

    total = 0
    pos = 0
    for match in _DURATION_TOKEN.finditer(value):
        if match.start() != pos:
            raise ParseError(f"Invalid duration format: {text}")
        number, unit = match.groups()
        if unit not in DURATION_UNITS:
            raise ParseError(f"Invalid time unit: {unit}")
        total += int(number) * DURATION_UNITS[unit]
        pos = match.end()

    if pos != len(value):
        raise ParseError(f"Invalid duration format: {text}")
    if total == 0:
        raise ParseError(f"Invalid duration: {text}")

    return total


def parse_time_of_day(text: str, now: Optional[datetime] = None) -> int:
    """
    Parse ``HH:MM`` or ``HH:MM:SS`` as a local time on the current day.

    Args:
        text: Time of day
        now: Reference local datetime (defaults to now)

    Returns:
        Unix timestamp of that local time today
    """
    parts = (text or "").strip().split(":")
    if len(parts) not in (2, 3):
        raise ParseError(f"Invalid time format: {text}. Use HH:MM or HH:MM:SS")

    names = ("hour", "minute", "second")
    values = []
    for name, part in zip(names, parts):
        if not part.isdigit():
            raise ParseError(f"Invalid {name}: {part}")
        values.append(int(part))
    if len(values) == 2:
        values.append(0)

    try:
        target = dt_time(*values)
    except ValueError as e:
        raise ParseError(f"Invalid time: {text}") from e

    today = (now or datetime.now()).date()
    return int(datetime.combine(today, target).timestamp())


def validate_track_name(name: str) -> str:
    """Track names end up in the whitespace-separated HEAD record."""
    if not name or not name.strip():
        raise ParseError("Track name cannot be empty")
    if any(ch.isspace() for ch in name):
        raise ParseError(f"Track name cannot contain whitespace: {name!r}")
    return name


__all__ = [
    'parse_duration',
    'parse_time_of_day',
    'validate_track_name',
]
