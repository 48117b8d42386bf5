"""Lap time parsing and canonical ``M:SS.mmm`` formatting."""

from __future__ import annotations

import math
import re

_LAP_TIME_RE = re.compile(r"^(?P<minutes>\d+):(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,3}))?$")


def parse_lap_time(text: str | None) -> int | None:
    """Return the lap time in milliseconds, or None if ``text`` is malformed.

    Accepts ``minutes:seconds(.milliseconds)``; seconds must be below 60 and the
    fraction may carry one to three digits (``1:31.4`` is 91400 ms).
    """
    if not text:
        return None
    match = _LAP_TIME_RE.match(text.strip())
    if match is None:
        return None
    seconds = int(match["seconds"])
    if seconds >= 60:
        return None
    fraction = (match["fraction"] or "").ljust(3, "0")
    return (int(match["minutes"]) * 60 + seconds) * 1000 + int(fraction or 0)


def lap_time_to_millis(value: str | float | None) -> int | None:
    """Milliseconds for a lap time in either provider's form.

    Strings are ``M:SS.mmm`` text from the primary provider; numbers are the
    secondary provider's float seconds. Anything unusable gives None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value <= 0:
            return None
        return round(value * 1000)
    return parse_lap_time(value)


def format_millis(millis: int) -> str:
    """Format milliseconds as canonical ``M:SS.mmm``."""
    minutes, rest = divmod(millis, 60_000)
    seconds, ms = divmod(rest, 1000)
    return f"{minutes}:{seconds:02d}.{ms:03d}"


def normalize_lap_time(text: str | None) -> str | None:
    """Rewrite a provider lap time into canonical form, or None if unparsable."""
    millis = parse_lap_time(text)
    return None if millis is None else format_millis(millis)


def format_lap_time(seconds: float | None) -> str | None:
    """Format a lap duration in float seconds as canonical ``M:SS.mmm``."""
    millis = lap_time_to_millis(seconds)
    return None if millis is None else format_millis(millis)
