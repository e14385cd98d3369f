"""Human-readable duration parsing.

Durations in settings files are written as a sequence of number/unit pairs,
e.g. ``"5s"``, ``"250ms"``, ``"2m30s"`` or ``"1h 15m"``. Bare numbers are
taken as seconds.
"""

from __future__ import annotations

import math
import re
from datetime import timedelta
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

# Unit spellings mapped to their length in seconds
_UNITS: dict[str, float] = {
    "nsec": 1e-9, "ns": 1e-9,
    "usec": 1e-6, "us": 1e-6, "µs": 1e-6,
    "msec": 1e-3, "ms": 1e-3,
    "seconds": 1.0, "second": 1.0, "sec": 1.0, "s": 1.0,
    "minutes": 60.0, "minute": 60.0, "min": 60.0, "m": 60.0,
    "hours": 3600.0, "hour": 3600.0, "hr": 3600.0, "h": 3600.0,
    "days": 86400.0, "day": 86400.0, "d": 86400.0,
    "weeks": 604800.0, "week": 604800.0, "w": 604800.0,
}

_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zµ]+)", re.IGNORECASE)
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def parse_duration(text: str) -> timedelta:
    """Parse a human-readable duration string.

    Args:
        text: Duration such as "100ms" or "2m30s".

    Returns:
        Equivalent timedelta.

    Raises:
        ValueError: If the string is empty, has an unknown unit, contains
            anything besides number/unit pairs, or exceeds the range of
            timedelta.
    """
    value = text.strip()
    if not value:
        raise ValueError("empty duration string")

    if _NUMBER.fullmatch(value):
        return _to_timedelta(float(value), text)

    total = 0.0
    position = 0
    for match in _PART.finditer(value):
        if value[position:match.start()].strip():
            raise ValueError(f"invalid duration {text!r}")
        amount, unit = match.groups()
        seconds = _UNITS.get(unit) or _UNITS.get(unit.lower())
        if seconds is None:
            raise ValueError(f"unknown duration unit {unit!r} in {text!r}")
        total += float(amount) * seconds
        position = match.end()

    if position == 0 or value[position:].strip():
        raise ValueError(f"invalid duration {text!r}")

    return _to_timedelta(total, text)


def _to_timedelta(seconds: float, source: Any) -> timedelta:
    if isinstance(seconds, float) and not math.isfinite(seconds):
        raise ValueError(f"duration {source!r} out of range")
    try:
        return timedelta(seconds=seconds)
    except OverflowError as e:
        raise ValueError(f"duration {source!r} out of range") from e


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the same notation parse_duration accepts."""
    micros = round(value.total_seconds() * 1_000_000)
    if micros == 0:
        return "0s"

    parts: list[str] = []
    for unit, size in (("h", 3_600_000_000), ("m", 60_000_000), ("s", 1_000_000), ("ms", 1_000), ("us", 1)):
        count, micros = divmod(micros, size)
        if count:
            parts.append(f"{count}{unit}")
    return "".join(parts)


def _coerce_duration(value: Any) -> Any:
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, bool):
        raise ValueError("duration must be a string or a number of seconds")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise ValueError("duration must be a number")
        if value < 0:
            raise ValueError("duration must not be negative")
        return _to_timedelta(value, value)
    return value


# Annotated timedelta accepting "5s"-style strings, serialized back the same way
HumanDuration = Annotated[
    timedelta,
    BeforeValidator(_coerce_duration),
    PlainSerializer(format_duration, return_type=str, when_used="json"),
]
