"""
app/scheduler/duration.py

Parsing for duration strings such as ``"1h"``, ``"15m"`` or ``"1h30m"``.
"""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class SchedulerConfigError(ValueError):
    """
    Raised when scheduler configuration cannot be used to start the scheduler.
    """


def parse_duration(value: str) -> timedelta:
    """
    Parse a sequence of ``<number><unit>`` components into a timedelta.

    Units: ns, us (or µs), ms, s, m, h. Fractions are allowed (``"1.5h"``).
    The result must be at least one microsecond once rounded.

    Raises SchedulerConfigError for empty, malformed, or non-positive input.
    """

    text = (value or "").strip()
    if not text:
        raise SchedulerConfigError("Duration string is empty.")

    body = text[1:] if text[0] == "+" else text
    if body.startswith("-"):
        raise SchedulerConfigError(f"Duration {value!r} must be positive.")
    if not body:
        raise SchedulerConfigError(f"Invalid duration {value!r}.")

    total_seconds = 0.0
    position = 0
    while position < len(body):
        match = _COMPONENT.match(body, position)
        if match is None:
            raise SchedulerConfigError(f"Invalid duration {value!r}.")
        total_seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    interval = timedelta(seconds=total_seconds)
    if interval <= timedelta(0):
        # timedelta keeps microsecond precision; "500ns" rounds to zero.
        raise SchedulerConfigError(f"Duration {value!r} must be at least one microsecond.")
    return interval


def format_duration(interval: timedelta) -> str:
    """
    Render a timedelta in the same compact form, e.g. ``1h30m0s``.
    """

    total = interval.total_seconds()
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{seconds:g}s")
    return "".join(parts)
