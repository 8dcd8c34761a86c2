"""Parsing and formatting of hand-entered competition times.

Swim times are held as integer hundredths of a second so that banding in
the swimming formula never sees float error. Parsing is total: input that
does not look like a time yields 0, which callers treat as "no time".
"""

from __future__ import annotations

import math
import re
from typing import Any

# [M]:SS[.hh] or plain seconds with an optional one/two digit fraction.
_SWIM_TIME_RE = re.compile(r"^(?:(\d*):)?(\d+)(?:\.(\d{1,2}))?$")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{1,2})(?:\.(\d{1,2}))?$")


def parse_time(text: Any) -> int:
    """Return hundredths for ``M:SS.hh``, ``M:SS``, ``:SS.hh``, ``:SS``, ``SS.hh`` or ``SS``.

    A single fractional digit is tenths (``"1:10.5"`` -> 7050). Seconds after
    a colon must be below 60. Anything unparseable returns 0.
    """
    if not isinstance(text, str):
        return 0
    match = _SWIM_TIME_RE.match(text.strip())
    if not match:
        return 0
    minutes_s, seconds_s, frac = match.groups()
    seconds = int(seconds_s)
    if minutes_s is not None and (len(seconds_s) > 2 or seconds >= 60):
        return 0
    minutes = int(minutes_s) if minutes_s else 0
    hundredths = int(frac.ljust(2, "0")) if frac else 0
    return minutes * 6000 + seconds * 100 + hundredths


def format_time(hundredths: int) -> str:
    """Return ``MM:SS.hh`` for a hundredths value (``7000`` -> ``"01:10.00"``)."""
    value = max(0, int(hundredths or 0))
    minutes, rest = divmod(value, 6000)
    seconds, hh = divmod(rest, 100)
    return f"{minutes:02d}:{seconds:02d}.{hh:02d}"


def format_seed_time(hundredths: int) -> str:
    """Return the seed sheet form ``M:SS.hh``, or ``NT`` when there is no time."""
    value = int(hundredths or 0)
    if value <= 0:
        return "NT"
    minutes, rest = divmod(value, 6000)
    seconds, hh = divmod(rest, 100)
    return f"{minutes}:{seconds:02d}.{hh:02d}"


def format_clock(seconds: float) -> str:
    """Return ``M:SS`` for a number of seconds, rounding half up to whole seconds."""
    total = max(0, int(math.floor(float(seconds or 0) + 0.5)))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def parse_clock(text: Any) -> float:
    """Return seconds for a laser run entry such as ``13:20``, ``13:20.5`` or ``800``.

    Returns 0.0 when the input cannot be read as a non-negative time.
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        value = float(text)
        return value if math.isfinite(value) and value >= 0 else 0.0
    if not isinstance(text, str):
        return 0.0
    raw = text.strip()
    match = _CLOCK_RE.match(raw)
    if match:
        minutes, secs, frac = match.groups()
        fraction = float(f"0.{frac}") if frac else 0.0
        return int(minutes) * 60 + int(secs) + fraction
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) and value >= 0 else 0.0


__all__ = [
    "parse_time",
    "format_time",
    "format_seed_time",
    "format_clock",
    "parse_clock",
]
