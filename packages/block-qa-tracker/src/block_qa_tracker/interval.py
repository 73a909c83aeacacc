"""Duration parsing for the comparison interval.

Accepts a sequence of <number><unit> terms, e.g. "30s", "5m", "1h30m",
"1.5h", "500ms". Units: ns, us (or µs), ms, s, m, h. Every term needs a
unit; the total must be positive.
"""

from __future__ import annotations

import re

from block_qa_tracker.errors import InvalidIntervalError

UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # micro sign
    "μs": 1e-6,  # greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Longest units first so "ms" is not read as "m" followed by "s"
_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_interval(text: str) -> float:
    """Parse a duration string into seconds.

    Args:
        text: Duration such as "30s" or "1h30m"

    Returns:
        Interval length in seconds

    Raises:
        InvalidIntervalError: If text is empty, malformed, or not positive
    """
    s = text.strip()
    if not s:
        raise InvalidIntervalError(text, "empty duration")
    if s[0] in "+-":
        if s[0] == "-":
            raise InvalidIntervalError(text, "interval must be positive")
        s = s[1:]

    total = 0.0
    pos = 0
    while pos < len(s):
        match = _TERM.match(s, pos)
        if match is None:
            if s[pos].isdigit() or s[pos] == ".":
                raise InvalidIntervalError(text, f"missing or unknown unit at {s[pos:]!r}")
            raise InvalidIntervalError(text, f"unexpected {s[pos:]!r}")
        total += float(match.group(1)) * UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if total <= 0:
        raise InvalidIntervalError(text, "interval must be positive")
    return total


def format_interval(seconds: float) -> str:
    """Render seconds back into duration syntax (e.g. 5400 -> "1h30m")."""
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    if secs or not parts:
        parts.append(f"{secs:g}s")
    return "".join(parts)
