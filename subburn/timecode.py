"""
Timecode Codec — SubRip HH:MM:SS,mmm <-> seconds.
"""

import re

_TIMECODE_RE = re.compile(r"^(\d+):(\d+):(\d+),(\d+)$")


class MalformedTimecode(ValueError):
    """Raised when a timestamp cannot be split into H, M, S and ms fields."""


def parse_timecode(text: str) -> float:
    """
    Convert an SRT timestamp to seconds.

    Args:
        text: Timestamp such as "00:02:05,340".

    Returns:
        Seconds as a float (e.g., 125.34). Fields are not range-checked,
        so "00:00:75,000" yields 75.0.

    Raises:
        MalformedTimecode: If the text is not four numeric fields.
    """
    match = _TIMECODE_RE.match(text.strip())
    if not match:
        raise MalformedTimecode(f"Malformed timecode: {text!r}")

    hours, minutes, secs, millis = (int(g) for g in match.groups())
    return hours * 3600 + minutes * 60 + secs + millis / 1000


def format_timecode(seconds: float) -> str:
    """
    Convert seconds to SRT timestamp format: HH:MM:SS,mmm

    Negative values clamp to zero. Milliseconds are rounded, carrying
    into the seconds field instead of ever printing ",1000".
    """
    if seconds < 0:
        seconds = 0.0

    total_ms = int(round(seconds * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)

    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"
