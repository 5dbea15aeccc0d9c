"""
SRT Parser — Turns SubRip text into an ordered caption track.

Caption text comes from an external captioning service and is treated
as best-effort input: malformed blocks are dropped, out-of-order or
inverted timings are kept exactly as written.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .timecode import parse_timecode, MalformedTimecode

logger = logging.getLogger(__name__)

TIMING_SEPARATOR = " --> "


@dataclass(frozen=True)
class CaptionEntry:
    """One timed caption. `text` may span several lines (one per language)."""
    id: str
    start_time: float
    end_time: float
    text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def __repr__(self):
        return (f"Caption#{self.id}({self.start_time:.3f}–{self.end_time:.3f}s, "
                f"'{self.text[:50]}')")


def normalize_srt_text(content: str) -> str:
    """Strip a BOM, unify line endings and trim outer whitespace."""
    content = content.lstrip("\ufeff")
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    return content.strip()


def parse_srt(content: str) -> List[CaptionEntry]:
    """
    Parse SRT text into caption entries, in source order.

    A block is an id line, a "start --> end" timing line and one or
    more text lines. Blocks with fewer than three lines, without the
    separator, or with an undecodable timecode are skipped.

    Args:
        content: Full SRT document.

    Returns:
        List of CaptionEntry objects (not sorted, not validated).
    """
    normalized = normalize_srt_text(content)
    if not normalized:
        return []

    entries: List[CaptionEntry] = []
    skipped = 0

    for block in normalized.split("\n\n"):
        lines = block.split("\n")
        if len(lines) < 3:
            skipped += 1
            continue

        entry_id = lines[0].strip()
        start_str, sep, end_str = lines[1].partition(TIMING_SEPARATOR)
        if not sep:
            skipped += 1
            continue

        try:
            start = parse_timecode(start_str)
            end = parse_timecode(end_str)
        except MalformedTimecode as e:
            logger.debug(f"Dropping block {entry_id!r}: {e}")
            skipped += 1
            continue

        text = "\n".join(lines[2:]).strip()
        entries.append(CaptionEntry(entry_id, start, end, text))

    if skipped:
        logger.debug(f"Skipped {skipped} malformed SRT block(s)")
    logger.info(f"Parsed {len(entries)} captions")

    return entries


def load_srt(path: Path) -> List[CaptionEntry]:
    """Read an SRT file (UTF-8, optional BOM) and parse it."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Subtitle file not found: {path}")

    content = path.read_text(encoding="utf-8-sig")
    return parse_srt(content)
