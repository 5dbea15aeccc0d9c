"""
Timeline Index — Answers "which caption is showing at time t".

Lookups are a linear scan in track order. Tracks hold at most a few
hundred entries and the lookup runs once per rendered frame, so no
interval structure is kept. When entries overlap, the first one in
track order wins.
"""

from typing import List, Optional, Sequence

from .srt_parser import CaptionEntry


def active_entry(track: Sequence[CaptionEntry], t: float) -> Optional[CaptionEntry]:
    """Return the first entry whose [start, end] interval contains t, or None."""
    for entry in track:
        if entry.start_time <= t <= entry.end_time:
            return entry
    return None


class TimelineIndex:
    """Read-only view over one caption track for the duration of an export."""

    def __init__(self, track: Sequence[CaptionEntry]):
        self._entries: tuple = tuple(track)

    @property
    def entries(self) -> List[CaptionEntry]:
        return list(self._entries)

    def at(self, t: float) -> Optional[CaptionEntry]:
        return active_entry(self._entries, t)

    def text_at(self, t: float) -> Optional[str]:
        entry = self.at(t)
        return entry.text if entry else None

    def __len__(self):
        return len(self._entries)
