"""
SRT Writer — Serializes caption tracks back to SubRip text.

Used for round-trip checks, re-emitting a parsed track, and the
verbatim "download captions" path that hands the service's original
track text to the user untouched.
"""

import logging
from pathlib import Path
from typing import List

from .srt_parser import CaptionEntry
from .timecode import format_timecode

logger = logging.getLogger(__name__)


class SRTWriter:
    """
    Writes caption entries in standard SRT (SubRip) form.

    SRT format:
        1
        00:00:01,000 --> 00:00:04,000
        Hello
        哈囉

        2
        00:00:05,100 --> 00:00:06,300
        Goodbye
    """

    def to_string(self, entries: List[CaptionEntry]) -> str:
        """Render entries as SRT text, keeping each entry's own id."""
        blocks = []
        for entry in entries:
            blocks.append(
                f"{entry.id}\n"
                f"{format_timecode(entry.start_time)} --> "
                f"{format_timecode(entry.end_time)}\n"
                f"{entry.text}\n"
            )
        return "\n".join(blocks)

    def write(self, entries: List[CaptionEntry], output_path: Path):
        """
        Write caption entries to an SRT file.

        Args:
            entries: Caption track, in the order it should appear.
            output_path: Path for the output .srt file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8", newline="") as f:
            f.write(self.to_string(entries))

        logger.info(f"SRT written: {len(entries)} captions → {output_path}")

    @staticmethod
    def save_raw(track_text: str, output_path: Path) -> Path:
        """Save track text exactly as received (download pass-through)."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(track_text.encode("utf-8"))
        logger.info(f"Caption track saved: {output_path}")
        return output_path

    def write_preview(self, entries: List[CaptionEntry], max_entries: int = 10) -> str:
        """
        Generate a text preview of the caption entries.

        Args:
            entries: Caption track.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        lines = []
        shown = min(len(entries), max_entries)

        for entry in entries[:shown]:
            ts_start = format_timecode(entry.start_time)
            ts_end = format_timecode(entry.end_time)
            one_line = entry.text.replace("\n", " / ")
            text_preview = one_line[:80]
            if len(one_line) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(entries) > shown:
            lines.append(f"  ... and {len(entries) - shown} more entries")

        return "\n".join(lines)
