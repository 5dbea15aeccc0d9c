"""
Playback Clock — Real-time pacing for the frame loop.

The export runs at the source's natural rate: each decoded frame is
held back until wall-clock playback time reaches its presentation
timestamp, so an export takes about as long as the video plays.
"""

import time
import threading
from typing import Optional


class PlaybackClock:
    """Monotonic playback position, starting at zero on start()."""

    def __init__(self):
        self._origin: Optional[float] = None

    def start(self):
        self._origin = time.monotonic()

    @property
    def started(self) -> bool:
        return self._origin is not None

    def position(self) -> float:
        """Seconds of playback elapsed since start()."""
        if self._origin is None:
            return 0.0
        return time.monotonic() - self._origin

    def wait_until(self, pts: float, cancel: Optional[threading.Event] = None) -> bool:
        """
        Block until playback reaches `pts` (the next frame tick).

        Returns False if `cancel` was set while waiting.
        """
        delay = pts - self.position()
        if delay <= 0:
            return not (cancel and cancel.is_set())
        if cancel is not None:
            return not cancel.wait(delay)
        time.sleep(delay)
        return True
