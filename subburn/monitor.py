"""
Audio Monitor — Optional secondary audio sink for listening along.

The muxed output never depends on this: the encoder sink is the only
consumer of the source audio that ends up in the artifact. Monitoring
plays the soundtrack through ffplay (when installed) while the export
runs, and is off unless asked for.
"""

import shutil
import logging
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class AudioMonitor:
    """Plays a source's audio track with ffplay, without a window."""

    def __init__(self, source_path: str, ffplay: str = "ffplay"):
        self.source_path = str(source_path)
        self.ffplay = ffplay
        self._process: Optional[subprocess.Popen] = None

    def start(self) -> bool:
        """Launch playback. Returns False if ffplay is not available."""
        exe = shutil.which(self.ffplay)
        if not exe:
            logger.warning(f"{self.ffplay} not found on PATH — audio monitoring disabled")
            return False

        cmd = [
            exe,
            "-nodisp",
            "-autoexit",
            "-vn",
            "-loglevel", "error",
            self.source_path,
        ]
        logger.info(f"Launching audio monitor: {' '.join(cmd)}")
        self._process = subprocess.Popen(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
        return True

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def stop(self):
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=5.0)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        self._process = None
        logger.debug("Audio monitor stopped")
