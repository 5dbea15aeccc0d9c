"""
Encoder Sink — ffmpeg process that muxes composited frames with the
source's audio track.

Input 0 is raw RGB frames written to stdin (the synthetic video track);
input 1 is the source file, of which only the first audio stream is
mapped. The container is streamed to stdout and collected in chunks,
then joined into one artifact when the sink is finished.
"""

import logging
import subprocess
import threading
from typing import List, Optional, Sequence, Set

import numpy as np

from .errors import EncoderUnavailable, PlaybackFailure
from .media import MediaInfo, drain_stream

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def available_encoders(ffmpeg: str = "ffmpeg") -> Set[str]:
    """
    List encoder names compiled into ffmpeg.

    Raises:
        EncoderUnavailable: If ffmpeg is missing or cannot list encoders.
    """
    try:
        result = subprocess.run(
            [ffmpeg, "-hide_banner", "-encoders"],
            capture_output=True, text=True, timeout=10
        )
    except FileNotFoundError as e:
        raise EncoderUnavailable(
            "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
            "Download: https://ffmpeg.org/download.html"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise EncoderUnavailable("ffmpeg -encoders timed out") from e

    if result.returncode != 0:
        raise EncoderUnavailable("ffmpeg could not list encoders", result.stderr.strip())

    names = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        # Encoder rows look like " V....D libvpx-vp9  libvpx VP9 ..."
        if len(parts) >= 2 and len(parts[0]) == 6 and parts[0][0] in "VAS" and parts[1] != "=":
            names.add(parts[1])
    return names


def negotiate_profile(profiles: Sequence, supported: Set[str]):
    """
    Pick the first profile whose video and audio encoders are supported.

    Raises:
        EncoderUnavailable: If no profile can be used.
    """
    for profile in profiles:
        missing = [c for c in (profile.video_codec, profile.audio_codec) if c not in supported]
        if not missing:
            logger.info(f"Using encoder profile '{profile.name}' ({profile.video_codec})")
            return profile
        logger.info(f"Encoder profile '{profile.name}' unavailable (missing: {', '.join(missing)})")

    tried = ", ".join(p.name for p in profiles) or "none configured"
    raise EncoderUnavailable(f"No usable encoder profile (tried: {tried})")


class FFmpegEncoderSink:
    """
    Streams frames into ffmpeg and accumulates the encoded container.

    Usage:
        sink = FFmpegEncoderSink(profile, info, bitrate=5_000_000)
        sink.start()
        sink.push(frame)       # once per frame
        data = sink.finish()   # or sink.abort() on failure
    """

    def __init__(
        self,
        profile,
        info: MediaInfo,
        bitrate: int = 5_000_000,
        ffmpeg: str = "ffmpeg",
        include_audio: bool = True,
    ):
        self.profile = profile
        self.info = info
        self.bitrate = bitrate
        self.ffmpeg = ffmpeg
        self.include_audio = include_audio and info.has_audio
        self._process: Optional[subprocess.Popen] = None
        self._chunks: List[bytes] = []
        self._collector: Optional[threading.Thread] = None
        self._stderr: List[bytes] = []
        self._stderr_thread: Optional[threading.Thread] = None

    def command(self) -> List[str]:
        cmd = [
            self.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{self.info.width}x{self.info.height}",
            "-r", f"{self.info.fps:.6g}",
            "-i", "pipe:0",
        ]
        if self.include_audio:
            cmd += ["-i", self.info.path, "-map", "0:v:0", "-map", "1:a:0"]
        else:
            cmd += ["-map", "0:v:0"]

        cmd += [
            "-c:v", self.profile.video_codec,
            "-b:v", str(self.bitrate),
            "-maxrate", str(self.bitrate),
            "-bufsize", str(self.bitrate * 2),
            "-pix_fmt", "yuv420p",
        ]
        cmd += list(getattr(self.profile, "extra_args", None) or [])
        if self.include_audio:
            cmd += ["-c:a", self.profile.audio_codec]
        cmd += ["-f", self.profile.container, "pipe:1"]
        return cmd

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def start(self):
        cmd = self.command()
        logger.debug(f"Encoder command: {' '.join(cmd)}")
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderUnavailable(f"Could not start encoder: {e}") from e

        self._collector = threading.Thread(
            target=self._collect, name="encoder-output", daemon=True
        )
        self._collector.start()
        self._stderr_thread = threading.Thread(
            target=drain_stream, args=(self._process.stderr, self._stderr),
            name="encoder-stderr", daemon=True
        )
        self._stderr_thread.start()

    def _collect(self):
        """Worker thread: encoded container bytes → chunk list."""
        stdout = self._process.stdout
        for chunk in iter(lambda: stdout.read(CHUNK_SIZE), b""):
            self._chunks.append(chunk)

    def push(self, frame: np.ndarray):
        """Write one composited frame to the video track."""
        try:
            self._process.stdin.write(np.ascontiguousarray(frame).tobytes())
        except (BrokenPipeError, OSError) as e:
            raise PlaybackFailure(
                f"Encoder closed its input: {e}", self._stderr_tail()
            ) from e

    def finish(self) -> bytes:
        """
        Close the video track, wait for ffmpeg and return the artifact.

        Raises:
            PlaybackFailure: If ffmpeg exits with an error.
        """
        try:
            self._process.stdin.close()
        except (BrokenPipeError, OSError):
            pass  # returncode check below reports the failure

        returncode = self._process.wait()
        self._join_threads()

        if returncode != 0:
            self._chunks.clear()
            raise PlaybackFailure(
                f"Encoder exited with code {returncode}", self._stderr_tail()
            )

        data = b"".join(self._chunks)
        self._chunks.clear()
        logger.debug(f"Encoder finished: {len(data) / (1024 * 1024):.1f} MB")
        return data

    def abort(self):
        """Kill ffmpeg and discard any partial output."""
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.kill()
        try:
            self._process.stdin.close()
        except (BrokenPipeError, OSError):
            pass
        self._process.wait()
        self._join_threads()
        self._chunks.clear()
        logger.debug("Encoder aborted, partial output discarded")

    def _join_threads(self):
        for thread in (self._collector, self._stderr_thread):
            if thread is not None:
                thread.join(timeout=10.0)
        for stream in (self._process.stdout, self._process.stderr):
            if stream:
                stream.close()

    def _stderr_tail(self) -> str:
        if self._stderr_thread is not None and self._process.poll() is not None:
            self._stderr_thread.join(timeout=2.0)
        if not self._stderr:
            return ""
        return self._stderr[0].decode("utf-8", errors="replace")[-2000:].strip()
