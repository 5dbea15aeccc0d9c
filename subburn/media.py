"""
Media Source — ffprobe metadata and a threaded ffmpeg frame decoder.

The decoder runs ffmpeg in the background, reads raw RGB frames from
its stdout on a worker thread and hands them to the render loop through
a bounded queue, so decoding never runs far ahead of playback.
"""

import json
import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from queue import Queue, Empty, Full
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .errors import SourceUnreadable, PlaybackFailure

logger = logging.getLogger(__name__)

_EOF = object()


@dataclass
class MediaInfo:
    """Intrinsic properties of a source video."""
    path: str
    width: int
    height: int
    duration: float
    fps: float
    has_audio: bool

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * 3

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.fps


def _parse_rate(rate: Optional[str]) -> float:
    """Parse an ffprobe rate such as '30000/1001'; 0.0 if unusable."""
    if not rate:
        return 0.0
    num, _, den = rate.partition("/")
    try:
        num_f = float(num)
        den_f = float(den) if den else 1.0
    except ValueError:
        return 0.0
    if den_f == 0:
        return 0.0
    return num_f / den_f


def probe_media(
    video_path: Path,
    ffprobe: str = "ffprobe",
    timeout: float = 30.0,
    default_fps: float = 30.0,
) -> MediaInfo:
    """
    Resolve width, height, duration, frame rate and audio presence.

    Raises:
        SourceUnreadable: If the file is missing or ffprobe cannot read it.
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise SourceUnreadable(f"Video file not found: {video_path}")

    cmd = [
        ffprobe,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path),
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise SourceUnreadable(
            "ffprobe not found. Please install FFmpeg and add it to PATH."
        ) from e
    except subprocess.TimeoutExpired as e:
        raise SourceUnreadable(f"ffprobe timed out after {timeout:.0f}s") from e

    if result.returncode != 0:
        raise SourceUnreadable(f"ffprobe failed for {video_path.name}", result.stderr.strip())

    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise SourceUnreadable(f"ffprobe returned invalid JSON for {video_path.name}") from e

    return media_info_from_probe(str(video_path), data, default_fps)


def stream_rotation(stream: dict) -> int:
    """Rotation in degrees, normalized to [0, 360), from side data or legacy tags."""
    raw = None
    for side_data in stream.get("side_data_list") or []:
        if "rotation" in side_data:
            raw = side_data["rotation"]
            break
    if raw is None:
        raw = (stream.get("tags") or {}).get("rotate")
    try:
        return int(round(float(raw))) % 360
    except (TypeError, ValueError):
        return 0


def media_info_from_probe(path: str, data: dict, default_fps: float = 30.0) -> MediaInfo:
    """Build MediaInfo from ffprobe's JSON output."""
    streams: List[dict] = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise SourceUnreadable(f"No video stream in {path}")

    width = int(video.get("width") or 0)
    height = int(video.get("height") or 0)
    if width <= 0 or height <= 0:
        raise SourceUnreadable(f"Could not resolve frame size of {path}")

    # ffmpeg autorotates on decode, so frames come out in display orientation
    rotation = stream_rotation(video)
    if rotation % 180 == 90:
        logger.debug(f"Stream rotated {rotation}°, using {height}x{width} display size")
        width, height = height, width

    duration = 0.0
    for raw in ((data.get("format") or {}).get("duration"), video.get("duration")):
        try:
            duration = float(raw)
        except (TypeError, ValueError):
            continue
        if duration > 0:
            break
    if duration <= 0:
        raise SourceUnreadable(f"Could not resolve duration of {path}")

    fps = _parse_rate(video.get("avg_frame_rate")) or _parse_rate(video.get("r_frame_rate"))
    if fps <= 0:
        logger.warning(f"Unknown frame rate for {path}, assuming {default_fps} fps")
        fps = default_fps

    has_audio = any(s.get("codec_type") == "audio" for s in streams)

    return MediaInfo(path, width, height, duration, fps, has_audio)


def drain_stream(stream, store: List[bytes], limit: int = 65536):
    """Read a pipe to EOF, keeping only the last `limit` bytes."""
    kept = b""
    for chunk in iter(lambda: stream.read(4096), b""):
        kept = (kept + chunk)[-limit:]
    store.append(kept)


class FrameDecoder:
    """
    Decodes a video into (pts, frame) pairs at a constant frame rate.

    Usage:
        decoder = FrameDecoder(info)
        decoder.start()
        for pts, frame in decoder.frames():
            ...
        decoder.close()
    """

    def __init__(self, info: MediaInfo, ffmpeg: str = "ffmpeg", queue_size: int = 8):
        self.info = info
        self.ffmpeg = ffmpeg
        self._queue: Queue = Queue(maxsize=max(1, queue_size))
        self._stop = threading.Event()
        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._stderr: List[bytes] = []
        self._stderr_thread: Optional[threading.Thread] = None

    def _command(self) -> List[str]:
        return [
            self.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-i", self.info.path,
            "-an",
            "-r", f"{self.info.fps:.6g}",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "pipe:1",
        ]

    def start(self):
        cmd = self._command()
        logger.debug(f"Decoder command: {' '.join(cmd)}")
        try:
            self._process = subprocess.Popen(
                cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, bufsize=0
            )
        except OSError as e:
            raise PlaybackFailure(f"Could not start decoder: {e}") from e

        self._stderr_thread = threading.Thread(
            target=drain_stream, args=(self._process.stderr, self._stderr),
            name="decoder-stderr", daemon=True
        )
        self._stderr_thread.start()
        self._reader = threading.Thread(
            target=self._read_loop, name="frame-decoder", daemon=True
        )
        self._reader.start()

    def _read_loop(self):
        """Worker thread: raw frames from ffmpeg → bounded queue."""
        frame_bytes = self.info.frame_bytes
        shape = (self.info.height, self.info.width, 3)
        index = 0
        try:
            while not self._stop.is_set():
                raw = self._read_exactly(frame_bytes)
                if raw is None:
                    break
                frame = np.frombuffer(raw, dtype=np.uint8).reshape(shape)
                if not self._put((index * self.info.frame_interval, frame)):
                    return
                index += 1
        except (OSError, ValueError) as e:
            self._put(e)
            return
        self._put(_EOF)

    def _read_exactly(self, size: int) -> Optional[bytes]:
        buf = bytearray()
        stdout = self._process.stdout
        while len(buf) < size:
            chunk = stdout.read(size - len(buf))
            if not chunk:
                if buf:
                    logger.debug(f"Discarding truncated trailing frame ({len(buf)} bytes)")
                return None
            buf.extend(chunk)
        return bytes(buf)

    def _put(self, item) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return True
            except Full:
                continue
        return False

    def frames(self) -> Iterator[Tuple[float, np.ndarray]]:
        """
        Yield decoded frames in order until the source ends.

        Raises:
            PlaybackFailure: If ffmpeg fails or the pipe breaks mid-stream.
        """
        if self._process is None:
            raise RuntimeError("FrameDecoder.start() must be called first")

        while True:
            try:
                item = self._queue.get(timeout=0.5)
            except Empty:
                if self._reader is not None and not self._reader.is_alive() and self._queue.empty():
                    raise PlaybackFailure("Decoder stopped without signalling end of stream")
                continue

            if item is _EOF:
                break
            if isinstance(item, Exception):
                raise PlaybackFailure(f"Error reading decoded frames: {item}") from item
            yield item

        returncode = self._process.wait()
        if returncode != 0:
            if self._stderr_thread is not None:
                self._stderr_thread.join(timeout=2.0)
            err = self._stderr[0].decode("utf-8", errors="replace") if self._stderr else ""
            raise PlaybackFailure(
                f"Decoder exited with code {returncode}", err[-2000:].strip()
            )

    def close(self):
        """Stop the worker thread and the ffmpeg process."""
        self._stop.set()
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.kill()
        self._process.wait()
        for thread in (self._reader, self._stderr_thread):
            if thread is not None:
                thread.join(timeout=5.0)
        for stream in (self._process.stdout, self._process.stderr):
            if stream:
                stream.close()
        logger.debug("Frame decoder closed")
