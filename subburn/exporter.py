"""
Subtitle Exporter — Real-time burn-in of a caption track into a video.

Stages of one ExportJob:
  1. PREPARING   probe the source, build the caption surface, pick an encoder
  2. RECORDING   decode → wait for the frame's tick → composite → encode
  3. FINALIZING  close the video track, collect the muxed container
  4. SUCCEEDED / FAILED / CANCELLED

The pass runs at playback speed: every frame is held until the playback
clock reaches its timestamp, so exporting takes about as long as the
video lasts. Whatever happens, the decoder, encoder and audio monitor
are released when the job settles.
"""

import math
import time
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .clock import PlaybackClock
from .compositor import CaptionStyle, FrameCompositor
from .encoder import FFmpegEncoderSink, available_encoders, negotiate_profile
from .errors import ExportError, ExportCancelled, PlaybackFailure
from .media import FrameDecoder, MediaInfo, probe_media
from .monitor import AudioMonitor
from .srt_parser import CaptionEntry
from .timeline import TimelineIndex

logger = logging.getLogger(__name__)

# Type alias for progress callbacks: (percent: int) -> None
ProgressCallback = Optional[Callable[[int], None]]

# Warn once playback falls this far behind the clock.
LAG_WARNING_SEC = 1.0


class JobState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def settled(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


@dataclass
class ExportResult:
    """The finished artifact: one muxed container held in memory."""
    data: bytes
    mime_type: str
    container: str
    video_codec: str
    duration: float
    frame_count: int

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, output_path: Path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.data)
        logger.info(f"Export saved: {output_path} ({self.size / (1024 * 1024):.1f} MB)")
        return output_path


def progress_percent(position: float, duration: float) -> int:
    """round(100 * position / duration), rounding halves up, clamped to [0, 100]."""
    if duration <= 0:
        return 0
    pct = math.floor(100 * position / duration + 0.5)
    return max(0, min(100, pct))


class ExportJob:
    """
    State for exactly one export run. A job runs once; to retry, create
    a new job.

    Usage:
        job = exporter.create_job("video.mp4", track)
        result = job.run(progress_cb=print)
        # from another thread: job.cancel()
    """

    def __init__(self, exporter: "SubtitleExporter", video_path: Path,
                 track: Sequence[CaptionEntry]):
        self._exporter = exporter
        self.video_path = Path(video_path)
        self.timeline = TimelineIndex(track)
        self.state = JobState.IDLE
        self.progress = 0
        self.frame_count = 0
        self.info: Optional[MediaInfo] = None
        self.profile = None
        self.result: Optional[ExportResult] = None
        self.error: Optional[ExportError] = None

        self._progress_cb: ProgressCallback = None
        self._cancel = threading.Event()
        self._clock: Optional[PlaybackClock] = None
        self._decoder = None
        self._encoder = None
        self._monitor = None
        self._last_logged_decile = -1
        self._lag_warned = False

    def cancel(self):
        """Ask the frame loop to stop at the next frame."""
        if not self.state.settled:
            logger.info("Export cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self, progress_cb: ProgressCallback = None) -> ExportResult:
        """
        Execute the export.

        Args:
            progress_cb: Called with an integer percentage on every frame;
                values never decrease and the last one is 100.

        Returns:
            ExportResult with the muxed artifact.

        Raises:
            ExportError: One of SourceUnreadable, CanvasUnsupported,
                EncoderUnavailable, PlaybackFailure or ExportCancelled.
        """
        if self.state is not JobState.IDLE:
            raise RuntimeError(
                f"Export job already {self.state.value}; start a new job instead"
            )

        self._progress_cb = progress_cb
        start_time = time.monotonic()

        logger.info(f"{'='*60}")
        logger.info(f"Subtitle export")
        logger.info(f"Input:    {self.video_path}")
        logger.info(f"Captions: {len(self.timeline)} entries")
        logger.info(f"{'='*60}")

        try:
            self._prepare()
            self._record()
            self.result = self._finalize()
        except ExportError as e:
            self._settle_failure(e)
            raise
        except OSError as e:
            error = PlaybackFailure(f"I/O error during export: {e}")
            self._settle_failure(error)
            raise error from e
        except Exception as e:
            error = PlaybackFailure(
                f"Unexpected {type(e).__name__} while {self.state.value}: {e}"
            )
            self._settle_failure(error)
            raise error from e
        finally:
            self._release()

        elapsed = time.monotonic() - start_time
        logger.info(f"{'='*60}")
        logger.info(f"Export complete in {elapsed:.1f}s")
        logger.info(f"  Frames:  {self.result.frame_count}")
        logger.info(f"  Codec:   {self.result.video_codec} ({self.result.container})")
        logger.info(f"  Size:    {self.result.size / (1024 * 1024):.1f} MB")
        logger.info(f"{'='*60}")

        return self.result

    # ── Stages ──

    def _prepare(self):
        self.state = JobState.PREPARING
        exporter = self._exporter

        self.info = exporter.probe(self.video_path)
        logger.info(
            f"Source: {self.info.width}x{self.info.height} @ {self.info.fps:.3f} fps, "
            f"{self.info.duration:.2f}s, audio={'yes' if self.info.has_audio else 'no'}"
        )

        exporter.compositor.prepare(self.info.width, self.info.height)
        self.profile = exporter.negotiate()

    def _record(self):
        self.state = JobState.RECORDING
        exporter = self._exporter
        info = self.info

        self._encoder = exporter.make_encoder(self.profile, info)
        self._encoder.start()
        self._decoder = exporter.make_decoder(info)
        self._decoder.start()
        self._monitor = exporter.make_monitor(info)
        if self._monitor is not None:
            self._monitor.start()

        self._clock = exporter.clock_factory()
        self._clock.start()

        for pts, frame in self._decoder.frames():
            if self._cancel.is_set() or not self._clock.wait_until(pts, self._cancel):
                raise ExportCancelled(
                    f"Export cancelled at {pts:.2f}s of {info.duration:.2f}s"
                )
            self._check_lag(pts)

            text = self.timeline.text_at(pts)
            composited = exporter.compositor.composite(frame, text, info.width, info.height)
            self._encoder.push(composited)
            self.frame_count += 1

            self._report(progress_percent(pts, info.duration))

        if self.frame_count == 0:
            raise PlaybackFailure(f"No frames could be decoded from {self.video_path.name}")

    def _finalize(self) -> ExportResult:
        self.state = JobState.FINALIZING
        logger.info(f"Finalizing: {self.frame_count} frames rendered, flushing encoder...")

        data = self._encoder.finish()
        self._encoder = None

        self._report(100)
        self.state = JobState.SUCCEEDED

        return ExportResult(
            data=data,
            mime_type=self.profile.mime_type,
            container=self.profile.container,
            video_codec=self.profile.video_codec,
            duration=self.info.duration,
            frame_count=self.frame_count,
        )

    def _settle_failure(self, error: ExportError):
        self.error = error
        if isinstance(error, ExportCancelled):
            self.state = JobState.CANCELLED
            logger.warning(f"Export cancelled after {self.frame_count} frames")
        else:
            self.state = JobState.FAILED
            logger.error(f"Export failed ({error.kind.value}): {error}")

    def _release(self):
        """Release every resource the job holds; safe to call on any path."""
        if self._decoder is not None:
            self._decoder.close()
            self._decoder = None
        if self._encoder is not None:
            self._encoder.abort()
            self._encoder = None
        if self._monitor is not None:
            self._monitor.stop()
            self._monitor = None

    # ── Utilities ──

    def _check_lag(self, pts: float):
        lag = self._clock.position() - pts
        if lag > LAG_WARNING_SEC and not self._lag_warned:
            self._lag_warned = True
            logger.warning(
                f"Rendering is {lag:.1f}s behind playback; "
                f"compositing or encoding cannot keep up in real time"
            )

    def _report(self, pct: int):
        """Report non-decreasing progress to the logger and the callback."""
        pct = max(self.progress, pct)
        self.progress = pct

        decile = pct // 10
        if decile != self._last_logged_decile:
            self._last_logged_decile = decile
            logger.info(f"[{pct:3d}%] {self.frame_count} frames rendered")
        else:
            logger.debug(f"[{pct:3d}%] frame {self.frame_count}")

        if self._progress_cb:
            self._progress_cb(pct)


class SubtitleExporter:
    """
    Burns caption tracks into videos.

    Clock, media probe, decoder, encoder and monitor are injectable so a
    different backend can stand in for ffmpeg.

    Usage:
        config = load_config()
        exporter = SubtitleExporter(config)
        result = exporter.export("video.mp4", parse_srt(text), progress_cb)
        result.save("video.subtitled.webm")
    """

    def __init__(
        self,
        config,
        compositor: Optional[FrameCompositor] = None,
        clock_factory: Callable[[], PlaybackClock] = PlaybackClock,
        probe: Optional[Callable[[Path], MediaInfo]] = None,
        negotiate: Optional[Callable[[], object]] = None,
        decoder_factory: Optional[Callable[[MediaInfo], FrameDecoder]] = None,
        encoder_factory: Optional[Callable[[object, MediaInfo], FFmpegEncoderSink]] = None,
        monitor_factory: Optional[Callable[[MediaInfo], Optional[AudioMonitor]]] = None,
    ):
        self.config = config
        self.compositor = compositor or FrameCompositor(
            CaptionStyle.from_config(config.render)
        )
        self.clock_factory = clock_factory
        self._probe = probe
        self._negotiate = negotiate
        self._decoder_factory = decoder_factory
        self._encoder_factory = encoder_factory
        self._monitor_factory = monitor_factory

    # ── Capabilities (ffmpeg-backed defaults) ──

    def probe(self, video_path: Path) -> MediaInfo:
        if self._probe:
            return self._probe(video_path)
        return probe_media(
            video_path,
            ffprobe=self.config.ffmpeg.ffprobe,
            timeout=self.config.ffmpeg.probe_timeout,
            default_fps=self.config.export.default_fps,
        )

    def negotiate(self):
        if self._negotiate:
            return self._negotiate()
        supported = available_encoders(self.config.ffmpeg.ffmpeg)
        return negotiate_profile(self.config.export.profiles, supported)

    def make_decoder(self, info: MediaInfo):
        if self._decoder_factory:
            return self._decoder_factory(info)
        return FrameDecoder(
            info,
            ffmpeg=self.config.ffmpeg.ffmpeg,
            queue_size=self.config.export.frame_queue_size,
        )

    def make_encoder(self, profile, info: MediaInfo):
        if self._encoder_factory:
            return self._encoder_factory(profile, info)
        return FFmpegEncoderSink(
            profile,
            info,
            bitrate=self.config.export.video_bitrate,
            ffmpeg=self.config.ffmpeg.ffmpeg,
        )

    def make_monitor(self, info: MediaInfo) -> Optional[AudioMonitor]:
        if self._monitor_factory:
            return self._monitor_factory(info)
        if not (self.config.export.monitor_audio and info.has_audio):
            return None
        return AudioMonitor(info.path, ffplay=self.config.ffmpeg.ffplay)

    # ── Public API ──

    def create_job(self, video_path: Path, track: Sequence[CaptionEntry]) -> ExportJob:
        return ExportJob(self, video_path, track)

    def export(
        self,
        video_path: Path,
        track: Sequence[CaptionEntry],
        progress_cb: ProgressCallback = None,
    ) -> ExportResult:
        """Create a job for `video_path` and run it to completion."""
        return self.create_job(video_path, track).run(progress_cb)
