"""
End-to-end export against real ffmpeg. Takes about as long as the
source video (10 s), since the export runs in real time.
"""

import json
import shutil
import subprocess

import numpy as np
import pytest
from config import AppConfig
from subburn.errors import EncoderUnavailable, SourceUnreadable
from subburn.exporter import JobState, SubtitleExporter
from subburn.srt_parser import parse_srt

pytestmark = [
    pytest.mark.slow,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="ffmpeg/ffprobe not installed",
    ),
]

WIDTH, HEIGHT, FPS, DURATION = 320, 240, 25, 10

TRACK = """1
00:00:01,000 --> 00:00:04,000
Hello
哈囉
"""


@pytest.fixture(scope="module")
def source_video(tmp_path_factory):
    """10 s black video with a sine-wave soundtrack."""
    path = tmp_path_factory.mktemp("media") / "source.mp4"
    cmd = [
        "ffmpeg", "-hide_banner", "-loglevel", "error", "-y",
        "-f", "lavfi", "-i", f"color=c=black:s={WIDTH}x{HEIGHT}:r={FPS}:d={DURATION}",
        "-f", "lavfi", "-i", f"sine=frequency=440:duration={DURATION}",
        "-c:v", "mpeg4", "-q:v", "2", "-pix_fmt", "yuv420p",
        "-c:a", "aac", "-shortest",
        str(path),
    ]
    subprocess.run(cmd, check=True, capture_output=True, timeout=60)
    return path


def _decode(path):
    cmd = [
        "ffmpeg", "-hide_banner", "-loglevel", "error",
        "-i", str(path), "-f", "rawvideo", "-pix_fmt", "rgb24", "pipe:1",
    ]
    raw = subprocess.run(cmd, check=True, capture_output=True, timeout=60).stdout
    return np.frombuffer(raw, dtype=np.uint8).reshape(-1, HEIGHT, WIDTH, 3)


def _streams(path):
    cmd = ["ffprobe", "-v", "error", "-print_format", "json", "-show_streams", str(path)]
    out = subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=30).stdout
    return json.loads(out)["streams"]


def _caption_pixels(frame):
    # Two 12px lines stacked on the 216px baseline
    region = frame[180:222, 60:260]
    return int(np.count_nonzero(region.max(axis=2) > 180))


def test_burns_captions_and_keeps_audio(source_video, tmp_path):
    exporter = SubtitleExporter(AppConfig())
    try:
        exporter.negotiate()
    except EncoderUnavailable:
        pytest.skip("ffmpeg lacks libvpx/libopus")

    progress = []
    job = exporter.create_job(source_video, parse_srt(TRACK))
    result = job.run(progress_cb=progress.append)

    assert job.state is JobState.SUCCEEDED
    assert progress[-1] == 100
    assert all(a <= b for a, b in zip(progress, progress[1:]))

    output = result.save(tmp_path / "subtitled.webm")
    kinds = sorted(s["codec_type"] for s in _streams(output))
    assert kinds == ["audio", "video"]

    frames = _decode(output)
    assert abs(len(frames) / FPS - DURATION) <= 2 / FPS

    for t in (1.5, 2.0, 3.5):
        assert _caption_pixels(frames[int(t * FPS)]) > 20, t
    for t in (0.4, 5.0, 8.0):
        assert _caption_pixels(frames[int(t * FPS)]) == 0, t


def test_unreadable_source(tmp_path):
    bogus = tmp_path / "bogus.mp4"
    bogus.write_bytes(b"definitely not a video")
    job = SubtitleExporter(AppConfig()).create_job(bogus, [])
    with pytest.raises(SourceUnreadable):
        job.run()
    assert job.state is JobState.FAILED
