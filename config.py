"""
Configuration loader for the Subtitle Burner.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class FFmpegConfig:
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    ffplay: str = "ffplay"
    probe_timeout: float = 30.0


@dataclass
class RenderConfig:
    font_path: Optional[str] = None
    font_scale: float = 0.05          # font size = floor(height * font_scale)
    bottom_margin: float = 0.10       # first baseline sits this far above the bottom
    line_spacing: float = 1.2         # line pitch as a multiple of font size
    stroke_ratio: float = 0.15        # outline width as a multiple of font size
    stroke_rgba: List[int] = field(default_factory=lambda: [0, 0, 0, 204])
    fill_rgba: List[int] = field(default_factory=lambda: [255, 255, 255, 255])


@dataclass
class EncoderProfile:
    name: str
    video_codec: str
    container: str = "webm"
    mime_type: str = "video/webm"
    audio_codec: str = "libopus"
    extra_args: List[str] = field(default_factory=lambda: [
        "-deadline", "realtime", "-cpu-used", "8",
    ])


@dataclass
class ExportConfig:
    # Tried in order; the first one ffmpeg supports is used.
    profiles: List[EncoderProfile] = field(default_factory=lambda: [
        EncoderProfile("vp9", "libvpx-vp9", mime_type="video/webm;codecs=vp9"),
        EncoderProfile("vp8", "libvpx"),
    ])
    video_bitrate: int = 5_000_000
    default_fps: float = 30.0
    frame_queue_size: int = 8
    monitor_audio: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    ffmpeg: FFmpegConfig = field(default_factory=FFmpegConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if hasattr(args, "font") and args.font:
            self.render.font_path = str(args.font)
        if hasattr(args, "bitrate") and args.bitrate:
            self.export.video_bitrate = args.bitrate
        if hasattr(args, "monitor") and args.monitor:
            self.export.monitor_audio = True


def _dict_to_dataclass(cls, data: dict):
    """Recursively convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def _export_from_dict(data: dict) -> ExportConfig:
    export = _dict_to_dataclass(ExportConfig, data)
    if data and data.get("profiles"):
        export.profiles = [
            _dict_to_dataclass(EncoderProfile, p) for p in data["profiles"]
        ]
    return export


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig(
        ffmpeg=_dict_to_dataclass(FFmpegConfig, raw.get("ffmpeg")),
        render=_dict_to_dataclass(RenderConfig, raw.get("render")),
        export=_export_from_dict(raw.get("export")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
