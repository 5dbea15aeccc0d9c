"""
Subtitle Burner — CLI Entry Point

Usage:
    python main.py video.mp4 captions.srt
    python main.py video.mp4 captions.srt -o subtitled.webm
    python main.py video.mp4 captions.srt --font NotoSansTC.ttf --bitrate 3000000
    python main.py video.mp4 captions.srt --save-srt downloads/captions.srt
"""

import sys
import argparse
import logging
from pathlib import Path

from config import load_config
from subburn.errors import ExportError
from subburn.exporter import SubtitleExporter
from subburn.srt_parser import parse_srt
from subburn.srt_writer import SRTWriter


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("PIL").setLevel(logging.WARNING)


def print_banner():
    """Print the application banner."""
    banner = """
==========================================================
                 Subtitle Burner

  SRT captions  +  original audio  ->  one subtitled video
  Single real-time pass  |  Powered by FFmpeg & Pillow
==========================================================
"""
    print(banner)


def print_progress(percent: int):
    """Console progress callback with progress bar."""
    bar_width = 30
    filled = int(bar_width * percent / 100)
    bar = "#" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {percent:3d}%  Rendering...", end="", flush=True)
    if percent >= 100:
        print()  # Newline at completion


def main():
    parser = argparse.ArgumentParser(
        description="Subtitle Burner — Render SRT captions into a video "
                    "while keeping its original audio.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py movie.mp4 movie.srt                     # Basic usage
  python main.py movie.mp4 movie.srt -o out.webm         # Custom output path
  python main.py movie.mp4 movie.srt --font Noto.ttf     # Font with CJK glyphs
  python main.py movie.mp4 movie.srt --monitor           # Listen while exporting
  python main.py movie.mp4 movie.srt --save-srt a.srt    # Also keep the captions
        """
    )

    parser.add_argument(
        "video",
        type=Path,
        help="Path to the input video file (.mp4, .mkv, .webm, etc.)"
    )
    parser.add_argument(
        "captions",
        type=Path,
        help="Path to the SRT caption track"
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output video path (default: <video>.subtitled.<container>)"
    )
    parser.add_argument(
        "--font",
        type=Path,
        default=None,
        help="TrueType/OpenType font for captions (default: from config.yaml)"
    )
    parser.add_argument(
        "--bitrate",
        type=int,
        default=None,
        help="Video bitrate ceiling in bits per second (default: 5000000)"
    )
    parser.add_argument(
        "--monitor",
        action="store_true",
        help="Play the soundtrack through ffplay while exporting"
    )
    parser.add_argument(
        "--save-srt",
        type=Path,
        default=None,
        help="Also save the caption track text, unchanged, to this path"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to custom config.yaml file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except the progress bar"
    )

    args = parser.parse_args()

    # ── Validate input ──
    if not args.video.exists():
        print(f"Error: Video file not found: {args.video}")
        sys.exit(1)
    if not args.captions.exists():
        print(f"Error: Caption file not found: {args.captions}")
        sys.exit(1)

    # ── Load config ──
    config = load_config(args.config)
    config.update_from_args(args)

    # ── Setup logging ──
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    try:
        track_text = args.captions.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        print(f"Error: Caption file is not valid UTF-8: {args.captions} ({e})")
        sys.exit(1)
    track = parse_srt(track_text)

    # ── Banner ──
    if not args.quiet:
        print_banner()
        print(f"  Input:    {args.video}")
        print(f"  Captions: {args.captions} ({len(track)} entries)")
        print(f"  Bitrate:  {config.export.video_bitrate / 1_000_000:.1f} Mbps")
        print(f"  Font:     {config.render.font_path or 'Pillow default'}")
        preview = SRTWriter().write_preview(track, max_entries=3)
        if preview:
            print(preview)
        print()

    # ── Caption download pass-through ──
    if args.save_srt:
        SRTWriter.save_raw(track_text, args.save_srt)
        if not args.quiet:
            print(f"  [OK] Caption track saved to: {args.save_srt}")

    # ── Run export ──
    try:
        exporter = SubtitleExporter(config)
        result = exporter.export(args.video, track, progress_cb=print_progress)

        output_path = args.output or args.video.with_name(
            f"{args.video.stem}.subtitled.{result.container}"
        )
        result.save(output_path)

        if not args.quiet:
            print(f"\n  [OK] Subtitled video saved to: {output_path}")
            print(f"  [INFO] {result.frame_count} frames, {result.video_codec}, "
                  f"{result.size / (1024 * 1024):.1f} MB")

    except KeyboardInterrupt:
        print("\n\n  [WARN] Export interrupted by user.")
        sys.exit(130)
    except ExportError as e:
        print(f"\n  [ERROR] Export failed ({e.kind.value}): {e}")
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n  [ERROR] Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
