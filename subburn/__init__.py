"""
Subtitle Burner — Processing Package

Single-pass, real-time burn-in of an SRT caption track into a video:
  - timecode: SRT HH:MM:SS,mmm timestamp codec
  - srt_parser: SRT text → ordered caption track
  - srt_writer: caption track → SRT text, raw track download
  - timeline: active-caption lookup by playback time
  - compositor: caption overlay drawing (Pillow)
  - media: ffprobe metadata and threaded ffmpeg frame decoder
  - encoder: ffmpeg encoder sink with codec negotiation
  - clock: real-time playback pacing
  - monitor: optional ffplay audio monitor
  - exporter: export job state machine and orchestration
"""
