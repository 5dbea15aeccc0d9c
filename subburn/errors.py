"""
Export Errors — Failure taxonomy for the burn-in pipeline.

Every pipeline-level failure is fatal to the running job and is surfaced
to the caller as an ExportError whose `kind` tells the cases apart.
Parser-level anomalies never reach this module; they are recovered
inside the SRT parser.
"""

from enum import Enum


class ErrorKind(str, Enum):
    SOURCE_UNREADABLE = "source_unreadable"
    ENCODER_UNAVAILABLE = "encoder_unavailable"
    PLAYBACK_FAILURE = "playback_failure"
    CANVAS_UNSUPPORTED = "canvas_unsupported"
    CANCELLED = "cancelled"


class ExportError(RuntimeError):
    """Base class for fatal export failures."""

    kind: ErrorKind = ErrorKind.PLAYBACK_FAILURE

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail

    def __str__(self):
        base = super().__str__()
        if self.detail:
            return f"{base}\n{self.detail}"
        return base


class SourceUnreadable(ExportError):
    """Media metadata could not be resolved."""
    kind = ErrorKind.SOURCE_UNREADABLE


class EncoderUnavailable(ExportError):
    """No output codec configuration could be started."""
    kind = ErrorKind.ENCODER_UNAVAILABLE


class PlaybackFailure(ExportError):
    """Decoding or encoding broke down in the middle of the frame loop."""
    kind = ErrorKind.PLAYBACK_FAILURE


class CanvasUnsupported(ExportError):
    """The compositing surface or its font could not be created."""
    kind = ErrorKind.CANVAS_UNSUPPORTED


class ExportCancelled(ExportError):
    kind = ErrorKind.CANCELLED
