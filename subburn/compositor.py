"""
Frame Compositor — Burns caption text onto decoded RGB frames.

Styling:
  - font size    = floor(frame_height * 0.05)
  - baseline     = height - height * 0.10 - i * (font_size * 1.2),
                   i counted from the bottom line upward
  - centred on   = frame_width / 2
  - every line is stroked first (translucent black), then filled (white)
"""

import math
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .errors import CanvasUnsupported

logger = logging.getLogger(__name__)

# Highest code point (Latin Extended-B) Pillow's bundled font reliably covers.
LATIN_MAX_CODEPOINT = 0x024F
# Dashes and curly quotes, which the bundled font also covers.
GENERAL_PUNCTUATION = frozenset(chr(c) for c in range(0x2000, 0x2070))


@dataclass
class CaptionStyle:
    font_path: Optional[str] = None
    font_scale: float = 0.05
    bottom_margin: float = 0.10
    line_spacing: float = 1.2
    stroke_ratio: float = 0.15
    stroke_rgba: Tuple[int, int, int, int] = (0, 0, 0, 204)
    fill_rgba: Tuple[int, int, int, int] = (255, 255, 255, 255)

    @classmethod
    def from_config(cls, render_config) -> "CaptionStyle":
        return cls(
            font_path=render_config.font_path,
            font_scale=render_config.font_scale,
            bottom_margin=render_config.bottom_margin,
            line_spacing=render_config.line_spacing,
            stroke_ratio=render_config.stroke_ratio,
            stroke_rgba=tuple(render_config.stroke_rgba),
            fill_rgba=tuple(render_config.fill_rgba),
        )

    def font_size(self, frame_height: int) -> int:
        return math.floor(frame_height * self.font_scale)


class FrameCompositor:
    """
    Draws caption overlays onto frames.

    Frames are numpy arrays of shape (height, width, 3), dtype uint8.
    Only loaded fonts are cached between calls; the output depends on
    the arguments alone.
    """

    def __init__(self, style: Optional[CaptionStyle] = None):
        self.style = style or CaptionStyle()
        self._fonts: Dict[int, ImageFont.ImageFont] = {}
        self._glyph_warning_logged = False

    def prepare(self, frame_width: int, frame_height: int):
        """
        Build the drawing surface for a frame size ahead of the first frame.

        Raises:
            CanvasUnsupported: If the size is unusable or no font loads.
        """
        if frame_width <= 0 or frame_height <= 0:
            raise CanvasUnsupported(
                f"Invalid surface size {frame_width}x{frame_height}"
            )
        font_size = self.style.font_size(frame_height)
        if font_size < 1:
            raise CanvasUnsupported(
                f"Frame height {frame_height}px is too small for captions"
            )
        self._font(font_size)

    def line_positions(
        self, text: str, frame_width: int, frame_height: int
    ) -> List[Tuple[str, float, float]]:
        """
        Lay out caption lines as (line, x, baseline_y), bottom line first.
        """
        font_size = self.style.font_size(frame_height)
        x = frame_width / 2
        y = frame_height - frame_height * self.style.bottom_margin
        line_height = font_size * self.style.line_spacing

        lines = text.split("\n")
        return [
            (line, x, y - index * line_height)
            for index, line in enumerate(reversed(lines))
        ]

    def composite(
        self,
        frame: np.ndarray,
        active_text: Optional[str],
        frame_width: int,
        frame_height: int,
    ) -> np.ndarray:
        """
        Return `frame` with `active_text` burned in.

        With no text the same array is returned untouched. Otherwise a
        new array is returned and the input is left unmodified.
        """
        if not active_text:
            return frame

        self._warn_if_glyphs_missing(active_text)
        font_size = self.style.font_size(frame_height)
        font = self._font(font_size)
        # Canvas-style stroke width straddles the glyph edge; Pillow only
        # strokes outward.
        stroke_px = max(1, round(font_size * self.style.stroke_ratio / 2))

        base = Image.fromarray(frame).convert("RGBA")
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)

        for line, x, y in self.line_positions(active_text, frame_width, frame_height):
            if not line:
                continue
            draw.text(
                (x, y), line, font=font, anchor="md",
                fill=self.style.stroke_rgba,
                stroke_width=stroke_px, stroke_fill=self.style.stroke_rgba,
            )
            draw.text((x, y), line, font=font, anchor="md", fill=self.style.fill_rgba)

        composited = Image.alpha_composite(base, overlay).convert("RGB")
        return np.asarray(composited)

    def _warn_if_glyphs_missing(self, text: str):
        """Log once when the bundled font meets text it has no glyphs for."""
        if self.style.font_path or self._glyph_warning_logged:
            return
        if any(ord(ch) > LATIN_MAX_CODEPOINT and ch not in GENERAL_PUNCTUATION for ch in text):
            self._glyph_warning_logged = True
            logger.warning(
                "Captions contain non-Latin characters but no caption font is "
                "configured; they will render as boxes. Pass --font or set "
                "render.font_path to a font that covers them."
            )

    def _font(self, size: int):
        font = self._fonts.get(size)
        if font is not None:
            return font

        try:
            if self.style.font_path:
                font = ImageFont.truetype(self.style.font_path, size)
            else:
                font = ImageFont.load_default(size=size)
        except (OSError, ImportError, ValueError) as e:
            raise CanvasUnsupported(
                f"Could not load caption font "
                f"({self.style.font_path or 'default'}) at {size}px", str(e)
            ) from e

        logger.debug(f"Loaded caption font {self.style.font_path or 'default'} @ {size}px")
        self._fonts[size] = font
        return font
