"""
Tests for the frame compositor.
"""

import numpy as np
import pytest
from subburn.compositor import CaptionStyle, FrameCompositor
from subburn.errors import CanvasUnsupported, ErrorKind

WIDTH, HEIGHT = 640, 480


@pytest.fixture
def compositor():
    return FrameCompositor()


@pytest.fixture
def black_frame():
    return np.zeros((HEIGHT, WIDTH, 3), dtype=np.uint8)


def _changed_rows_cols(before, after):
    diff = np.any(before != after, axis=2)
    rows = np.where(diff.any(axis=1))[0]
    cols = np.where(diff.any(axis=0))[0]
    return rows, cols


class TestNoOp:
    """No active caption leaves the frame untouched."""

    @pytest.mark.parametrize("text", [None, ""])
    def test_returns_same_frame(self, compositor, black_frame, text):
        out = compositor.composite(black_frame, text, WIDTH, HEIGHT)
        assert out is black_frame

    def test_pixel_identical_on_noise(self, compositor):
        rng = np.random.default_rng(7)
        frame = rng.integers(0, 256, size=(HEIGHT, WIDTH, 3), dtype=np.uint8)
        copy = frame.copy()
        out = compositor.composite(frame, None, WIDTH, HEIGHT)
        assert np.array_equal(out, copy)


class TestLayout:
    """Baselines stack upward from the bottom line."""

    def test_font_size(self):
        assert CaptionStyle().font_size(480) == 24
        assert CaptionStyle().font_size(719) == 35

    def test_line_positions(self, compositor):
        positions = compositor.line_positions("Hello\n哈囉", WIDTH, HEIGHT)
        assert [p[0] for p in positions] == ["哈囉", "Hello"]
        assert positions[0][1:] == pytest.approx((320.0, 432.0))
        assert positions[1][1:] == pytest.approx((320.0, 432.0 - 24 * 1.2))

    def test_single_line(self, compositor):
        positions = compositor.line_positions("Hi", 1920, 1080)
        assert positions == [("Hi", 960.0, pytest.approx(1080 - 108.0))]


class TestDrawing:
    """Caption pixels land in the baseline region only."""

    def test_draws_near_bottom_center(self, compositor, black_frame):
        out = compositor.composite(black_frame, "Hello", WIDTH, HEIGHT)
        rows, cols = _changed_rows_cols(black_frame, out)
        assert len(rows) > 0
        # Text sits on the 432px baseline (anchor is the descender line)
        assert rows.min() > 432 - 2 * 24
        assert rows.max() <= 432 + 4
        assert abs((cols.min() + cols.max()) / 2 - WIDTH / 2) < 10

    def test_white_fill_present(self, compositor, black_frame):
        out = compositor.composite(black_frame, "Hello", WIDTH, HEIGHT)
        assert np.any(np.all(out >= 250, axis=2))

    def test_outline_darkens_white_frame(self, compositor):
        white = np.full((HEIGHT, WIDTH, 3), 255, dtype=np.uint8)
        out = compositor.composite(white, "Hello", WIDTH, HEIGHT)
        assert out.min() < 100

    def test_extra_lines_push_upward(self, compositor, black_frame):
        one = compositor.composite(black_frame, "Hello", WIDTH, HEIGHT)
        two = compositor.composite(black_frame, "Hello\nWorld", WIDTH, HEIGHT)
        rows_one, _ = _changed_rows_cols(black_frame, one)
        rows_two, _ = _changed_rows_cols(black_frame, two)
        assert rows_two.min() < rows_one.min()
        assert rows_two.max() == pytest.approx(rows_one.max(), abs=3)

    def test_input_not_mutated(self, compositor, black_frame):
        compositor.composite(black_frame, "Hello", WIDTH, HEIGHT)
        assert not black_frame.any()

    def test_output_shape_and_dtype(self, compositor, black_frame):
        out = compositor.composite(black_frame, "Hello\n哈囉", WIDTH, HEIGHT)
        assert out.shape == (HEIGHT, WIDTH, 3)
        assert out.dtype == np.uint8


class TestPrepare:

    def test_valid_size(self, compositor):
        compositor.prepare(WIDTH, HEIGHT)

    @pytest.mark.parametrize("w,h", [(0, 480), (640, 0), (640, 10)])
    def test_unusable_size(self, compositor, w, h):
        with pytest.raises(CanvasUnsupported):
            compositor.prepare(w, h)

    def test_missing_font_file(self, tmp_path):
        compositor = FrameCompositor(CaptionStyle(font_path=str(tmp_path / "nope.ttf")))
        with pytest.raises(CanvasUnsupported) as exc:
            compositor.prepare(WIDTH, HEIGHT)
        assert exc.value.kind is ErrorKind.CANVAS_UNSUPPORTED


class TestGlyphCoverageWarning:

    def test_warns_once_for_cjk_without_font(self, compositor, black_frame, caplog):
        with caplog.at_level("WARNING", logger="subburn.compositor"):
            compositor.composite(black_frame, "Hello\n哈囉", WIDTH, HEIGHT)
            compositor.composite(black_frame, "再見", WIDTH, HEIGHT)
        warnings = [r for r in caplog.records if r.levelname == "WARNING"]
        assert len(warnings) == 1
        assert "--font" in warnings[0].getMessage()

    def test_latin_text_is_quiet(self, compositor, black_frame, caplog):
        with caplog.at_level("WARNING", logger="subburn.compositor"):
            compositor.composite(black_frame, "Héllo wörld — “quoted”…", WIDTH, HEIGHT)
        assert not [r for r in caplog.records if r.levelname == "WARNING"]

    def test_configured_font_is_quiet(self, caplog):
        compositor = FrameCompositor(CaptionStyle(font_path="/fonts/NotoSansTC.ttf"))
        with caplog.at_level("WARNING", logger="subburn.compositor"):
            compositor._warn_if_glyphs_missing("哈囉")
        assert not caplog.records


class TestStyleFromConfig:

    def test_from_render_config(self):
        from config import RenderConfig
        style = CaptionStyle.from_config(RenderConfig(font_scale=0.1, stroke_rgba=[1, 2, 3, 4]))
        assert style.font_size(480) == 48
        assert style.stroke_rgba == (1, 2, 3, 4)
