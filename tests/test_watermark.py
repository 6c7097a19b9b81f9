"""Tests for the watermark compositor."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import ImageFont

from pixelsmith.imaging.models import RasterImage, WatermarkConfig, WatermarkPosition
from pixelsmith.imaging.watermark import apply_watermark, watermark_anchor

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _DefaultFonts:
    """Font provider that always returns Pillow's bundled font."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, int]] = []

    def get_font(self, family: str, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        self.requests.append((family, size))
        return ImageFont.load_default(size)


def _canvas(width: int = 200, height: int = 100) -> RasterImage:
    return RasterImage.blank(width, height, (0, 0, 0, 255))


def _config(**overrides: object) -> WatermarkConfig:
    values: dict[str, object] = {
        "enabled": True,
        "text": "Hi",
        "opacity": 100,
        "position": WatermarkPosition.BOTTOM_RIGHT,
        "font_size_px": 24,
        "color_rgb": "#ffffff",
    }
    values.update(overrides)
    return WatermarkConfig(**values)  # type: ignore[arg-type]


def _changed(before: RasterImage, after: RasterImage) -> np.ndarray:
    return np.argwhere(np.any(before.pixels != after.pixels, axis=2))


# ---------------------------------------------------------------------------
# Anchor math
# ---------------------------------------------------------------------------


class TestWatermarkAnchor:
    def test_bottom_right(self) -> None:
        assert watermark_anchor(WatermarkPosition.BOTTOM_RIGHT, 200, 100, 40, 24) == (140, 80)

    def test_top_left(self) -> None:
        assert watermark_anchor(WatermarkPosition.TOP_LEFT, 200, 100, 40, 24) == (20, 44)

    def test_top_right(self) -> None:
        assert watermark_anchor(WatermarkPosition.TOP_RIGHT, 200, 100, 40, 24) == (140, 44)

    def test_bottom_left(self) -> None:
        assert watermark_anchor(WatermarkPosition.BOTTOM_LEFT, 200, 100, 40, 24) == (20, 80)

    def test_center(self) -> None:
        assert watermark_anchor(WatermarkPosition.CENTER, 200, 100, 40, 24) == (80, 62)


# ---------------------------------------------------------------------------
# Compositing
# ---------------------------------------------------------------------------


class TestApplyWatermark:
    def test_disabled_is_noop(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, _config(enabled=False), fonts=_DefaultFonts())
        np.testing.assert_array_equal(out.pixels, canvas.pixels)

    def test_none_is_noop(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, None, fonts=_DefaultFonts())
        np.testing.assert_array_equal(out.pixels, canvas.pixels)

    def test_empty_text_is_visually_empty(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, _config(text=""), fonts=_DefaultFonts())
        np.testing.assert_array_equal(out.pixels, canvas.pixels)

    def test_draws_in_bottom_right_region(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, _config(), fonts=_DefaultFonts())
        changed = _changed(canvas, out)
        assert len(changed) > 0
        rows, cols = changed[:, 0], changed[:, 1]
        assert cols.min() >= 100
        assert rows.min() >= 40
        assert rows.max() <= 90

    def test_draws_in_top_left_region(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, _config(position=WatermarkPosition.TOP_LEFT), fonts=_DefaultFonts())
        changed = _changed(canvas, out)
        assert len(changed) > 0
        assert changed[:, 1].max() < 100
        assert changed[:, 0].max() <= 50

    def test_uses_configured_font(self) -> None:
        fonts = _DefaultFonts()
        apply_watermark(_canvas(), _config(font_family="Georgia", font_size_px=30), fonts=fonts)
        assert fonts.requests == [("Georgia", 30)]

    def test_opacity_scales_blend(self) -> None:
        canvas = _canvas()
        full = apply_watermark(canvas, _config(opacity=100), fonts=_DefaultFonts())
        half = apply_watermark(canvas, _config(opacity=50), fonts=_DefaultFonts())
        assert int(full.pixels[..., 0].max()) > int(half.pixels[..., 0].max())
        assert 100 <= int(half.pixels[..., 0].max()) <= 160

    def test_color_is_applied(self) -> None:
        canvas = _canvas()
        out = apply_watermark(canvas, _config(color_rgb="#ff0000"), fonts=_DefaultFonts())
        assert int(out.pixels[..., 0].max()) == 255
        assert int(out.pixels[..., 1].max()) == 0
        assert int(out.pixels[..., 2].max()) == 0

    def test_opaque_canvas_stays_opaque(self) -> None:
        out = apply_watermark(_canvas(), _config(opacity=40), fonts=_DefaultFonts())
        assert int(out.pixels[..., 3].min()) == 255

    @pytest.mark.parametrize("angle", [30, -45])
    def test_rotation_changes_footprint(self, angle: int) -> None:
        canvas = _canvas(300, 300)
        base = {"text": "Rotated", "position": WatermarkPosition.CENTER, "font_size_px": 40}
        straight = apply_watermark(canvas, _config(**base), fonts=_DefaultFonts())
        rotated = apply_watermark(canvas, _config(**base, angle_deg=angle), fonts=_DefaultFonts())
        straight_rows = np.ptp(_changed(canvas, straight)[:, 0])
        rotated_rows = np.ptp(_changed(canvas, rotated)[:, 0])
        assert rotated_rows > straight_rows

    def test_input_is_not_mutated(self) -> None:
        canvas = _canvas()
        before = canvas.pixels.copy()
        apply_watermark(canvas, _config(), fonts=_DefaultFonts())
        np.testing.assert_array_equal(canvas.pixels, before)
