"""Tests for output encoding and the PNG size heuristic."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from pixelsmith.imaging.encoder import encode, lossy_quality, png_scale_factor
from pixelsmith.imaging.errors import EncodeFailure
from pixelsmith.imaging.models import OutputFormat, RasterImage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _noise(width: int = 64, height: int = 64, seed: int = 3) -> RasterImage:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return RasterImage(pixels)


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


# ---------------------------------------------------------------------------
# Quality mapping
# ---------------------------------------------------------------------------


class TestQualityMapping:
    @pytest.mark.parametrize(("quality", "expected"), [(0, 10), (5, 10), (10, 10), (55, 55), (100, 100)])
    def test_lossy_quality_is_clamped(self, quality: int, expected: int) -> None:
        assert lossy_quality(quality) == expected

    @pytest.mark.parametrize(("quality", "expected"), [(0, 0.5), (30, 0.5), (50, 0.5), (75, 0.75), (89, 0.89)])
    def test_png_scale_factor(self, quality: int, expected: float) -> None:
        assert png_scale_factor(quality) == pytest.approx(expected)


# ---------------------------------------------------------------------------
# Lossy formats
# ---------------------------------------------------------------------------


class TestLossyFormats:
    def test_jpeg(self) -> None:
        result = encode(_noise(), OutputFormat.JPEG, 80)
        assert result.data[:2] == b"\xff\xd8"
        assert result.format == "JPEG"
        assert result.mime_type == "image/jpeg"
        assert (result.width, result.height) == (64, 64)
        assert result.byte_size == len(result.data)

    def test_webp(self) -> None:
        result = encode(_noise(), OutputFormat.WEBP, 80)
        assert result.data[:4] == b"RIFF"
        assert result.data[8:12] == b"WEBP"
        assert result.format == "WEBP"
        assert _open(result.data).size == (64, 64)

    def test_lower_quality_is_smaller(self) -> None:
        raster = _noise(128, 128)
        high = encode(raster, OutputFormat.JPEG, 95)
        low = encode(raster, OutputFormat.JPEG, 20)
        assert low.byte_size < high.byte_size

    def test_jpeg_flattens_transparency_onto_black(self) -> None:
        raster = RasterImage.blank(16, 16, (255, 255, 255, 0))
        decoded = np.asarray(_open(encode(raster, OutputFormat.JPEG, 90).data).convert("RGB"))
        assert int(decoded.max()) <= 5

    def test_lossy_formats_ignore_downscale_heuristic(self) -> None:
        result = encode(_noise(), OutputFormat.JPEG, 30, original_byte_size=10_000_000)
        assert (result.width, result.height) == (64, 64)


# ---------------------------------------------------------------------------
# PNG heuristic
# ---------------------------------------------------------------------------


class TestPngHeuristic:
    def test_high_quality_keeps_full_resolution(self) -> None:
        result = encode(_noise(), OutputFormat.PNG, 90, original_byte_size=10_000_000)
        assert (result.width, result.height) == (64, 64)

    def test_png_preserves_pixels_at_full_resolution(self) -> None:
        raster = _noise()
        result = encode(raster, OutputFormat.PNG, 100)
        np.testing.assert_array_equal(np.asarray(_open(result.data).convert("RGBA")), raster.pixels)

    def test_low_quality_reports_downscaled_dimensions(self) -> None:
        result = encode(_noise(), OutputFormat.PNG, 50, original_byte_size=10_000_000)
        assert (result.width, result.height) == (32, 32)
        assert _open(result.data).size == (32, 32)

    def test_scale_factor_follows_quality(self) -> None:
        result = encode(_noise(100, 60), OutputFormat.PNG, 75, original_byte_size=10_000_000)
        assert (result.width, result.height) == (75, 45)

    def test_downscale_rejected_when_not_smaller_than_original(self) -> None:
        result = encode(_noise(), OutputFormat.PNG, 50, original_byte_size=10)
        assert (result.width, result.height) == (64, 64)

    def test_unknown_original_size_compares_against_full_encode_only(self) -> None:
        result = encode(_noise(), OutputFormat.PNG, 50)
        assert (result.width, result.height) == (32, 32)

    def test_downscale_can_be_disabled(self) -> None:
        result = encode(_noise(), OutputFormat.PNG, 50, original_byte_size=10_000_000, allow_lossy_downscale=False)
        assert (result.width, result.height) == (64, 64)

    def test_single_pixel_never_drops_below_one(self) -> None:
        result = encode(RasterImage.blank(1, 1, (1, 2, 3, 255)), OutputFormat.PNG, 10)
        assert (result.width, result.height) == (1, 1)


class TestEncodeFailure:
    def test_codec_errors_are_wrapped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _broken_save(*args: object, **kwargs: object) -> None:
            raise OSError("encoder not available")

        monkeypatch.setattr(Image.Image, "save", _broken_save)
        with pytest.raises(EncodeFailure, match="encoder not available"):
            encode(_noise(), OutputFormat.WEBP, 80)
