"""Tests for settings models and pipeline buffers."""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from pixelsmith.imaging.models import (
    BatchJob,
    BatchStatus,
    FilterSet,
    OutputFormat,
    ProcessedImage,
    ProcessingSettings,
    RasterImage,
    WatermarkConfig,
    WatermarkPosition,
)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestProcessingSettings:
    def test_defaults(self) -> None:
        settings = ProcessingSettings()
        assert settings.output_format is OutputFormat.JPEG
        assert settings.quality == 75
        assert (settings.width, settings.height) == (1920, 1080)
        assert settings.maintain_aspect_ratio is True
        assert settings.filters.is_identity
        assert settings.watermark is None

    def test_camel_case_payload(self) -> None:
        settings = ProcessingSettings.model_validate_json(
            '{"outputFormat": "WEBP", "maintainAspectRatio": false, "width": 640, "height": 480,'
            ' "filters": {"blurRadius": 2.5, "grayscale": 30},'
            ' "watermark": {"enabled": true, "fontSizePx": 32, "colorRGB": "#ff0000", "angleDeg": -15}}'
        )
        assert settings.output_format is OutputFormat.WEBP
        assert settings.maintain_aspect_ratio is False
        assert settings.filters.blur_radius == 2.5
        assert settings.watermark is not None
        assert settings.watermark.font_size_px == 32
        assert settings.watermark.rgb == (255, 0, 0)
        assert settings.watermark.angle_deg == -15

    @pytest.mark.parametrize("value", ["jpg", "JPG", " jpeg ", "JPEG"])
    def test_jpeg_aliases(self, value: str) -> None:
        assert ProcessingSettings(output_format=value).output_format is OutputFormat.JPEG  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"quality": 101},
            {"quality": -1},
            {"width": 0},
            {"width": 4_294_967_296},
            {"height": 10**12},
            {"output_format": "gif"},
            {"filters": {"brightness": 150}},
            {"filters": {"blur": 11}},
            {"filters": {"sepia": -5}},
            {"watermark": {"opacity": 120}},
            {"watermark": {"fontSize": 8}},
            {"watermark": {"angle": 60}},
            {"watermark": {"color": "not-a-color"}},
            {"watermark": {"fontFamily": "x" * 65}},
        ],
    )
    def test_out_of_range_values_are_rejected(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            ProcessingSettings.model_validate(overrides)

    def test_settings_are_frozen(self) -> None:
        settings = ProcessingSettings()
        with pytest.raises(ValidationError):
            settings.quality = 10  # type: ignore[misc]


class TestFilterSet:
    def test_identity(self) -> None:
        assert FilterSet().is_identity
        assert not FilterSet().has_color_adjustments

    def test_spatial_only(self) -> None:
        filters = FilterSet(blur_radius=1.0)
        assert not filters.is_identity
        assert not filters.has_color_adjustments

    def test_vintage_counts_as_color_adjustment(self) -> None:
        assert FilterSet(vintage=True).has_color_adjustments


class TestWatermarkConfig:
    def test_defaults(self) -> None:
        config = WatermarkConfig()
        assert config.enabled is False
        assert config.opacity == 50
        assert config.position is WatermarkPosition.BOTTOM_RIGHT
        assert config.font_size_px == 24
        assert config.rgb == (255, 255, 255)

    def test_named_colors(self) -> None:
        assert WatermarkConfig(color_rgb="navy").rgb == (0, 0, 128)


# ---------------------------------------------------------------------------
# Buffers and results
# ---------------------------------------------------------------------------


class TestRasterImage:
    def test_dimensions(self) -> None:
        raster = RasterImage.blank(7, 3, (1, 2, 3, 4))
        assert (raster.width, raster.height) == (7, 3)
        assert len(raster.tobytes()) == 7 * 3 * 4

    @pytest.mark.parametrize(
        "pixels",
        [
            np.zeros((4, 4, 3), dtype=np.uint8),
            np.zeros((4, 4, 4), dtype=np.float32),
            np.zeros((0, 4, 4), dtype=np.uint8),
            np.zeros((4, 0, 4), dtype=np.uint8),
        ],
    )
    def test_invalid_buffers_are_rejected(self, pixels: np.ndarray) -> None:
        with pytest.raises(ValueError):
            RasterImage(pixels)

    def test_copy_is_independent(self) -> None:
        raster = RasterImage.blank(2, 2)
        clone = raster.copy()
        clone.pixels[0, 0] = 255
        assert int(raster.pixels[0, 0, 0]) == 0

    def test_pil_roundtrip(self) -> None:
        raster = RasterImage.blank(5, 4, (10, 20, 30, 40))
        np.testing.assert_array_equal(RasterImage.from_pil(raster.to_pil()).pixels, raster.pixels)


class TestProcessedImage:
    def test_output_filename(self) -> None:
        result = ProcessedImage(data=b"", byte_size=0, format="WEBP", width=1, height=1)
        assert result.output_filename("holiday.photo.JPG") == "holiday.photo.webp"
        assert result.output_filename("") == "image.webp"
        assert result.mime_type == "image/webp"


class TestBatchJob:
    def test_slots_match_inputs(self) -> None:
        job = BatchJob(inputs=[object(), object()], settings=ProcessingSettings())
        assert job.results == [None, None]
        assert job.status is BatchStatus.PENDING
        assert not job.finished
