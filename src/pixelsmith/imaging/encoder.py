"""Output encoding with per-format size/quality trade-offs.

JPEG and WebP take the quality setting directly. PNG is lossless, so below
a quality of 90 the encoder also tries a downscaled copy and keeps it when
that is the smaller file. The returned dimensions then describe the
downscaled image, not the requested one.
"""

from __future__ import annotations

import io
import logging
import math

from PIL import Image

from pixelsmith.imaging.errors import AllocationFailure, EncodeFailure
from pixelsmith.imaging.models import OutputFormat, ProcessedImage, RasterImage
from pixelsmith.imaging.resampler import resample

logger = logging.getLogger(__name__)

PNG_FULL_QUALITY_THRESHOLD = 90
PNG_MIN_SCALE = 0.5
MIN_LOSSY_QUALITY = 0.1

_JPEG_BACKGROUND = (0, 0, 0, 255)


def lossy_quality(quality: int) -> int:
    """Map a 0-100 setting to the codec quality, never below 10."""
    fraction = max(MIN_LOSSY_QUALITY, min(1.0, quality / 100))
    return round(fraction * 100)


def png_scale_factor(quality: int) -> float:
    return max(PNG_MIN_SCALE, quality / 100)


def _save(image: Image.Image, output_format: OutputFormat, quality: int) -> bytes:
    buffer = io.BytesIO()
    if output_format is OutputFormat.JPEG:
        # JPEG has no alpha channel; flatten onto black like a browser canvas does.
        background = Image.new("RGBA", image.size, _JPEG_BACKGROUND)
        flattened = Image.alpha_composite(background, image).convert("RGB")
        flattened.save(buffer, format="JPEG", quality=lossy_quality(quality))
    elif output_format is OutputFormat.WEBP:
        image.save(buffer, format="WEBP", quality=lossy_quality(quality), method=4)
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def _encode_raster(raster: RasterImage, output_format: OutputFormat, quality: int) -> bytes:
    try:
        return _save(raster.to_pil(), output_format, quality)
    except MemoryError as exc:
        raise EncodeFailure(f"Out of memory while encoding {output_format.label}") from exc
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeFailure(f"Failed to encode {output_format.label}: {exc}") from exc


def encode(
    raster: RasterImage,
    output_format: OutputFormat,
    quality: int,
    *,
    original_byte_size: int | None = None,
    allow_lossy_downscale: bool = True,
) -> ProcessedImage:
    """Serialise ``raster`` to ``output_format``.

    Args:
        raster: Final pixels.
        output_format: Target codec.
        quality: 0-100 quality setting.
        original_byte_size: Size of the source file, used by the PNG size
            heuristic. None means unknown, and only the full-resolution
            encode is compared against.
        allow_lossy_downscale: Allow PNG output below quality 90 to be
            downscaled when that produces a smaller file.

    Raises:
        EncodeFailure: On codec errors or allocation failure.
    """
    data = _encode_raster(raster, output_format, quality)
    width, height = raster.width, raster.height

    if (
        output_format is OutputFormat.PNG
        and allow_lossy_downscale
        and quality < PNG_FULL_QUALITY_THRESHOLD
    ):
        scale = png_scale_factor(quality)
        scaled_width = max(1, math.floor(width * scale))
        scaled_height = max(1, math.floor(height * scale))
        try:
            scaled = resample(raster, scaled_width, scaled_height)
        except AllocationFailure as exc:
            raise EncodeFailure(exc.message) from exc
        scaled_data = _encode_raster(scaled, output_format, quality)

        smaller_than_full = len(scaled_data) < len(data)
        smaller_than_original = original_byte_size is None or len(scaled_data) < original_byte_size
        logger.debug(
            "PNG heuristic: full %d bytes, %dx%d downscale %d bytes, original %s",
            len(data),
            scaled_width,
            scaled_height,
            len(scaled_data),
            original_byte_size,
        )
        if smaller_than_full and smaller_than_original:
            data = scaled_data
            width, height = scaled_width, scaled_height

    return ProcessedImage(
        data=data,
        byte_size=len(data),
        format=output_format.label,
        width=width,
        height=height,
    )
