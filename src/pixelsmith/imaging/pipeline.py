"""Single-item processing pipeline.

Decoder -> geometry -> resampler -> filters -> watermark -> encoder, with an
explicit progress callback threaded through each stage.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pixelsmith.imaging.decoder import DEFAULT_MAX_FILE_SIZE, DEFAULT_MAX_IMAGE_PIXELS, decode
from pixelsmith.imaging.encoder import encode
from pixelsmith.imaging.errors import AllocationFailure, DimensionsTooLarge, ImageProcessingError
from pixelsmith.imaging.filters import apply_filters
from pixelsmith.imaging.geometry import resolve_dimensions
from pixelsmith.imaging.models import DecodedImage, ProcessedImage, ProcessingSettings, RasterImage, RawInput
from pixelsmith.imaging.resampler import resample
from pixelsmith.imaging.watermark import apply_watermark

if TYPE_CHECKING:
    from collections.abc import Callable

    from pixelsmith.imaging.fonts import FontProvider

    ProgressCallback = Callable[[float], None]

logger = logging.getLogger(__name__)

# Percentages reported as each stage finishes.
PROGRESS_DECODED = 10.0
PROGRESS_RESIZED = 20.0
PROGRESS_FILTERED = 50.0
PROGRESS_WATERMARKED = 70.0
PROGRESS_DONE = 100.0


def _report(on_progress: ProgressCallback | None, percent: float) -> None:
    if on_progress is not None:
        on_progress(percent)


def process_one(
    image: DecodedImage | RasterImage,
    settings: ProcessingSettings,
    on_progress: ProgressCallback | None = None,
    *,
    max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
    fonts: FontProvider | None = None,
    allow_lossy_downscale: bool = True,
) -> ProcessedImage:
    """Run every transform stage and the encoder over one image.

    Args:
        image: A decoded image, or a bare raster whose source size is unknown.
        settings: Immutable settings snapshot.
        on_progress: Called with monotonically increasing percentages.
        max_pixels: Upper bound on the resolved output ``width * height``.
        fonts: Font provider for the watermark; the shared cache by default.
        allow_lossy_downscale: Global switch for the PNG downscale heuristic,
            combined with the per-settings flag.

    Raises:
        ImageProcessingError: Any stage failure, with a readable message.
    """
    if isinstance(image, DecodedImage):
        raster, original_byte_size = image.raster, image.byte_size
    else:
        raster, original_byte_size = image, None

    started = time.perf_counter()
    try:
        width, height = resolve_dimensions(
            raster.width,
            raster.height,
            settings.width,
            settings.height,
            settings.maintain_aspect_ratio,
        )
        if width * height > max_pixels:
            raise DimensionsTooLarge(width, height, max_pixels)
        working = resample(raster, width, height)
        _report(on_progress, PROGRESS_RESIZED)

        working = apply_filters(working, settings.filters)
        _report(on_progress, PROGRESS_FILTERED)

        working = apply_watermark(working, settings.watermark, fonts=fonts)
        _report(on_progress, PROGRESS_WATERMARKED)

        result = encode(
            working,
            settings.output_format,
            settings.quality,
            original_byte_size=original_byte_size,
            allow_lossy_downscale=allow_lossy_downscale and settings.allow_lossy_downscale_for_lossless,
        )
    except ImageProcessingError:
        raise
    except MemoryError as exc:
        raise AllocationFailure("Out of memory while processing image") from exc
    except (OSError, ValueError) as exc:
        raise ImageProcessingError(f"Processing failed: {exc}") from exc

    _report(on_progress, PROGRESS_DONE)
    logger.debug(
        "Processed %dx%d -> %dx%d %s (%d bytes) in %.1f ms",
        raster.width,
        raster.height,
        result.width,
        result.height,
        result.format,
        result.byte_size,
        (time.perf_counter() - started) * 1000,
    )
    return result


def decode_and_process(
    raw: RawInput,
    settings: ProcessingSettings,
    on_progress: ProgressCallback | None = None,
    *,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE,
    max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
    fonts: FontProvider | None = None,
    allow_lossy_downscale: bool = True,
) -> ProcessedImage:
    """Decode ``raw`` and run :func:`process_one` on the result."""
    decoded = decode(raw.data, raw.name, max_bytes=max_bytes, max_pixels=max_pixels, mime_type=raw.mime_type)
    _report(on_progress, PROGRESS_DECODED)
    return process_one(
        decoded,
        settings,
        on_progress,
        max_pixels=max_pixels,
        fonts=fonts,
        allow_lossy_downscale=allow_lossy_downscale,
    )
