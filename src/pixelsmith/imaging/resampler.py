"""High-quality resampling of raster buffers."""

from __future__ import annotations

from PIL import Image

from pixelsmith.imaging.errors import AllocationFailure
from pixelsmith.imaging.models import RasterImage

RESAMPLE_FILTER = Image.Resampling.LANCZOS


def resample(raster: RasterImage, width: int, height: int) -> RasterImage:
    """Return a new raster scaled to ``width`` x ``height``.

    Pillow resizes RGBA in premultiplied space, so transparent pixels do not
    bleed their color into opaque neighbours. Same-size requests return a copy.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Target dimensions must be at least 1x1, got {width}x{height}")
    if (width, height) == (raster.width, raster.height):
        return raster.copy()
    try:
        resized = raster.to_pil().resize((width, height), RESAMPLE_FILTER)
        return RasterImage.from_pil(resized)
    except MemoryError as exc:
        raise AllocationFailure(f"Out of memory while resampling to {width}x{height}") from exc
