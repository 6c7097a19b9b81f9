"""Color and spatial filters over RGBA rasters.

The six per-pixel adjustments run as one vectorised pass over a float32 copy
of the RGB channels. Each helper reads the clamped output of the previous
one, so the pass is equivalent to applying them one after another. Blur and
sharpen then run over the whole buffer. Alpha is never touched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageFilter

from pixelsmith.imaging.errors import FilterApplicationFailure
from pixelsmith.imaging.models import FilterSet, RasterImage

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

SEPIA_MATRIX = np.array(
    [
        [0.393, 0.769, 0.189],
        [0.349, 0.686, 0.168],
        [0.272, 0.534, 0.131],
    ],
    dtype=np.float32,
)

VINTAGE_SCALE = np.array([0.9, 0.85, 0.7], dtype=np.float32)
VINTAGE_OFFSET = np.array([30.0, 20.0, 10.0], dtype=np.float32)


def _clamp(rgb: NDArray[np.float32]) -> NDArray[np.float32]:
    return np.clip(rgb, 0.0, 255.0, out=rgb)


def _mix(a: NDArray[np.float32], b: NDArray[np.float32], t: float) -> NDArray[np.float32]:
    """Vectorised linear interpolation from ``a`` (t=0) to ``b`` (t=1)."""
    return a * np.float32(1.0 - t) + b * np.float32(t)


def _luma(rgb: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return the ``(H, W, 1)`` Rec. 601 luma of ``rgb``."""
    return (rgb @ LUMA_WEIGHTS)[..., np.newaxis]


# ---------------------------------------------------------------------------
# Per-pixel adjustments (float32 RGB in, float32 RGB out)
# ---------------------------------------------------------------------------


def adjust_brightness(rgb: NDArray[np.float32], brightness: int) -> NDArray[np.float32]:
    rgb += np.float32(brightness * 2.55)
    return _clamp(rgb)


def adjust_contrast(rgb: NDArray[np.float32], contrast: int) -> NDArray[np.float32]:
    factor = np.float32((contrast + 100) / 100)
    rgb -= 128.0
    rgb *= factor
    rgb += 128.0
    return _clamp(rgb)


def adjust_saturation(rgb: NDArray[np.float32], saturation: int) -> NDArray[np.float32]:
    luma = _luma(rgb)
    factor = np.float32((saturation + 100) / 100)
    return _clamp(luma + (rgb - luma) * factor)


def apply_sepia(rgb: NDArray[np.float32], sepia: int) -> NDArray[np.float32]:
    toned = rgb @ SEPIA_MATRIX.T
    return _clamp(_mix(rgb, toned, sepia / 100))


def apply_grayscale(rgb: NDArray[np.float32], grayscale: int) -> NDArray[np.float32]:
    return _clamp(_mix(rgb, _luma(rgb), grayscale / 100))


def apply_vintage(rgb: NDArray[np.float32]) -> NDArray[np.float32]:
    return _clamp(rgb * VINTAGE_SCALE + VINTAGE_OFFSET)


def apply_color_adjustments(rgb: NDArray[np.float32], filters: FilterSet) -> NDArray[np.float32]:
    """Run the per-pixel chain in its fixed order, skipping identity stages."""
    if filters.brightness:
        rgb = adjust_brightness(rgb, filters.brightness)
    if filters.contrast:
        rgb = adjust_contrast(rgb, filters.contrast)
    if filters.saturation:
        rgb = adjust_saturation(rgb, filters.saturation)
    if filters.sepia:
        rgb = apply_sepia(rgb, filters.sepia)
    if filters.grayscale:
        rgb = apply_grayscale(rgb, filters.grayscale)
    if filters.vintage:
        rgb = apply_vintage(rgb)
    return rgb


def _to_uint8(rgb: NDArray[np.float32]) -> NDArray[np.uint8]:
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


# ---------------------------------------------------------------------------
# Spatial filters (uint8 RGB in, uint8 RGB out)
# ---------------------------------------------------------------------------


def blur(rgb: NDArray[np.uint8], radius: float) -> NDArray[np.uint8]:
    """Gaussian blur with a standard deviation of ``radius`` pixels."""
    blurred = Image.fromarray(np.ascontiguousarray(rgb)).filter(ImageFilter.GaussianBlur(radius))
    return np.asarray(blurred, dtype=np.uint8)


def sharpen(rgb: NDArray[np.uint8], amount: int) -> NDArray[np.uint8]:
    """Apply the 3x3 sharpen kernel to interior pixels.

    The one-pixel border stays as it was because the kernel would reach
    outside the image there.
    """
    height, width = rgb.shape[:2]
    if height < 3 or width < 3:
        return rgb.copy()

    k = np.float32(amount / 100)
    src = rgb.astype(np.float32)
    center = src[1:-1, 1:-1]
    neighbours = src[:-2, 1:-1] + src[2:, 1:-1] + src[1:-1, :-2] + src[1:-1, 2:]
    sharpened = center * (1 + 4 * k) - neighbours * k

    out = rgb.copy()
    out[1:-1, 1:-1] = _to_uint8(sharpened)
    return out


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def apply_filters(raster: RasterImage, filters: FilterSet) -> RasterImage:
    """Return a new raster with ``filters`` applied.

    Raises:
        FilterApplicationFailure: If a working buffer cannot be allocated.
    """
    pixels = raster.pixels.copy()
    if filters.is_identity:
        return RasterImage(pixels)

    try:
        rgb = pixels[..., :3]
        if filters.has_color_adjustments:
            rgb = _to_uint8(apply_color_adjustments(rgb.astype(np.float32), filters))
        if filters.blur_radius > 0:
            rgb = blur(rgb, filters.blur_radius)
        if filters.sharpen > 0:
            rgb = sharpen(rgb, filters.sharpen)
        pixels[..., :3] = rgb
    except MemoryError as exc:
        raise FilterApplicationFailure(
            f"Out of memory while filtering a {raster.width}x{raster.height} image"
        ) from exc

    logger.debug(
        "Applied filters %s to %dx%d raster",
        filters.model_dump(exclude_defaults=True),
        raster.width,
        raster.height,
    )
    return RasterImage(pixels)
