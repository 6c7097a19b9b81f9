"""Text watermark compositing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pixelsmith.imaging.errors import AllocationFailure
from pixelsmith.imaging.fonts import get_default_font_cache
from pixelsmith.imaging.models import RasterImage, WatermarkConfig, WatermarkPosition

if TYPE_CHECKING:
    from pixelsmith.imaging.fonts import Font, FontProvider

logger = logging.getLogger(__name__)

MARGIN_PX = 20


def watermark_anchor(
    position: WatermarkPosition,
    canvas_width: int,
    canvas_height: int,
    text_width: float,
    font_size: int,
) -> tuple[float, float]:
    """Return the left end of the text baseline for ``position``."""
    right = canvas_width - text_width - MARGIN_PX
    top = font_size + MARGIN_PX
    bottom = canvas_height - MARGIN_PX
    if position is WatermarkPosition.TOP_LEFT:
        return MARGIN_PX, top
    if position is WatermarkPosition.TOP_RIGHT:
        return right, top
    if position is WatermarkPosition.BOTTOM_LEFT:
        return MARGIN_PX, bottom
    if position is WatermarkPosition.BOTTOM_RIGHT:
        return right, bottom
    return (canvas_width - text_width) / 2, (canvas_height + font_size) / 2


def _draw_text(
    layer: Image.Image,
    origin: tuple[float, float],
    text: str,
    font: Font,
    fill: tuple[int, ...],
    font_size: int,
) -> tuple[float, float, float, float]:
    """Draw ``text`` with its baseline starting at ``origin`` and return its bounding box."""
    draw = ImageDraw.Draw(layer)
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text(origin, text, font=font, fill=fill, anchor="ls")
        return draw.textbbox(origin, text, font=font, anchor="ls")
    # Bitmap fonts only support the top-left anchor.
    top_left = (origin[0], origin[1] - font_size)
    draw.text(top_left, text, font=font, fill=fill)
    return draw.textbbox(top_left, text, font=font)


def apply_watermark(
    raster: RasterImage,
    config: WatermarkConfig | None,
    *,
    fonts: FontProvider | None = None,
) -> RasterImage:
    """Return a new raster with the watermark text composited on top.

    The text is rendered onto a transparent layer, rotated clockwise about
    its own center by ``angle_deg``, faded to ``opacity`` and blended over
    the image. A disabled config or empty text leaves the pixels unchanged.

    Raises:
        AllocationFailure: If the overlay cannot be allocated.
    """
    if config is None or not config.enabled or not config.text:
        return raster.copy()

    provider = fonts if fonts is not None else get_default_font_cache()
    font = provider.get_font(config.font_family, config.font_size_px)
    text_width = font.getlength(config.text)
    origin = watermark_anchor(config.position, raster.width, raster.height, text_width, config.font_size_px)

    try:
        layer = Image.new("RGBA", (raster.width, raster.height), (0, 0, 0, 0))
        left, top, right, bottom = _draw_text(
            layer, origin, config.text, font, (*config.rgb, 255), config.font_size_px
        )
        if config.angle_deg:
            center = ((left + right) / 2, (top + bottom) / 2)
            layer = layer.rotate(-config.angle_deg, resample=Image.Resampling.BICUBIC, center=center)

        overlay = np.array(layer, dtype=np.uint8)
        alpha = overlay[..., 3].astype(np.float32) * np.float32(config.opacity / 100)
        overlay[..., 3] = np.rint(alpha).astype(np.uint8)

        composited = Image.alpha_composite(raster.to_pil(), Image.fromarray(overlay))
        result = RasterImage.from_pil(composited)
    except MemoryError as exc:
        raise AllocationFailure(
            f"Out of memory while drawing a watermark on a {raster.width}x{raster.height} image"
        ) from exc

    logger.debug(
        "Watermark %r at (%.1f, %.1f), %s, angle %d",
        config.text,
        origin[0],
        origin[1],
        config.position.value,
        config.angle_deg,
    )
    return result
