"""Input validation and decoding.

Handles format detection, size validation, decoding, EXIF orientation and
conversion to an RGBA raster. Size and type are checked before any pixel
work so oversized or unsupported uploads are rejected cheaply.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath

from PIL import Image, ImageOps, UnidentifiedImageError

from pixelsmith.imaging.errors import (
    AllocationFailure,
    DecodeFailure,
    FileTooLarge,
    UnsupportedFormat,
)
from pixelsmith.imaging.models import DecodedImage, RasterImage

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE: int = 50 * 1024 * 1024
DEFAULT_MAX_IMAGE_PIXELS: int = 100_000_000

UNKNOWN_FORMAT = "Unknown"

_EXTENSION_FORMATS: dict[str, str] = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "gif": "GIF",
    "bmp": "BMP",
    "tif": "TIFF",
    "tiff": "TIFF",
    "raw": "RAW",
    "cr2": "RAW",
    "nef": "RAW",
    "arw": "RAW",
    "dng": "RAW",
}

_MIME_FORMATS: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/x-ms-bmp": "BMP",
    "image/tiff": "TIFF",
}

# Pillow plugins allowed to parse each declared format. RAW containers vary
# by vendor, so any plugin Pillow has may try (most carry a TIFF or JPEG
# preview).
_PILLOW_FORMATS: dict[str, tuple[str, ...] | None] = {
    "JPEG": ("JPEG", "MPO"),
    "PNG": ("PNG",),
    "WEBP": ("WEBP",),
    "GIF": ("GIF",),
    "BMP": ("BMP", "DIB"),
    "TIFF": ("TIFF",),
    "RAW": None,
}

SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(_EXTENSION_FORMATS)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None


def detect_format(name: str, mime_type: str | None = None) -> str:
    """Return the format label for a file name, falling back to its MIME type."""
    extension = PurePath(name).suffix.lower().lstrip(".")
    label = _EXTENSION_FORMATS.get(extension)
    if label is None and mime_type:
        label = _MIME_FORMATS.get(mime_type.split(";")[0].strip().lower())
    return label or UNKNOWN_FORMAT


def _check_input(data: bytes, declared_name: str, max_bytes: int, mime_type: str | None) -> str:
    if len(data) > max_bytes:
        raise FileTooLarge(len(data), max_bytes)
    label = detect_format(declared_name, mime_type)
    if label == UNKNOWN_FORMAT:
        raise UnsupportedFormat(
            f"Unsupported file format for {declared_name!r}. Please use JPEG, PNG, WebP, GIF, BMP, TIFF or RAW."
        )
    return label


def validate_input(
    data: bytes,
    declared_name: str,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE,
    mime_type: str | None = None,
) -> ValidationResult:
    """Size/type gate used before decoding. Never raises."""
    try:
        _check_input(data, declared_name, max_bytes, mime_type)
    except (FileTooLarge, UnsupportedFormat) as exc:
        return ValidationResult(valid=False, reason=exc.message)
    return ValidationResult(valid=True)


def decode(
    data: bytes,
    declared_name: str,
    *,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE,
    max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
    mime_type: str | None = None,
) -> DecodedImage:
    """Decode raw file bytes into an RGBA raster.

    Args:
        data: Raw file bytes.
        declared_name: File name used to detect the declared format.
        max_bytes: Upper bound on ``len(data)``.
        max_pixels: Upper bound on ``width * height`` of the decoded image.
        mime_type: Optional MIME type used when the extension is not recognised.

    Returns:
        The decoded raster with its format label and source byte size.

    Raises:
        FileTooLarge: If ``data`` exceeds ``max_bytes``.
        UnsupportedFormat: If the declared format is not supported.
        DecodeFailure: If the bytes cannot be parsed as the declared format.
        AllocationFailure: If the pixel buffer cannot be allocated.
    """
    label = _check_input(data, declared_name, max_bytes, mime_type)

    try:
        with Image.open(io.BytesIO(data), formats=_PILLOW_FORMATS[label]) as image:
            if image.width * image.height > max_pixels:
                raise DecodeFailure(
                    f"Image {declared_name!r} has {image.width}x{image.height} pixels, "
                    f"more than the limit of {max_pixels}"
                )
            image.seek(0)
            image.load()
            oriented = ImageOps.exif_transpose(image)
            raster = RasterImage.from_pil(oriented)
    except MemoryError as exc:
        raise AllocationFailure(f"Out of memory while decoding {declared_name!r}") from exc
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeFailure(f"Failed to decode {declared_name!r} as {label}: {exc}") from exc

    logger.debug("Decoded %s (%s, %d bytes) to %dx%d", declared_name, label, len(data), raster.width, raster.height)
    return DecodedImage(raster=raster, format_label=label, byte_size=len(data), name=declared_name)
