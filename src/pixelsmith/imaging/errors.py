"""Error taxonomy for the imaging pipeline.

Every failure raised by a pipeline stage derives from
:class:`ImageProcessingError`, so callers can catch one type and still
report a human-readable message.
"""

from __future__ import annotations


class ImageProcessingError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FileTooLarge(ImageProcessingError):  # noqa: N818
    """Input exceeds the configured byte limit."""

    def __init__(self, byte_size: int, max_bytes: int) -> None:
        super().__init__(f"File size {byte_size} bytes exceeds the limit of {max_bytes} bytes")
        self.byte_size = byte_size
        self.max_bytes = max_bytes


class UnsupportedFormat(ImageProcessingError):  # noqa: N818
    """Input is not one of the supported image formats."""


class DecodeFailure(ImageProcessingError):  # noqa: N818
    """Input bytes could not be parsed as the declared format."""


class FilterApplicationFailure(ImageProcessingError):  # noqa: N818
    """A filter could not be applied (allocation failure)."""


class EncodeFailure(ImageProcessingError):  # noqa: N818
    """The output codec failed or ran out of memory."""


class AllocationFailure(ImageProcessingError):  # noqa: N818
    """A raster buffer could not be allocated."""


class DimensionsTooLarge(ImageProcessingError):  # noqa: N818
    """Requested output dimensions exceed the configured pixel limit."""

    def __init__(self, width: int, height: int, max_pixels: int) -> None:
        super().__init__(f"Output size {width}x{height} exceeds the limit of {max_pixels} pixels")
        self.width = width
        self.height = height
        self.max_pixels = max_pixels
