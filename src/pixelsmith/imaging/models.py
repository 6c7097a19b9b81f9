"""Data model shared by every pipeline stage.

Settings objects are pydantic models so the ranges documented on each field
are enforced at the boundary; buffers and results are plain dataclasses.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePath
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageColor
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class OutputFormat(StrEnum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"


class WatermarkPosition(StrEnum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"


class BatchStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

# Dimensions are 32-bit unsigned on the wire.
MAX_DIMENSION = 4_294_967_295

_SETTINGS_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


class FilterSet(BaseModel):
    """Color and spatial adjustments. Zero/false everywhere is the identity."""

    model_config = _SETTINGS_CONFIG

    brightness: int = Field(default=0, ge=-100, le=100)
    contrast: int = Field(default=0, ge=-100, le=100)
    saturation: int = Field(default=0, ge=-100, le=100)
    blur_radius: float = Field(
        default=0.0,
        ge=0.0,
        le=10.0,
        validation_alias=AliasChoices("blurRadius", "blur", "blur_radius"),
    )
    sharpen: int = Field(default=0, ge=0, le=100)
    sepia: int = Field(default=0, ge=0, le=100)
    grayscale: int = Field(default=0, ge=0, le=100)
    vintage: bool = False

    @property
    def has_color_adjustments(self) -> bool:
        return bool(
            self.brightness or self.contrast or self.saturation or self.sepia or self.grayscale or self.vintage
        )

    @property
    def is_identity(self) -> bool:
        return not self.has_color_adjustments and self.blur_radius == 0 and self.sharpen == 0


class WatermarkConfig(BaseModel):
    """Text overlay drawn after filtering."""

    model_config = _SETTINGS_CONFIG

    enabled: bool = False
    text: str = "Watermark"
    opacity: int = Field(default=50, ge=0, le=100)
    position: WatermarkPosition = WatermarkPosition.BOTTOM_RIGHT
    font_size_px: int = Field(
        default=24,
        ge=12,
        le=200,
        validation_alias=AliasChoices("fontSizePx", "fontSize", "font_size_px"),
    )
    color_rgb: str = Field(
        default="#ffffff",
        validation_alias=AliasChoices("colorRGB", "color", "color_rgb"),
    )
    font_family: str = Field(default="Arial", max_length=64)
    angle_deg: int = Field(
        default=0,
        ge=-45,
        le=45,
        validation_alias=AliasChoices("angleDeg", "angle", "angle_deg"),
    )

    @field_validator("color_rgb")
    @classmethod
    def _check_color(cls, value: str) -> str:
        try:
            ImageColor.getrgb(value)
        except ValueError:
            raise ValueError(f"Unrecognised color: {value!r}") from None
        return value

    @property
    def rgb(self) -> tuple[int, int, int]:
        red, green, blue = ImageColor.getrgb(self.color_rgb)[:3]
        return red, green, blue


class ProcessingSettings(BaseModel):
    """Immutable snapshot of everything a single processing run needs."""

    model_config = _SETTINGS_CONFIG

    output_format: OutputFormat = OutputFormat.JPEG
    quality: int = Field(default=75, ge=0, le=100)
    width: int = Field(default=1920, ge=1, le=MAX_DIMENSION)
    height: int = Field(default=1080, ge=1, le=MAX_DIMENSION)
    maintain_aspect_ratio: bool = True
    filters: FilterSet = Field(default_factory=FilterSet)
    watermark: WatermarkConfig | None = None
    allow_lossy_downscale_for_lossless: bool = True

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalise_format(cls, value: object) -> object:
        if isinstance(value, str) and not isinstance(value, OutputFormat):
            lowered = value.strip().lower()
            return "jpeg" if lowered == "jpg" else lowered
        return value


# ---------------------------------------------------------------------------
# Buffers and results
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class RasterImage:
    """An owned RGBA8 pixel grid of shape ``(height, width, 4)``."""

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) uint8 array, got {pixels.dtype} {pixels.shape}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError(f"Raster dimensions must be at least 1x1, got {pixels.shape[1]}x{pixels.shape[0]}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pil(cls, image: Image.Image) -> RasterImage:
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(np.array(image, dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int, color: tuple[int, int, int, int] = (0, 0, 0, 0)) -> RasterImage:
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:] = color
        return cls(pixels)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> RasterImage:
        return RasterImage(self.pixels.copy())

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class DecodedImage:
    """Decoder output: the raster plus what is known about its source file."""

    raster: RasterImage
    format_label: str
    byte_size: int
    name: str = ""


@dataclass(frozen=True)
class RawInput:
    """An undecoded input handed to the batch orchestrator."""

    data: bytes
    name: str
    mime_type: str | None = None


@dataclass(frozen=True)
class ProcessedImage:
    """Encoded result of one successful run."""

    data: bytes
    byte_size: int
    format: str
    width: int
    height: int

    @property
    def mime_type(self) -> str:
        return f"image/{self.format.lower()}"

    def output_filename(self, source_name: str) -> str:
        """Return *source_name* with its extension replaced by the output format."""
        stem = PurePath(source_name).stem or "image"
        return f"{stem}.{self.format.lower()}"


@dataclass(frozen=True)
class BatchError:
    index: int
    message: str


@dataclass
class BatchJob:
    """State of one batch run. Only the orchestrator mutates it."""

    inputs: Sequence[object]
    settings: ProcessingSettings
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: BatchStatus = BatchStatus.PENDING
    progress_percent: float = 0.0
    results: list[ProcessedImage | None] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.results:
            self.results = [None] * len(self.inputs)

    @property
    def finished(self) -> bool:
        return self.status in (BatchStatus.COMPLETED, BatchStatus.FAILED)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for result in self.results if result is not None)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    def average_size_reduction(self, original_sizes: Sequence[int | None]) -> float | None:
        """Mean of ``1 - output/original`` over successful items with a known size.

        Returns None when no successful item has a known original size.
        """
        ratios = [
            1.0 - result.byte_size / original
            for result, original in zip(self.results, original_sizes, strict=False)
            if result is not None and original
        ]
        if not ratios:
            return None
        return sum(ratios) / len(ratios)
