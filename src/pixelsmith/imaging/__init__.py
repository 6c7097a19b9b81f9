"""Image transformation and encoding pipeline.

Public entry points::

    decode(data, declared_name) -> DecodedImage
    validate_input(data, declared_name, max_bytes) -> ValidationResult
    process_one(image, settings, on_progress) -> ProcessedImage
    process_batch(inputs, settings, on_progress, on_item_done) -> BatchJob
"""

from __future__ import annotations

from .batch import BatchOrchestrator, process_batch
from .decoder import ValidationResult, decode, detect_format, validate_input
from .errors import (
    AllocationFailure,
    DecodeFailure,
    DimensionsTooLarge,
    EncodeFailure,
    FileTooLarge,
    FilterApplicationFailure,
    ImageProcessingError,
    UnsupportedFormat,
)
from .models import (
    BatchError,
    BatchJob,
    BatchStatus,
    DecodedImage,
    FilterSet,
    OutputFormat,
    ProcessedImage,
    ProcessingSettings,
    RasterImage,
    RawInput,
    WatermarkConfig,
    WatermarkPosition,
)
from .pipeline import decode_and_process, process_one

__all__ = [
    "AllocationFailure",
    "BatchError",
    "BatchJob",
    "BatchOrchestrator",
    "BatchStatus",
    "DecodeFailure",
    "DecodedImage",
    "DimensionsTooLarge",
    "EncodeFailure",
    "FileTooLarge",
    "FilterApplicationFailure",
    "FilterSet",
    "ImageProcessingError",
    "OutputFormat",
    "ProcessedImage",
    "ProcessingSettings",
    "RasterImage",
    "RawInput",
    "UnsupportedFormat",
    "ValidationResult",
    "WatermarkConfig",
    "WatermarkPosition",
    "decode",
    "decode_and_process",
    "detect_format",
    "process_batch",
    "process_one",
    "validate_input",
]
