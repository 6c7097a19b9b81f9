"""Pydantic request/response schemas for the Pixelsmith API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ValidationResponse(BaseModel):
    """Outcome of the size/type gate."""

    valid: bool
    reason: str | None = None
    detected_format: str


class BatchItemResult(BaseModel):
    """A single successfully processed batch item."""

    index: int
    filename: str = Field(description="Suggested download name for the output")
    format: str
    width: int
    height: int
    byte_size: int
    original_byte_size: int
    data: str = Field(description="Base64-encoded output bytes")


class BatchItemError(BaseModel):
    index: int
    filename: str
    message: str


class BatchSummary(BaseModel):
    succeeded: int
    failed: int
    average_size_reduction: float | None = Field(
        default=None,
        description="Mean of 1 - output/original over successful items",
    )


class BatchResponse(BaseModel):
    """Response for the batch processing endpoint."""

    id: str
    status: str
    progress: float
    results: list[BatchItemResult | None] = Field(description="Index-aligned with the uploaded files")
    errors: list[BatchItemError]
    summary: BatchSummary


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    workers: int
    active_jobs: int
    queue_depth: int
    processed: int = 0
    rejected: int = 0


class FormatsResponse(BaseModel):
    """Supported input extensions and output formats."""

    input_extensions: list[str]
    output_formats: list[str]
    max_file_size: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
