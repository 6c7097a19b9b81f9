"""API route definitions."""

from __future__ import annotations

import base64
import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from pixelsmith.api.dependencies import get_app_settings, get_font_cache, get_processing_pool, verify_api_key
from pixelsmith.api.schemas import (
    BatchItemError,
    BatchItemResult,
    BatchResponse,
    BatchSummary,
    ErrorResponse,
    FormatsResponse,
    HealthResponse,
    ValidationResponse,
)
from pixelsmith.imaging.batch import BatchOrchestrator, input_byte_size
from pixelsmith.imaging.decoder import SUPPORTED_EXTENSIONS, detect_format, validate_input
from pixelsmith.imaging.errors import (
    DecodeFailure,
    DimensionsTooLarge,
    FileTooLarge,
    ImageProcessingError,
    UnsupportedFormat,
)
from pixelsmith.imaging.models import OutputFormat, ProcessingSettings, RawInput
from pixelsmith.imaging.pipeline import decode_and_process

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

# Literal codes: Starlette renamed these constants and the names differ across versions.
HTTP_413_CONTENT_TOO_LARGE = 413
HTTP_422_UNPROCESSABLE_CONTENT = 422

_ERROR_STATUS: dict[type[ImageProcessingError], int] = {
    FileTooLarge: HTTP_413_CONTENT_TOO_LARGE,
    DimensionsTooLarge: HTTP_413_CONTENT_TOO_LARGE,
    UnsupportedFormat: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    DecodeFailure: HTTP_422_UNPROCESSABLE_CONTENT,
}

_PIPELINE_ERRORS = {
    HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
    HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}

SettingsForm = Annotated[str, Form(description="ProcessingSettings as JSON")]


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _pipeline_error(exc: ImageProcessingError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return _error(status_code, exc.message)


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _busy() -> JSONResponse:
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Server busy, try again later")


def _parse_settings(raw: str) -> ProcessingSettings:
    return ProcessingSettings.model_validate_json(raw or "{}")


async def _read_upload(file: UploadFile) -> RawInput:
    return RawInput(data=await file.read(), name=file.filename or "upload", mime_type=file.content_type)


@router.post(
    "/validate",
    response_model=ValidationResponse,
    summary="Check an upload against the size and format limits",
)
async def validate(request: Request, file: UploadFile) -> ValidationResponse:
    """Run the size/type gate without decoding the image."""
    app_settings = get_app_settings(request)
    raw = await _read_upload(file)
    result = validate_input(raw.data, raw.name, app_settings.max_file_size, raw.mime_type)
    return ValidationResponse(
        valid=result.valid,
        reason=result.reason,
        detected_format=detect_format(raw.name, raw.mime_type),
    )


@router.post(
    "/process",
    response_class=Response,
    responses={status.HTTP_200_OK: {"content": {"image/*": {}}}, **_PIPELINE_ERRORS},
    summary="Transform and re-encode a single image",
)
async def process(request: Request, file: UploadFile, settings: SettingsForm = "{}") -> Response:
    """Resize, filter, watermark and encode an uploaded image."""
    app_settings = get_app_settings(request)
    try:
        processing_settings = _parse_settings(settings)
    except ValidationError as exc:
        return _error(HTTP_422_UNPROCESSABLE_CONTENT, f"Invalid settings: {exc}")

    raw = await _read_upload(file)
    try:
        result = await get_processing_pool(request).run(
            decode_and_process,
            raw,
            processing_settings,
            max_bytes=app_settings.max_file_size,
            max_pixels=app_settings.max_image_pixels,
            fonts=get_font_cache(request),
            allow_lossy_downscale=app_settings.allow_lossy_downscale_for_lossless,
        )
    except TimeoutError:
        return _busy()
    except ImageProcessingError as exc:
        logger.warning("Processing %s failed: %s", raw.name, exc.message)
        return _pipeline_error(exc)

    return Response(
        content=result.data,
        media_type=result.mime_type,
        headers={
            "Content-Disposition": _content_disposition(result.output_filename(raw.name)),
            "X-Image-Width": str(result.width),
            "X-Image-Height": str(result.height),
            "X-Original-Size": str(len(raw.data)),
        },
    )


@router.post(
    "/batch",
    response_model=BatchResponse,
    responses={
        HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Process several images with one settings snapshot",
)
async def batch(
    request: Request,
    files: list[UploadFile],
    settings: SettingsForm = "{}",
) -> BatchResponse | JSONResponse:
    """Process every uploaded file; failures are reported per index."""
    app_settings = get_app_settings(request)
    try:
        processing_settings = _parse_settings(settings)
    except ValidationError as exc:
        return _error(HTTP_422_UNPROCESSABLE_CONTENT, f"Invalid settings: {exc}")

    inputs = [await _read_upload(file) for file in files]
    orchestrator = BatchOrchestrator(
        processing_settings,
        max_workers=app_settings.batch_workers,
        max_bytes=app_settings.max_file_size,
        max_pixels=app_settings.max_image_pixels,
        fonts=get_font_cache(request),
        allow_lossy_downscale=app_settings.allow_lossy_downscale_for_lossless,
    )
    try:
        job = await get_processing_pool(request).run(orchestrator.run, inputs)
    except TimeoutError:
        return _busy()

    original_sizes = [input_byte_size(item) for item in inputs]
    results: list[BatchItemResult | None] = []
    for index, (raw, result) in enumerate(zip(inputs, job.results, strict=True)):
        if result is None:
            results.append(None)
            continue
        results.append(
            BatchItemResult(
                index=index,
                filename=result.output_filename(raw.name),
                format=result.format,
                width=result.width,
                height=result.height,
                byte_size=result.byte_size,
                original_byte_size=len(raw.data),
                data=base64.b64encode(result.data).decode("ascii"),
            )
        )

    return BatchResponse(
        id=job.id,
        status=job.status.value,
        progress=job.progress_percent,
        results=results,
        errors=[
            BatchItemError(index=error.index, filename=inputs[error.index].name, message=error.message)
            for error in job.errors
        ],
        summary=BatchSummary(
            succeeded=job.succeeded_count,
            failed=job.failed_count,
            average_size_reduction=job.average_size_reduction(original_sizes),
        ),
    )


@router.get(
    "/formats",
    response_model=FormatsResponse,
    summary="List supported formats",
)
async def formats(request: Request) -> FormatsResponse:
    """Return accepted input extensions and available output formats."""
    return FormatsResponse(
        input_extensions=list(SUPPORTED_EXTENSIONS),
        output_formats=[fmt.value for fmt in OutputFormat],
        max_file_size=get_app_settings(request).max_file_size,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = get_processing_pool(request)
    stats = pool.stats()
    return HealthResponse(
        status="ok",
        workers=pool.size,
        active_jobs=stats.active,
        queue_depth=stats.queued,
        processed=stats.processed,
        rejected=stats.rejected,
    )
