"""Batch orchestration with partial-failure semantics.

Items run in index order against one settings snapshot. A failing item
records a :class:`BatchError` and leaves its result slot empty; the batch
always moves on to the next item.

With ``max_workers > 1`` items run on a thread pool instead. Each worker owns
the buffers of the item it is processing and writes its result into that
item's slot, so the output order never depends on completion order. Job
state and the aggregate progress are only touched under ``_lock``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from pixelsmith.imaging.decoder import DEFAULT_MAX_FILE_SIZE, DEFAULT_MAX_IMAGE_PIXELS
from pixelsmith.imaging.errors import ImageProcessingError, UnsupportedFormat
from pixelsmith.imaging.models import (
    BatchError,
    BatchJob,
    BatchStatus,
    DecodedImage,
    ProcessedImage,
    ProcessingSettings,
    RasterImage,
    RawInput,
)
from pixelsmith.imaging.pipeline import decode_and_process, process_one

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from pixelsmith.imaging.fonts import FontProvider

    BatchInput = RawInput | DecodedImage | RasterImage
    ProgressCallback = Callable[[float], None]
    ItemDoneCallback = Callable[[int, ProcessedImage | None, str | None], None]

logger = logging.getLogger(__name__)


def input_byte_size(item: object) -> int | None:
    """Return the source file size of a batch input, if it is known."""
    if isinstance(item, RawInput):
        return len(item.data)
    if isinstance(item, DecodedImage):
        return item.byte_size
    return None


class BatchOrchestrator:
    """Runs the pipeline over many inputs and aggregates the outcome.

    An orchestrator drives exactly one batch. Create a new one per batch;
    calling :meth:`run` a second time raises ``RuntimeError``. :meth:`cancel`
    may be called before or during the run.
    """

    def __init__(
        self,
        settings: ProcessingSettings,
        *,
        max_workers: int = 1,
        max_bytes: int = DEFAULT_MAX_FILE_SIZE,
        max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
        fonts: FontProvider | None = None,
        allow_lossy_downscale: bool = True,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._settings = settings
        self._max_workers = max_workers
        self._max_bytes = max_bytes
        self._max_pixels = max_pixels
        self._fonts = fonts
        self._allow_lossy_downscale = allow_lossy_downscale

        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._job: BatchJob | None = None
        self._fractions: list[float] = []
        self._attempted = 0
        self._on_progress: ProgressCallback | None = None

    # -- Public API ---------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop launching new items. Items already running are allowed to finish."""
        self._cancel_event.set()
        logger.info("Batch cancellation requested")

    def run(
        self,
        inputs: Sequence[BatchInput],
        on_progress: ProgressCallback | None = None,
        on_item_done: ItemDoneCallback | None = None,
    ) -> BatchJob:
        """Process every input and return the finished job.

        Raises:
            RuntimeError: If this orchestrator has already run a batch.
        """
        job = BatchJob(inputs=list(inputs), settings=self._settings)
        total = len(job.inputs)
        with self._lock:
            if self._job is not None:
                raise RuntimeError("BatchOrchestrator is single-use; create a new one for each batch")
            self._job = job
            self._fractions = [0.0] * total
            self._attempted = 0
            self._on_progress = on_progress

        job.status = BatchStatus.PROCESSING
        logger.info("Batch %s started: %d items, %d workers", job.id, total, self._max_workers)

        if self._max_workers == 1 or total <= 1:
            for index, item in enumerate(job.inputs):
                if self.cancelled:
                    break
                self._run_item(index, item, on_item_done)
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="batch-item") as executor:
                futures = [
                    executor.submit(self._run_item, index, item, on_item_done)
                    for index, item in enumerate(job.inputs)
                ]
                for future in futures:
                    future.result()

        self._finish(job, total)
        return job

    # -- Internal -----------------------------------------------------------

    def _process(self, item: BatchInput, on_progress: ProgressCallback) -> ProcessedImage:
        if isinstance(item, RawInput):
            return decode_and_process(
                item,
                self._settings,
                on_progress,
                max_bytes=self._max_bytes,
                max_pixels=self._max_pixels,
                fonts=self._fonts,
                allow_lossy_downscale=self._allow_lossy_downscale,
            )
        if isinstance(item, (DecodedImage, RasterImage)):
            return process_one(
                item,
                self._settings,
                on_progress,
                max_pixels=self._max_pixels,
                fonts=self._fonts,
                allow_lossy_downscale=self._allow_lossy_downscale,
            )
        raise UnsupportedFormat(f"Unsupported batch input of type {type(item).__name__}")

    def _run_item(self, index: int, item: BatchInput, on_item_done: ItemDoneCallback | None) -> None:
        # Queued pool tasks see the flag too, so nothing new starts after cancel().
        if self.cancelled:
            return
        with self._lock:
            self._attempted += 1

        result: ProcessedImage | None = None
        message: str | None = None
        try:
            result = self._process(item, lambda percent: self._advance(index, percent / 100))
        except ImageProcessingError as exc:
            message = exc.message
        except Exception as exc:
            logger.exception("Unexpected error while processing batch item %d", index)
            message = f"Processing failed: {exc}"

        job = self._job
        assert job is not None
        with self._lock:
            if result is not None:
                job.results[index] = result
            else:
                job.errors.append(BatchError(index=index, message=message or "Unknown error"))
        if message is not None:
            logger.warning("Batch %s item %d failed: %s", job.id, index, message)

        self._advance(index, 1.0)
        if on_item_done is not None:
            on_item_done(index, result, message)

    def _advance(self, index: int, fraction: float) -> None:
        job = self._job
        assert job is not None
        with self._lock:
            fraction = min(1.0, max(self._fractions[index], fraction))
            self._fractions[index] = fraction
            percent = sum(self._fractions) / len(self._fractions) * 100
            if percent <= job.progress_percent:
                return
            job.progress_percent = percent
            # Emitted under the lock so listeners see values in order.
            if self._on_progress is not None:
                self._on_progress(percent)

    def _finish(self, job: BatchJob, total: int) -> None:
        with self._lock:
            job.errors.sort(key=lambda error: error.index)
            all_attempted = self._attempted == total
            job.status = BatchStatus.COMPLETED if all_attempted and not job.errors else BatchStatus.FAILED
            emit = job.progress_percent < 100.0
            job.progress_percent = 100.0
            if emit and self._on_progress is not None:
                self._on_progress(100.0)

        logger.info(
            "Batch %s %s: %d succeeded, %d failed, %d skipped",
            job.id,
            job.status.value,
            job.succeeded_count,
            job.failed_count,
            total - self._attempted,
        )


def process_batch(
    inputs: Sequence[BatchInput],
    settings: ProcessingSettings,
    on_progress: ProgressCallback | None = None,
    on_item_done: ItemDoneCallback | None = None,
    *,
    max_workers: int = 1,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE,
    max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
    fonts: FontProvider | None = None,
    allow_lossy_downscale: bool = True,
) -> BatchJob:
    """Run a batch to completion with a fresh :class:`BatchOrchestrator`."""
    orchestrator = BatchOrchestrator(
        settings,
        max_workers=max_workers,
        max_bytes=max_bytes,
        max_pixels=max_pixels,
        fonts=fonts,
        allow_lossy_downscale=allow_lossy_downscale,
    )
    return orchestrator.run(inputs, on_progress, on_item_done)
