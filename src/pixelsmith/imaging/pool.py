"""Processing concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> pipeline

Decoding, resampling and encoding are CPU-bound and synchronous, so each
request occupies one worker thread. A request that cannot get a slot within
``queue_timeout`` seconds is rejected and the route answers 503.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from pixelsmith.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PoolStats:
    """Point-in-time counters for the health endpoint."""

    active: int = 0
    queued: int = 0
    processed: int = 0
    rejected: int = 0


class ProcessingPool:
    """Bounds concurrent pipeline runs and executes them off the event loop."""

    def __init__(self, settings: Settings) -> None:
        self._size = settings.max_concurrent
        self._queue_timeout = settings.queue_timeout
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="image-pipeline",
        )
        self._stats = PoolStats()
        self._stats_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object, **kwargs: object) -> T:
        """Run ``func(*args, **kwargs)`` on a pipeline worker thread.

        Raises:
            TimeoutError: If no slot frees up within the queue timeout.
        """
        call = functools.partial(func, *args, **kwargs)
        async with self._slot():
            try:
                return await asyncio.get_running_loop().run_in_executor(self._executor, call)
            finally:
                with self._stats_lock:
                    self._stats.processed += 1

    @asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        with self._stats_lock:
            self._stats.queued += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._queue_timeout)
        except TimeoutError:
            with self._stats_lock:
                self._stats.rejected += 1
            logger.warning("No free pipeline slot after %.1fs (size=%d), rejecting", self._queue_timeout, self._size)
            raise
        finally:
            with self._stats_lock:
                self._stats.queued -= 1

        with self._stats_lock:
            self._stats.active += 1
        try:
            yield
        finally:
            self._slots.release()
            with self._stats_lock:
                self._stats.active -= 1

    @property
    def size(self) -> int:
        """Maximum number of concurrent pipeline runs."""
        return self._size

    def stats(self) -> PoolStats:
        """Return a snapshot of the pool counters."""
        with self._stats_lock:
            return PoolStats(**vars(self._stats))

    @property
    def active_count(self) -> int:
        return self.stats().active

    @property
    def queue_depth(self) -> int:
        return self.stats().queued

    def shutdown(self) -> None:
        """Wait for running jobs, then stop the worker threads."""
        self._executor.shutdown(wait=True)
