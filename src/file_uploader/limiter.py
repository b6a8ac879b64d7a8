# src/file_uploader/limiter.py

"""
Fixed-size admission gate for upload work.

At most ``capacity`` scheduled tasks run at once; the rest wait on an
``asyncio.Semaphore`` and are released in the order they arrived. The limiter
assumes a single event loop and is not thread-safe.

A process-wide instance is created once at start-up with
``initialize_upload_limiter`` and fetched with ``get_upload_limiter``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .exceptions import LimiterNotInitializedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 3


class ConcurrencyLimiter:
    """Runs awaitables with at most ``capacity`` of them in flight."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("Limiter capacity must be a positive integer.")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._active = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._active

    async def schedule(self, task_factory: Callable[[], Awaitable[T]]) -> T:
        """
        Wait for a free slot, then run ``task_factory()`` to completion.

        The factory is only called once a slot is held, so no work starts
        early. Whatever the task returns or raises is passed through; the slot
        is released either way.
        """
        async with self._semaphore:
            self._active += 1
            try:
                return await task_factory()
            finally:
                self._active -= 1


# --- Process-wide instance ---
_upload_limiter: ConcurrencyLimiter | None = None


def initialize_upload_limiter(capacity: int = DEFAULT_CAPACITY) -> ConcurrencyLimiter:
    """Create the shared upload limiter. Later calls return the existing one."""
    global _upload_limiter
    if _upload_limiter is None:
        _upload_limiter = ConcurrencyLimiter(capacity)
        logger.debug("Upload limiter initialized", extra={"capacity": capacity})
    elif _upload_limiter.capacity != capacity:
        logger.warning(
            "Upload limiter already initialized; ignoring new capacity",
            extra={"capacity": _upload_limiter.capacity, "requested": capacity},
        )
    return _upload_limiter


def get_upload_limiter() -> ConcurrencyLimiter:
    if _upload_limiter is None:
        raise LimiterNotInitializedError()
    return _upload_limiter
