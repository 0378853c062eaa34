"""Fan-out limits shared by bootstrap discovery and convergence dispatch."""

import asyncio
import contextlib
from typing import Any

DEFAULT_MAX_CONCURRENCY = 10


def concurrency_limit(max_concurrency: int | None) -> Any:
    """
    Return an async context manager admitting ``max_concurrency`` holders.

    ``None`` or ``0`` means unbounded. Must be called inside the event loop
    that will use it.
    """
    if not max_concurrency:
        return contextlib.nullcontext()
    if max_concurrency < 0:
        raise ValueError("max_concurrency must be >= 0")
    return asyncio.Semaphore(max_concurrency)
