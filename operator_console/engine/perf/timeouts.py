from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class PerfTimeoutError(TimeoutError):
    """Raised when a performance timeout is exceeded."""


def elapsed_ms(start_ts: float) -> int:
    return int((time.monotonic() - start_ts) * 1000)


async def enforce_timeout(
    coro_fn: Callable[[], Awaitable[T]],
    timeout_ms: Optional[int],
) -> T:
    if not timeout_ms:
        return await coro_fn()
    try:
        return await asyncio.wait_for(coro_fn(), timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError as exc:  # noqa: PERF203
        raise PerfTimeoutError(f"operation exceeded {timeout_ms} ms") from exc


__all__ = ["PerfTimeoutError", "elapsed_ms", "enforce_timeout"]
