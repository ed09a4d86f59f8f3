from .timeouts import PerfTimeoutError, elapsed_ms, enforce_timeout
from .http_client import build_async_client, build_headers, build_timeout

__all__ = [
    "PerfTimeoutError",
    "elapsed_ms",
    "enforce_timeout",
    "build_async_client",
    "build_headers",
    "build_timeout",
]
