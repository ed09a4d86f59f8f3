from __future__ import annotations

from .request_id import new_request_id
from .logging import configure_logging, safe_redact, structured_log
from .metrics import counter, event, histogram

__all__ = [
    "new_request_id",
    "configure_logging",
    "structured_log",
    "safe_redact",
    "counter",
    "histogram",
    "event",
]
