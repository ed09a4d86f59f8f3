from __future__ import annotations

import re
from typing import Any, Dict

_SECRET_KEYS = {"authorization", "api_key", "api_token", "token", "secret", "set-cookie", "cookie"}
_BEARER_PATTERN = re.compile(r"(Authorization:\s*Bearer\s+)[^\s]+", re.IGNORECASE)
_API_KEY_PATTERN = re.compile(r"(sk-[A-Za-z0-9]{8,})", re.IGNORECASE)

MAX_DETAIL_CHARS = 200


def redact_secrets(s: str) -> str:
    if not s:
        return s
    redacted = _API_KEY_PATTERN.sub("[redacted]", s)
    redacted = _BEARER_PATTERN.sub(r"\1[redacted]", redacted)
    return redacted


def safe_error_detail(exc: BaseException) -> str:
    text = str(exc) or exc.__class__.__name__
    return redact_secrets(text)[:MAX_DETAIL_CHARS]


def safe_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(d, dict):
        return {}
    return {k: v for k, v in d.items() if str(k).lower() not in _SECRET_KEYS}


__all__ = ["redact_secrets", "safe_error_detail", "safe_dict", "MAX_DETAIL_CHARS"]
