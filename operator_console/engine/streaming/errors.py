from __future__ import annotations

import json
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from operator_console.engine.chat_contract import RejectionBody

DEFAULT_QUOTA_DESCRIPTION = "AI message limit reached"
_QUOTA_MARKERS = ("limit", "quota", "upgrade")


class RejectionKind(str, Enum):
    QUOTA = "QUOTA"
    AUTH = "AUTH"
    SERVER = "SERVER"
    NETWORK = "NETWORK"
    PROTOCOL = "PROTOCOL"


class TransportRejection(Exception):
    """Raised when the backend refuses a turn or the connection fails."""

    def __init__(
        self,
        description: str,
        *,
        kind: RejectionKind = RejectionKind.SERVER,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.kind = kind
        self.status_code = status_code


class QuotaExceededError(TransportRejection):
    """The account ran out of AI messages; callers show an upgrade prompt."""

    def __init__(self, description: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        super().__init__(description or DEFAULT_QUOTA_DESCRIPTION, kind=RejectionKind.QUOTA, status_code=status_code)


class StreamInterruptedError(TransportRejection):
    """The connection broke after the response started streaming."""

    def __init__(self, description: str) -> None:
        super().__init__(description, kind=RejectionKind.NETWORK)


def _parse_body(body: Union[bytes, str, None]) -> RejectionBody:
    if not body:
        return RejectionBody()
    try:
        raw = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        data = json.loads(raw)
        if isinstance(data, dict):
            return RejectionBody.model_validate(data)
    except (ValueError, ValidationError):
        pass
    return RejectionBody()


def is_quota_rejection(status_code: int, body: RejectionBody) -> bool:
    if status_code == 402:
        return True
    if body.signals_upgrade:
        return True
    if status_code in {403, 429}:
        text = (body.description or "").lower()
        return any(marker in text for marker in _QUOTA_MARKERS)
    return False


def classify_rejection(status_code: int, body: Union[bytes, str, None] = None) -> TransportRejection:
    parsed = _parse_body(body)
    if is_quota_rejection(status_code, parsed):
        return QuotaExceededError(parsed.description, status_code=status_code)
    description = parsed.description or f"request rejected with status {status_code}"
    if status_code in {401, 403}:
        return TransportRejection(description, kind=RejectionKind.AUTH, status_code=status_code)
    return TransportRejection(description, kind=RejectionKind.SERVER, status_code=status_code)


__all__ = [
    "DEFAULT_QUOTA_DESCRIPTION",
    "RejectionKind",
    "TransportRejection",
    "QuotaExceededError",
    "StreamInterruptedError",
    "is_quota_rejection",
    "classify_rejection",
]
