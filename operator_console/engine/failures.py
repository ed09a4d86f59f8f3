from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from operator_console.engine.config.redaction import MAX_DETAIL_CHARS
from operator_console.engine.streaming.errors import QuotaExceededError, RejectionKind, TransportRejection


class TurnFailureKind(str, Enum):
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    REJECTED = "REJECTED"
    STREAM_ERROR = "STREAM_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    DECODE_FAULT = "DECODE_FAULT"
    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    RESPONSE_TOO_LARGE = "RESPONSE_TOO_LARGE"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class TurnFailure:
    kind: TurnFailureKind
    description: str
    status_code: Optional[int] = None
    rejection_kind: Optional[RejectionKind] = None

    @property
    def is_quota(self) -> bool:
        return self.kind == TurnFailureKind.QUOTA_EXCEEDED


def failure_from_rejection(rejection: TransportRejection) -> TurnFailure:
    if isinstance(rejection, QuotaExceededError) or rejection.kind == RejectionKind.QUOTA:
        kind = TurnFailureKind.QUOTA_EXCEEDED
    else:
        kind = TurnFailureKind.REJECTED
    return TurnFailure(
        kind=kind,
        description=rejection.description[:MAX_DETAIL_CHARS],
        status_code=rejection.status_code,
        rejection_kind=rejection.kind,
    )


__all__ = ["TurnFailureKind", "TurnFailure", "failure_from_rejection"]
