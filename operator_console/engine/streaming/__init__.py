from operator_console.engine.streaming.errors import (
    DEFAULT_QUOTA_DESCRIPTION,
    QuotaExceededError,
    RejectionKind,
    StreamInterruptedError,
    TransportRejection,
    classify_rejection,
    is_quota_rejection,
)
from operator_console.engine.streaming.frames import (
    ChunkSource,
    CompletionMarker,
    ContentDelta,
    DecodeFault,
    FrameEvent,
    FrameParser,
    SessionAssigned,
    StreamFailure,
    ThinkingSignal,
    WizardStepMarker,
    iter_frames,
)
from operator_console.engine.streaming.transport import StreamTransport, TurnStream

__all__ = [
    "DEFAULT_QUOTA_DESCRIPTION",
    "QuotaExceededError",
    "RejectionKind",
    "StreamInterruptedError",
    "TransportRejection",
    "classify_rejection",
    "is_quota_rejection",
    "ChunkSource",
    "CompletionMarker",
    "ContentDelta",
    "DecodeFault",
    "FrameEvent",
    "FrameParser",
    "SessionAssigned",
    "StreamFailure",
    "ThinkingSignal",
    "WizardStepMarker",
    "iter_frames",
    "StreamTransport",
    "TurnStream",
]
