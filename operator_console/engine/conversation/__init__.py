from operator_console.engine.conversation.state import (
    ALLOWED_TRANSITIONS,
    AccumulatorOverflowError,
    StreamingAccumulator,
    TurnStateMachine,
    TurnStatus,
)
from operator_console.engine.conversation.reconciler import OptimisticReconciler
from operator_console.engine.conversation.events import (
    AccumulatorUpdated,
    EngineEvent,
    EngineListener,
    SessionAdopted,
    StatusChanged,
    TranscriptChanged,
    TurnCommitted,
    TurnFailed,
    WizardMarkerReceived,
)
from operator_console.engine.conversation.engine import ConversationEngine, TurnOutcome

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AccumulatorOverflowError",
    "StreamingAccumulator",
    "TurnStateMachine",
    "TurnStatus",
    "OptimisticReconciler",
    "AccumulatorUpdated",
    "EngineEvent",
    "EngineListener",
    "SessionAdopted",
    "StatusChanged",
    "TranscriptChanged",
    "TurnCommitted",
    "TurnFailed",
    "WizardMarkerReceived",
    "ConversationEngine",
    "TurnOutcome",
]
