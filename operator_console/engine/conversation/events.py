from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple, Union

from operator_console.engine.conversation.state import TurnStatus
from operator_console.engine.failures import TurnFailure
from operator_console.engine.schemas import Message, TranscriptEntry
from operator_console.engine.ux import UserNotice


@dataclass(frozen=True)
class StatusChanged:
    previous: TurnStatus
    status: TurnStatus
    hidden: bool = False


@dataclass(frozen=True)
class AccumulatorUpdated:
    """One content delta. ``length`` is the accumulated size including it."""

    delta: str
    length: int
    hidden: bool = False


@dataclass(frozen=True)
class TurnCommitted:
    session_id: str
    user_message: Message
    assistant_message: Message


@dataclass(frozen=True)
class TurnFailed:
    failure: TurnFailure
    notice: UserNotice
    hidden: bool = False


@dataclass(frozen=True)
class SessionAdopted:
    session_id: str


@dataclass(frozen=True)
class TranscriptChanged:
    entries: Tuple[TranscriptEntry, ...]


@dataclass(frozen=True)
class WizardMarkerReceived:
    step: str


EngineEvent = Union[
    StatusChanged,
    AccumulatorUpdated,
    TurnCommitted,
    TurnFailed,
    SessionAdopted,
    TranscriptChanged,
    WizardMarkerReceived,
]

EngineListener = Callable[[EngineEvent], None]


__all__ = [
    "StatusChanged",
    "AccumulatorUpdated",
    "TurnCommitted",
    "TurnFailed",
    "SessionAdopted",
    "TranscriptChanged",
    "WizardMarkerReceived",
    "EngineEvent",
    "EngineListener",
]
