"""
Per-turn status machine and the streaming accumulator.

    idle -> sending -> thinking -> streaming -> settled -> idle
                 \\          \\          \\
                  +----------+----------+--> errored -> idle

`thinking` is the default pre-content state and is left for good on the
first content event: a late thinking signal never brings back the loading
indicator under a partially rendered answer.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from operator_console.engine.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class TurnStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    THINKING = "thinking"
    STREAMING = "streaming"
    SETTLED = "settled"
    ERRORED = "errored"


ALLOWED_TRANSITIONS: Dict[TurnStatus, FrozenSet[TurnStatus]] = {
    TurnStatus.IDLE: frozenset({TurnStatus.SENDING}),
    TurnStatus.SENDING: frozenset({TurnStatus.THINKING, TurnStatus.ERRORED}),
    TurnStatus.THINKING: frozenset({TurnStatus.STREAMING, TurnStatus.ERRORED}),
    TurnStatus.STREAMING: frozenset({TurnStatus.SETTLED, TurnStatus.ERRORED}),
    TurnStatus.SETTLED: frozenset({TurnStatus.IDLE}),
    TurnStatus.ERRORED: frozenset({TurnStatus.IDLE}),
}

StatusListener = Callable[[TurnStatus, TurnStatus], None]


class TurnStateMachine:
    def __init__(self, on_change: Optional[StatusListener] = None) -> None:
        self._status = TurnStatus.IDLE
        self._on_change = on_change
        self._content_events = 0

    @property
    def status(self) -> TurnStatus:
        return self._status

    @property
    def content_events(self) -> int:
        return self._content_events

    @property
    def is_idle(self) -> bool:
        return self._status == TurnStatus.IDLE

    def _move(self, target: TurnStatus) -> None:
        current = self._status
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(f"turn cannot move from {current.value} to {target.value}")
        self._status = target
        if self._on_change is not None:
            self._on_change(current, target)

    def begin(self) -> None:
        self._move(TurnStatus.SENDING)
        self._content_events = 0

    def mark_thinking(self) -> bool:
        """Enter thinking if no content has arrived yet. Returns whether the status changed."""
        if self._status == TurnStatus.SENDING:
            self._move(TurnStatus.THINKING)
            return True
        if self._status == TurnStatus.STREAMING:
            logger.debug("[TURN] late thinking signal ignored")
        return False

    def receive_content(self) -> None:
        if self._status == TurnStatus.SENDING:
            self._move(TurnStatus.THINKING)
        if self._status == TurnStatus.THINKING:
            self._move(TurnStatus.STREAMING)
        elif self._status != TurnStatus.STREAMING:
            raise InvalidTransitionError(f"content cannot arrive while {self._status.value}")
        self._content_events += 1

    def settle(self) -> None:
        if self._content_events == 0:
            raise InvalidTransitionError("a turn without content cannot settle")
        self._move(TurnStatus.SETTLED)

    def fail(self) -> None:
        if self._status == TurnStatus.ERRORED:
            return
        self._move(TurnStatus.ERRORED)

    def reset(self) -> None:
        if self._status == TurnStatus.IDLE:
            return
        self._move(TurnStatus.IDLE)
        self._content_events = 0


class AccumulatorOverflowError(Exception):
    """The assistant message outgrew the configured cap."""


class StreamingAccumulator:
    """Assistant text under construction for one turn. Only ever grows."""

    def __init__(self, max_chars: int = 0) -> None:
        self._parts: List[str] = []
        self._length = 0
        self._max_chars = max_chars
        self._discarded = False

    @property
    def text(self) -> str:
        if len(self._parts) > 1:
            self._parts = ["".join(self._parts)]
        return self._parts[0] if self._parts else ""

    @property
    def length(self) -> int:
        return self._length

    @property
    def discarded(self) -> bool:
        return self._discarded

    def append(self, text: str) -> int:
        """Add one delta and return the new length. The joined text is built only when read."""
        if self._discarded:
            raise InvalidTransitionError("accumulator was discarded")
        if self._max_chars and self._length + len(text) > self._max_chars:
            raise AccumulatorOverflowError(f"assistant message exceeded {self._max_chars} characters")
        self._parts.append(text)
        self._length += len(text)
        return self._length

    def discard(self) -> None:
        self._parts = []
        self._length = 0
        self._discarded = True


__all__ = [
    "TurnStatus",
    "ALLOWED_TRANSITIONS",
    "StatusListener",
    "TurnStateMachine",
    "AccumulatorOverflowError",
    "StreamingAccumulator",
]
