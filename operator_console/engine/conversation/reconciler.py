from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Tuple

from operator_console.engine.errors import InvalidTransitionError, TurnInFlightError
from operator_console.engine.schemas import Message, ProvisionalMessage, TranscriptEntry, new_client_id

logger = logging.getLogger(__name__)

TranscriptListener = Callable[[Tuple[TranscriptEntry, ...]], None]


class OptimisticReconciler:
    """Owns the visible transcript and its single provisional slot.

    Every mutation swaps in a new tuple, so readers only ever observe the
    transcript before or after a replace, never half-way through it.
    """

    def __init__(self, on_change: Optional[TranscriptListener] = None) -> None:
        self._entries: Tuple[TranscriptEntry, ...] = ()
        self._provisional: Optional[ProvisionalMessage] = None
        self._on_change = on_change

    @property
    def entries(self) -> Tuple[TranscriptEntry, ...]:
        return self._entries

    @property
    def provisional(self) -> Optional[ProvisionalMessage]:
        return self._provisional

    def submit(self, body: str) -> str:
        if self._provisional is not None:
            raise TurnInFlightError("a provisional message is already in flight")
        provisional = ProvisionalMessage(client_id=new_client_id(), body=body)
        self._provisional = provisional
        self._publish(self._entries + (provisional,))
        return provisional.client_id

    def confirm(self, client_id: str, user_message: Message, assistant_message: Message) -> None:
        provisional = self._take(client_id)
        if user_message.author_is_assistant or not assistant_message.author_is_assistant:
            raise ValueError("confirmed pair must be (user, assistant)")
        entries = list(self._entries)
        index = entries.index(provisional)
        entries[index:index + 1] = [user_message, assistant_message]
        self._publish(tuple(entries))

    def rollback(self, client_id: str) -> None:
        provisional = self._take(client_id)
        self._publish(tuple(e for e in self._entries if e is not provisional))

    def load(self, messages: Iterable[Message]) -> None:
        if self._provisional is not None:
            raise TurnInFlightError("cannot replace the transcript while a message is provisional")
        self._publish(tuple(messages))

    def _take(self, client_id: str) -> ProvisionalMessage:
        provisional = self._provisional
        if provisional is None or provisional.client_id != client_id:
            raise InvalidTransitionError(f"no provisional message {client_id!r} in flight")
        self._provisional = None
        return provisional

    def _publish(self, entries: Tuple[TranscriptEntry, ...]) -> None:
        self._entries = entries
        if self._on_change is not None:
            self._on_change(entries)


__all__ = ["OptimisticReconciler", "TranscriptListener"]
