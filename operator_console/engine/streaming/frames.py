"""
Frame parser for the chat backend's event stream.

The response body is newline-delimited text. A line that starts with the
frame prefix (``data:``) carries exactly one JSON payload; blank and
unprefixed lines are ignored. Chunks may split a line anywhere, so the
parser keeps the unterminated tail as carry-over until the next chunk.

A parser instance belongs to one turn. Once ``finish()`` has flushed the
carry-over it refuses further input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional, Protocol, Union

from pydantic import ValidationError

from operator_console.engine.chat_contract import FramePayload

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
MAX_FAULT_SAMPLE_CHARS = 80


@dataclass(frozen=True)
class ThinkingSignal:
    pass


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class SessionAssigned:
    session_id: str


@dataclass(frozen=True)
class WizardStepMarker:
    step: str


@dataclass(frozen=True)
class StreamFailure:
    message: str


@dataclass(frozen=True)
class CompletionMarker:
    pass


@dataclass(frozen=True)
class DecodeFault:
    sample: str
    reason: str


FrameEvent = Union[
    ThinkingSignal,
    ContentDelta,
    SessionAssigned,
    WizardStepMarker,
    StreamFailure,
    CompletionMarker,
    DecodeFault,
]


class ChunkSource(Protocol):
    async def pull(self) -> Optional[str]:
        ...


def events_from_payload(payload: FramePayload) -> List[FrameEvent]:
    events: List[FrameEvent] = []
    if payload.session_id is not None and str(payload.session_id).strip():
        events.append(SessionAssigned(session_id=str(payload.session_id).strip()))
    if payload.thinking:
        events.append(ThinkingSignal())
    if payload.wizard_step:
        events.append(WizardStepMarker(step=payload.wizard_step))
    if payload.content:
        events.append(ContentDelta(text=payload.content))
    if payload.error is not None:
        events.append(StreamFailure(message=payload.error or "stream error"))
    if payload.done:
        events.append(CompletionMarker())
    return events


class FrameParser:
    def __init__(
        self,
        prefix: str = "data:",
        *,
        on_fault: Optional[Callable[[DecodeFault], None]] = None,
    ) -> None:
        self.prefix = prefix
        self._on_fault = on_fault
        self._carry = ""
        self._finished = False
        self.decode_faults = 0
        self.frames_decoded = 0

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: str) -> List[FrameEvent]:
        if self._finished:
            raise RuntimeError("frame parser already finished; create a new parser per turn")
        if not chunk:
            return []
        buffer = self._carry + chunk
        lines = buffer.split("\n")
        self._carry = lines.pop()
        events: List[FrameEvent] = []
        for line in lines:
            events.extend(self._decode_line(line))
        return events

    def finish(self) -> List[FrameEvent]:
        if self._finished:
            return []
        self._finished = True
        tail, self._carry = self._carry, ""
        return self._decode_line(tail)

    def _decode_line(self, line: str) -> List[FrameEvent]:
        line = line.rstrip("\r")
        if not line.strip() or not line.startswith(self.prefix):
            return []
        raw = line[len(self.prefix):].strip()
        if not raw or raw == DONE_SENTINEL:
            return []
        try:
            payload = FramePayload.model_validate_json(raw)
        except ValidationError as exc:
            return [self._fault(raw, exc)]
        self.frames_decoded += 1
        events = events_from_payload(payload)
        if not events:
            logger.debug("[FRAME] payload carried no recognized keys")
        return events

    def _fault(self, raw: str, exc: ValidationError) -> DecodeFault:
        self.decode_faults += 1
        errors = exc.errors()
        reason = errors[0].get("type", "invalid") if errors else "invalid"
        fault = DecodeFault(sample=raw[:MAX_FAULT_SAMPLE_CHARS], reason=str(reason))
        logger.warning("[FRAME] dropped malformed frame", extra={"reason": fault.reason, "faults": self.decode_faults})
        if self._on_fault is not None:
            self._on_fault(fault)
        return fault


async def iter_frames(source: ChunkSource, parser: FrameParser) -> AsyncIterator[FrameEvent]:
    """Yield decoded events in arrival order until the source reports end of stream."""
    while True:
        chunk = await source.pull()
        if chunk is None:
            break
        for event in parser.feed(chunk):
            yield event
    for event in parser.finish():
        yield event


__all__ = [
    "DONE_SENTINEL",
    "ThinkingSignal",
    "ContentDelta",
    "SessionAssigned",
    "WizardStepMarker",
    "StreamFailure",
    "CompletionMarker",
    "DecodeFault",
    "FrameEvent",
    "ChunkSource",
    "FrameParser",
    "events_from_payload",
    "iter_frames",
]
