"""
ConversationEngine: one owned instance per conversation surface.

A turn runs as a single coroutine. Everything up to the provisional insert
happens before its first ``await``, so two submissions can never both pass
the in-flight guard. After that the transport pull is the only suspension
point; each decoded frame is applied to the state machine, the accumulator
and the session store synchronously.

Recoverable outcomes (rejections, stream errors, empty replies, timeouts)
are returned as a ``TurnOutcome`` with status ``errored``. Invariant
violations raise ``EngineInvariantError`` subclasses.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from operator_console.engine.chat_contract import TurnRequest
from operator_console.engine.config import Settings, get_settings, redact_secrets, safe_error_detail
from operator_console.engine.config.redaction import MAX_DETAIL_CHARS
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
from operator_console.engine.conversation.reconciler import OptimisticReconciler
from operator_console.engine.conversation.state import (
    AccumulatorOverflowError,
    StreamingAccumulator,
    TurnStateMachine,
    TurnStatus,
)
from operator_console.engine.errors import EngineInvariantError, TurnInFlightError
from operator_console.engine.failures import TurnFailure, TurnFailureKind, failure_from_rejection
from operator_console.engine.observability import counter, event, histogram, new_request_id
from operator_console.engine.perf import PerfTimeoutError, elapsed_ms, enforce_timeout
from operator_console.engine.schemas import Attachment, Message, SessionIdentity, TranscriptEntry, utc_now
from operator_console.engine.sessions import SessionApi, SessionStore
from operator_console.engine.streaming import (
    CompletionMarker,
    ContentDelta,
    DecodeFault,
    FrameEvent,
    FrameParser,
    SessionAssigned,
    StreamFailure,
    StreamInterruptedError,
    StreamTransport,
    ThinkingSignal,
    TransportRejection,
    WizardStepMarker,
    iter_frames,
)
from operator_console.engine.ux import UserNotice, build_notice

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_DESCRIPTION = "The assistant returned an empty reply."
DECODE_FAULT_DESCRIPTION = "The assistant reply could not be read."
MISSING_SESSION_DESCRIPTION = "The backend did not assign a conversation."


@dataclass(frozen=True)
class TurnOutcome:
    status: TurnStatus
    request_id: str
    hidden: bool
    session_id: Optional[str] = None
    assistant_text: str = ""
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None
    failure: Optional[TurnFailure] = None
    notice: Optional[UserNotice] = None
    decode_faults: int = 0
    wizard_steps: Tuple[str, ...] = ()

    @property
    def settled(self) -> bool:
        return self.status == TurnStatus.SETTLED

    @property
    def errored(self) -> bool:
        return self.status == TurnStatus.ERRORED


@dataclass
class _Turn:
    request: TurnRequest
    request_id: str
    hidden: bool
    submitted_at: datetime
    started_ts: float
    accumulator: StreamingAccumulator
    client_id: Optional[str] = None
    decode_faults: int = 0
    completed: bool = False
    wizard_steps: List[str] = field(default_factory=list)


def _new_message_id() -> str:
    return uuid.uuid4().hex


class ConversationEngine:
    def __init__(
        self,
        transport: StreamTransport,
        store: Optional[SessionStore] = None,
        *,
        reconciler: Optional[OptimisticReconciler] = None,
        settings: Optional[Settings] = None,
        session_api: Optional[SessionApi] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._store = store or SessionStore()
        self._reconciler = reconciler or OptimisticReconciler()
        self._session_api = session_api
        self._owns_session_api = False
        self._machine = TurnStateMachine(on_change=self._on_status)
        self._turn: Optional[_Turn] = None
        self._listeners: List[EngineListener] = []

    # ------------------------
    # Observable state
    # ------------------------
    @property
    def status(self) -> TurnStatus:
        return self._machine.status

    @property
    def accumulator_text(self) -> str:
        return self._turn.accumulator.text if self._turn is not None else ""

    @property
    def transcript(self) -> Tuple[TranscriptEntry, ...]:
        return self._reconciler.entries

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def turn_in_flight(self) -> bool:
        return self._turn is not None

    @property
    def active_session_id(self) -> Optional[str]:
        return self._store.get_active_session_id()

    def subscribe(self, listener: EngineListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------
    # Turns
    # ------------------------
    async def submit_turn(
        self,
        text: str,
        *,
        hidden: bool = False,
        attachments: Sequence[Attachment] = (),
        wizard_step: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> TurnOutcome:
        if self._turn is not None or not self._machine.is_idle:
            raise TurnInFlightError("a turn is already in flight for this conversation")

        request = TurnRequest(
            text=text,
            session_id=self._store.get_active_session_id(),
            hidden=hidden,
            attachments=[asdict(a) for a in attachments],
            wizard_step=wizard_step,
        )
        limit = self._settings.max_user_text_chars
        if not hidden and limit and len(request.text) > limit:
            raise ValueError(f"message exceeds {limit} characters")

        turn = _Turn(
            request=request,
            request_id=new_request_id(),
            hidden=hidden,
            submitted_at=utc_now(),
            started_ts=time.monotonic(),
            accumulator=StreamingAccumulator(self._settings.max_accumulator_chars),
        )
        if not hidden:
            turn.client_id = self._reconciler.submit(request.text)
        self._turn = turn
        if not hidden:
            self._emit_transcript()
        self._machine.begin()
        # thinking is the default pre-content state; the backend may hold its headers for the whole model call
        self._machine.mark_thinking()
        logger.info(
            "[TURN] submitted",
            extra={
                "request_id": turn.request_id,
                "hidden": hidden,
                "text_len": len(request.text),
                "attachments": len(request.attachments),
                "has_session": request.session_id is not None,
            },
        )

        budget = timeout_ms if timeout_ms is not None else self._settings.turn_timeout
        try:
            return await enforce_timeout(lambda: self._run_turn(turn), budget)
        except PerfTimeoutError:
            return self._fail(turn, TurnFailure(TurnFailureKind.TIMEOUT, f"No reply within {budget} ms."))
        except asyncio.CancelledError:
            self._fail(turn, TurnFailure(TurnFailureKind.CANCELLED, "The turn was cancelled."))
            raise
        except EngineInvariantError:
            self._abandon(turn)
            raise
        except Exception as exc:
            logger.warning(
                "[TURN] unexpected failure",
                extra={"request_id": turn.request_id, "error_type": type(exc).__name__},
            )
            return self._fail(turn, TurnFailure(TurnFailureKind.STREAM_ERROR, safe_error_detail(exc)))

    async def _run_turn(self, turn: _Turn) -> TurnOutcome:
        try:
            stream = await self._transport.open_turn(turn.request, request_id=turn.request_id)
        except TransportRejection as exc:
            return self._fail(turn, failure_from_rejection(exc))

        parser = FrameParser(self._settings.frame_prefix, on_fault=self._on_decode_fault)
        frames = iter_frames(stream, parser)
        try:
            async for frame in frames:
                failure = self._apply(turn, frame)
                if failure is not None:
                    return self._fail(turn, failure)
        except StreamInterruptedError as exc:
            return self._fail(
                turn,
                TurnFailure(
                    TurnFailureKind.STREAM_ERROR,
                    exc.description[:MAX_DETAIL_CHARS],
                    rejection_kind=exc.kind,
                ),
            )
        finally:
            turn.decode_faults = parser.decode_faults
            await frames.aclose()
            await stream.aclose()
        return self._finish(turn)

    def _apply(self, turn: _Turn, frame: FrameEvent) -> Optional[TurnFailure]:
        if isinstance(frame, SessionAssigned):
            self._adopt(frame.session_id)
        elif isinstance(frame, ThinkingSignal):
            self._machine.mark_thinking()
        elif isinstance(frame, WizardStepMarker):
            turn.wizard_steps.append(frame.step)
            self._emit(WizardMarkerReceived(step=frame.step))
        elif isinstance(frame, ContentDelta):
            try:
                length = turn.accumulator.append(frame.text)
            except AccumulatorOverflowError as exc:
                return TurnFailure(TurnFailureKind.RESPONSE_TOO_LARGE, str(exc))
            self._machine.receive_content()
            self._emit(AccumulatorUpdated(delta=frame.text, length=length, hidden=turn.hidden))
        elif isinstance(frame, StreamFailure):
            return TurnFailure(TurnFailureKind.STREAM_ERROR, redact_secrets(frame.message)[:MAX_DETAIL_CHARS])
        elif isinstance(frame, CompletionMarker):
            turn.completed = True
        elif isinstance(frame, DecodeFault):
            pass
        return None

    def _adopt(self, session_id: str) -> None:
        previous = self._store.get_active_session_id()
        self._store.adopt_session_id(session_id)
        if previous is None:
            adopted = self._store.get_active_session_id() or session_id
            event("session.adopted", {"session_id": adopted})
            self._emit(SessionAdopted(session_id=adopted))

    def _finish(self, turn: _Turn) -> TurnOutcome:
        if self._machine.content_events == 0:
            if turn.decode_faults:
                failure = TurnFailure(TurnFailureKind.DECODE_FAULT, DECODE_FAULT_DESCRIPTION)
            else:
                failure = TurnFailure(TurnFailureKind.EMPTY_RESPONSE, EMPTY_RESPONSE_DESCRIPTION)
            return self._fail(turn, failure)

        session_id = self._store.get_active_session_id()
        if session_id is None:
            return self._fail(turn, TurnFailure(TurnFailureKind.PROTOCOL_ERROR, MISSING_SESSION_DESCRIPTION))

        user_message = Message(
            id=_new_message_id(),
            session_id=session_id,
            author_is_assistant=False,
            body=turn.request.text,
            timestamp=turn.submitted_at,
            hidden=turn.hidden,
        )
        assistant_message = Message(
            id=_new_message_id(),
            session_id=session_id,
            author_is_assistant=True,
            body=turn.accumulator.text,
            timestamp=utc_now(),
            hidden=turn.hidden,
        )

        self._machine.settle()
        self._store.append_confirmed_turn(session_id, user_message, assistant_message)
        if turn.client_id is not None:
            self._reconciler.confirm(turn.client_id, user_message, assistant_message)
            self._emit_transcript()
        self._emit(TurnCommitted(session_id=session_id, user_message=user_message, assistant_message=assistant_message))

        latency = elapsed_ms(turn.started_ts)
        counter("turn.settled", labels={"hidden": str(turn.hidden).lower()})
        histogram("turn.latency_ms", latency, labels={"outcome": "settled"})
        logger.info(
            "[TURN] settled",
            extra={
                "request_id": turn.request_id,
                "session_id": session_id,
                "reply_len": len(assistant_message.body),
                "decode_faults": turn.decode_faults,
                "done_marker": turn.completed,
                "latency_ms": latency,
            },
        )

        outcome = TurnOutcome(
            status=TurnStatus.SETTLED,
            request_id=turn.request_id,
            hidden=turn.hidden,
            session_id=session_id,
            assistant_text=assistant_message.body,
            user_message=user_message,
            assistant_message=assistant_message,
            decode_faults=turn.decode_faults,
            wizard_steps=tuple(turn.wizard_steps),
        )
        self._release()
        return outcome

    def _fail(self, turn: _Turn, failure: TurnFailure) -> TurnOutcome:
        notice = build_notice(failure)
        outcome = TurnOutcome(
            status=TurnStatus.ERRORED,
            request_id=turn.request_id,
            hidden=turn.hidden,
            session_id=self._store.get_active_session_id(),
            failure=failure,
            notice=notice,
            decode_faults=turn.decode_faults,
            wizard_steps=tuple(turn.wizard_steps),
        )
        if self._turn is not turn:
            # already settled or failed; a late timeout changes nothing
            return outcome

        turn.accumulator.discard()
        self._machine.fail()
        if turn.client_id is not None:
            self._reconciler.rollback(turn.client_id)
            self._emit_transcript()
        self._emit(TurnFailed(failure=failure, notice=notice, hidden=turn.hidden))

        latency = elapsed_ms(turn.started_ts)
        counter("turn.errored", labels={"kind": failure.kind.value})
        histogram("turn.latency_ms", latency, labels={"outcome": "errored"})
        logger.info(
            "[TURN] errored",
            extra={
                "request_id": turn.request_id,
                "failure_kind": failure.kind.value,
                "status_code": failure.status_code,
                "latency_ms": latency,
            },
        )
        self._release()
        return outcome

    def _abandon(self, turn: _Turn) -> None:
        """Release a turn that hit an invariant violation, so the engine stays usable."""
        if self._turn is not turn:
            return
        logger.error("[TURN] invariant violated", extra={"request_id": turn.request_id})
        turn.accumulator.discard()
        if turn.client_id is not None and self._reconciler.provisional is not None:
            self._reconciler.rollback(turn.client_id)
            self._emit_transcript()
        if self._machine.status not in (TurnStatus.IDLE, TurnStatus.SETTLED, TurnStatus.ERRORED):
            self._machine.fail()
        self._release()

    def _release(self) -> None:
        self._machine.reset()
        self._turn = None

    def _on_decode_fault(self, fault: DecodeFault) -> None:
        counter("frame.decode_fault", labels={"reason": fault.reason})

    # ------------------------
    # Sessions
    # ------------------------
    def _require_idle(self, action: str) -> None:
        if self._turn is not None:
            raise TurnInFlightError(f"cannot {action} while a turn is in flight")

    def _api(self) -> SessionApi:
        if self._session_api is None:
            self._session_api = SessionApi(settings=self._settings)
            self._owns_session_api = True
        return self._session_api

    def new_conversation(self) -> None:
        """Detach from the active session; the next turn lets the backend assign one."""
        self._require_idle("start a new conversation")
        self._store.clear_active()
        self._reconciler.load(())
        self._emit_transcript()

    async def start_new_session(self, title: Optional[str] = None) -> SessionIdentity:
        self._require_idle("start a new session")
        identity = await self._api().create_session(title)
        self._require_idle("start a new session")
        created = self._store.create_session(identity.id, identity.title, activate=True)
        self._reconciler.load(())
        self._emit_transcript()
        self._emit(SessionAdopted(session_id=created.id))
        return created

    async def activate_session(self, session_id: str) -> Tuple[Message, ...]:
        self._require_idle("switch sessions")
        api = self._api()
        await api.activate_session(session_id)
        messages = await api.list_messages(session_id)
        self._require_idle("switch sessions")
        sid = str(session_id)
        if self._store.get_session(sid) is None:
            self._store.create_session(sid, activate=False)
        self._store.load_messages(sid, messages)
        self._store.activate_session(sid)
        return self._show(sid)

    async def refresh_sessions(self) -> List[SessionIdentity]:
        identities = await self._api().list_sessions()
        self._store.replace_sessions(identities)
        if self._turn is None and self._store.get_active_session_id() is None:
            remote_active = next((i for i in identities if i.is_active), None)
            if remote_active is not None:
                self._store.activate_session(remote_active.id)
                logger.info("[SESSION] resumed active session", extra={"session_id": remote_active.id})
        return self._store.list_sessions()

    async def load_history(self, session_id: Optional[str] = None) -> Tuple[Message, ...]:
        sid = session_id or self._store.get_active_session_id()
        if sid is None:
            return ()
        self._require_idle("load history")
        messages = await self._api().list_messages(sid)
        self._require_idle("load history")
        self._store.load_messages(sid, messages)
        if sid == self._store.get_active_session_id():
            return self._show(sid)
        return self._store.messages_for(sid)

    def _show(self, session_id: str) -> Tuple[Message, ...]:
        visible = self._store.messages_for(session_id)
        self._reconciler.load(visible)
        self._emit_transcript()
        return visible

    async def aclose(self) -> None:
        if self._owns_session_api and self._session_api is not None:
            await self._session_api.aclose()

    # ------------------------
    # Notifications
    # ------------------------
    def _on_status(self, previous: TurnStatus, status: TurnStatus) -> None:
        hidden = self._turn.hidden if self._turn is not None else False
        self._emit(StatusChanged(previous=previous, status=status, hidden=hidden))

    def _emit_transcript(self) -> None:
        self._emit(TranscriptChanged(entries=self._reconciler.entries))

    def _emit(self, engine_event: EngineEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(engine_event)
            except Exception:
                logger.exception("[TURN] listener failed", extra={"event": type(engine_event).__name__})


__all__ = ["ConversationEngine", "TurnOutcome"]
