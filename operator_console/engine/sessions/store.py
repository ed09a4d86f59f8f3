"""
Session store: conversation identities and their confirmed messages.

The engine reads the active session id from here and threads it through
every turn. A fresh conversation has no id until the backend assigns one
on its first turn; ``adopt_session_id`` records that assignment exactly once.
Switching threads afterwards only happens through ``activate_session`` or
``create_session``, which the engine refuses while a turn is in flight.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from operator_console.engine.errors import SessionConflictError
from operator_console.engine.schemas import Message, SessionIdentity

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, SessionIdentity] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._active_id: Optional[str] = None

    # ------------------------
    # Engine boundary
    # ------------------------
    def get_active_session_id(self) -> Optional[str]:
        return self._active_id

    def adopt_session_id(self, session_id: str) -> SessionIdentity:
        sid = _normalize_id(session_id)
        if self._active_id == sid:
            return self._sessions[sid]
        if self._active_id is not None:
            raise SessionConflictError(
                f"cannot adopt session {sid!r}: session {self._active_id!r} is already active"
            )
        identity = self._sessions.get(sid) or SessionIdentity(id=sid)
        self._sessions[sid] = identity
        self._messages.setdefault(sid, [])
        self._set_active(sid)
        logger.info("[SESSION] adopted", extra={"session_id": sid})
        return identity

    def append_confirmed_turn(self, session_id: str, user_message: Message, assistant_message: Message) -> None:
        sid = _normalize_id(session_id)
        if sid not in self._sessions:
            raise SessionConflictError(f"session {sid!r} was never adopted")
        if user_message.author_is_assistant or not assistant_message.author_is_assistant:
            raise ValueError("confirmed turn must be (user, assistant)")
        if user_message.session_id != sid or assistant_message.session_id != sid:
            raise SessionConflictError("confirmed messages belong to a different session")
        log = self._messages.setdefault(sid, [])
        log.append(user_message)
        log.append(assistant_message)

    # ------------------------
    # Surrounding UI operations
    # ------------------------
    def create_session(self, session_id: str, title: Optional[str] = None, *, activate: bool = True) -> SessionIdentity:
        sid = _normalize_id(session_id)
        identity = self._sessions.get(sid)
        if identity is None:
            identity = SessionIdentity(id=sid, title=title)
            self._sessions[sid] = identity
        elif title:
            identity.title = title
        self._messages.setdefault(sid, [])
        if activate:
            self._set_active(sid)
        return identity

    def activate_session(self, session_id: str) -> SessionIdentity:
        sid = _normalize_id(session_id)
        if sid not in self._sessions:
            raise KeyError(f"unknown session {sid!r}")
        self._set_active(sid)
        return self._sessions[sid]

    def clear_active(self) -> None:
        self._active_id = None
        for identity in self._sessions.values():
            identity.is_active = False

    def list_sessions(self) -> List[SessionIdentity]:
        return list(self._sessions.values())

    def get_session(self, session_id: str) -> Optional[SessionIdentity]:
        return self._sessions.get(_normalize_id(session_id))

    def messages_for(self, session_id: str, *, include_hidden: bool = False) -> Tuple[Message, ...]:
        log = self._messages.get(_normalize_id(session_id), [])
        if include_hidden:
            return tuple(log)
        return tuple(m for m in log if not m.hidden)

    def replace_sessions(self, identities: Iterable[SessionIdentity]) -> None:
        for identity in identities:
            existing = self._sessions.get(identity.id)
            if existing is None:
                self._sessions[identity.id] = SessionIdentity(id=identity.id, title=identity.title)
                self._messages.setdefault(identity.id, [])
            elif identity.title:
                existing.title = identity.title
        if self._active_id is not None:
            self._set_active(self._active_id)

    def load_messages(self, session_id: str, messages: Iterable[Message]) -> None:
        sid = _normalize_id(session_id)
        if sid not in self._sessions:
            self._sessions[sid] = SessionIdentity(id=sid)
        loaded = list(messages)
        for message in loaded:
            if message.session_id != sid:
                raise SessionConflictError("loaded message belongs to a different session")
        self._messages[sid] = loaded

    def _set_active(self, sid: str) -> None:
        self._active_id = sid
        for key, identity in self._sessions.items():
            identity.is_active = key == sid


def _normalize_id(session_id: object) -> str:
    sid = str(session_id).strip() if session_id is not None else ""
    if not sid:
        raise ValueError("session id must not be empty")
    return sid


__all__ = ["SessionStore"]
