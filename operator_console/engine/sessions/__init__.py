from operator_console.engine.sessions.store import SessionStore
from operator_console.engine.sessions.api import SessionApi, SessionApiError, default_session_title

__all__ = ["SessionStore", "SessionApi", "SessionApiError", "default_session_title"]
