from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from operator_console.engine.chat_contract import MessageRecord, SessionRecord
from operator_console.engine.config import Settings, get_settings, safe_error_detail
from operator_console.engine.perf import build_async_client
from operator_console.engine.schemas import Message, SessionIdentity, utc_now

logger = logging.getLogger(__name__)


class SessionApiError(Exception):
    """Raised when a session endpoint fails or answers with an unexpected shape."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def default_session_title(now: Optional[datetime] = None) -> str:
    return f"Chat {(now or datetime.now()).strftime('%H:%M:%S')}"


def _identity(record: SessionRecord) -> SessionIdentity:
    return SessionIdentity(id=str(record.id), is_active=record.is_active, title=record.title)


def _message(record: MessageRecord) -> Message:
    return Message(
        id=str(record.id),
        session_id=str(record.session_id),
        author_is_assistant=record.is_ai,
        body=record.message,
        timestamp=record.timestamp or utc_now(),
        hidden=record.hidden,
    )


class SessionApi:
    """Client for the backend's chat session endpoints."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)

    def _path(self, *parts: str) -> str:
        return "/".join([self._settings.chat_sessions_path.rstrip("/"), *parts])

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise SessionApiError(
                f"{method} {path} failed with status {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SessionApiError(f"{method} {path} failed: {safe_error_detail(exc)}") from exc
        except ValueError as exc:
            raise SessionApiError(f"{method} {path} returned non-JSON response") from exc

    async def list_sessions(self) -> List[SessionIdentity]:
        data = await self._request("GET", self._path())
        if not isinstance(data, list):
            raise SessionApiError("session list must be a JSON array")
        try:
            return [_identity(SessionRecord.model_validate(item)) for item in data]
        except ValidationError as exc:
            raise SessionApiError("session list entry has an unexpected shape") from exc

    async def create_session(self, title: Optional[str] = None) -> SessionIdentity:
        data = await self._request("POST", self._path("new"), json={"title": title or default_session_title()})
        # the backend has answered both with the bare session and wrapped in {"session": ...}
        raw = data.get("session") if isinstance(data, dict) and isinstance(data.get("session"), dict) else data
        try:
            record = SessionRecord.model_validate(raw)
        except ValidationError as exc:
            raise SessionApiError("created session has an unexpected shape") from exc
        identity = _identity(record)
        identity.is_active = True
        logger.info("[SESSION] created", extra={"session_id": identity.id})
        return identity

    async def activate_session(self, session_id: str) -> None:
        await self._request("POST", self._path(str(session_id), "activate"), json={})

    async def list_messages(self, session_id: str) -> List[Message]:
        data = await self._request("GET", self._path(str(session_id), "messages"))
        if not isinstance(data, list):
            raise SessionApiError("message list must be a JSON array")
        try:
            return [_message(MessageRecord.model_validate(item)) for item in data]
        except ValidationError as exc:
            raise SessionApiError("message entry has an unexpected shape") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["SessionApi", "SessionApiError", "default_session_title"]
