from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import httpx

from operator_console.engine.chat_contract import TurnRequest
from operator_console.engine.config import Settings, get_settings, safe_error_detail
from operator_console.engine.observability import new_request_id
from operator_console.engine.perf import build_async_client
from operator_console.engine.streaming.errors import (
    RejectionKind,
    StreamInterruptedError,
    TransportRejection,
    classify_rejection,
)

logger = logging.getLogger(__name__)


class TurnStream:
    """Pull-based reader over one streaming response body."""

    def __init__(self, response: httpx.Response, *, request_id: str) -> None:
        self._response = response
        self._chunks: Optional[AsyncIterator[str]] = None
        self._closed = False
        self.request_id = request_id
        self.chunks_read = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def pull(self) -> Optional[str]:
        """Return the next text chunk, or None once the stream has ended or was closed."""
        if self._closed:
            return None
        if self._chunks is None:
            self._chunks = self._response.aiter_text()
        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                await self.aclose()
                return None
            except httpx.HTTPError as exc:
                await self.aclose()
                raise StreamInterruptedError(safe_error_detail(exc)) from exc
            if chunk:
                self.chunks_read += 1
                return chunk

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        chunks, self._chunks = self._chunks, None
        try:
            if chunks is not None and hasattr(chunks, "aclose"):
                await chunks.aclose()
        finally:
            await self._response.aclose()

    async def __aenter__(self) -> "TurnStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class StreamTransport:
    """Opens one turn against the chat backend. Never retries."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)

    async def open_turn(self, request: TurnRequest, *, request_id: Optional[str] = None) -> TurnStream:
        rid = new_request_id(request_id)
        headers = {self._settings.request_id_header: rid}
        http_request = self._client.build_request(
            "POST",
            self._settings.chat_messages_path,
            json=request.to_wire(),
            headers=headers,
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("[TURN] transport failed before response", extra={"request_id": rid})
            raise TransportRejection(safe_error_detail(exc), kind=RejectionKind.NETWORK) from exc

        if response.status_code >= 400:
            try:
                body = await response.aread()
            except httpx.HTTPError as exc:
                logger.warning(
                    "[TURN] rejection body unreadable",
                    extra={"request_id": rid, "status_code": response.status_code},
                )
                raise TransportRejection(
                    safe_error_detail(exc), status_code=response.status_code, kind=RejectionKind.NETWORK
                ) from exc
            finally:
                await response.aclose()
            rejection = classify_rejection(response.status_code, body)
            logger.info(
                "[TURN] rejected",
                extra={"request_id": rid, "status_code": response.status_code, "kind": rejection.kind.value},
            )
            raise rejection

        return TurnStream(response, request_id=rid)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["TurnStream", "StreamTransport"]
