from __future__ import annotations

from typing import Optional

import httpx

from operator_console.engine.config import Settings, get_settings


def build_timeout(settings: Optional[Settings] = None) -> httpx.Timeout:
    s = settings or get_settings()
    # A streaming turn has no engine-internal timeout, so reads default to unbounded
    return httpx.Timeout(None, connect=s.connect_timeout, read=s.read_timeout)


def build_headers(settings: Optional[Settings] = None) -> dict[str, str]:
    s = settings or get_settings()
    headers = {"Accept": "text/event-stream, application/json"}
    if s.api_token:
        headers["Authorization"] = f"Bearer {s.api_token}"
    return headers


def build_async_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    s = settings or get_settings()
    return httpx.AsyncClient(
        base_url=s.api_base_url,
        timeout=build_timeout(s),
        headers=build_headers(s),
        transport=transport,
    )


__all__ = ["build_timeout", "build_headers", "build_async_client"]
