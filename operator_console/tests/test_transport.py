import asyncio
import json

import httpx
import pytest

from conftest import make_settings, sse

from operator_console.engine.chat_contract import TurnRequest
from operator_console.engine.perf import build_async_client
from operator_console.engine.streaming import (
    DEFAULT_QUOTA_DESCRIPTION,
    QuotaExceededError,
    RejectionKind,
    StreamInterruptedError,
    StreamTransport,
    TransportRejection,
    classify_rejection,
)


def _transport(handler, **env):
    settings = make_settings(**env)
    client = build_async_client(settings, transport=httpx.MockTransport(handler))
    return StreamTransport(client, settings=settings)


async def _drain(stream):
    chunks = []
    while True:
        chunk = await stream.pull()
        if chunk is None:
            return chunks
        chunks.append(chunk)


def test_open_turn_posts_wire_body_and_streams_chunks():
    seen = {}

    async def body():
        yield sse({"content": "Hi"}).encode()
        yield sse({"done": True, "sessionId": 3}).encode()

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["json"] = json.loads(request.content)
        seen["request_id"] = request.headers.get("x-request-id")
        seen["accept"] = request.headers.get("accept")
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

    transport = _transport(handler)
    request = TurnRequest(text="  hello  ", session_id="12", hidden=True, wizard_step="generating")

    async def _run():
        stream = await transport.open_turn(request, request_id="rid-1")
        chunks = await _drain(stream)
        return stream, chunks

    stream, chunks = asyncio.run(_run())

    assert seen["url"] == "http://localhost:5000/api/chat/messages"
    assert seen["json"] == {"message": "hello", "sessionId": 12, "hidden": True, "wizardStep": "generating"}
    assert seen["request_id"] == "rid-1"
    assert "text/event-stream" in seen["accept"]
    assert "".join(chunks) == sse({"content": "Hi"}, {"done": True, "sessionId": 3})
    assert stream.closed
    assert stream.chunks_read == 2
    assert stream.request_id == "rid-1"


def test_first_turn_omits_session_id_and_optional_fields():
    seen = {}

    def handler(request):
        seen["json"] = json.loads(request.content)
        return httpx.Response(200, content=b"")

    transport = _transport(handler)

    async def _run():
        stream = await transport.open_turn(TurnRequest(text="hi"))
        await stream.aclose()

    asyncio.run(_run())
    assert seen["json"] == {"message": "hi"}


def test_quota_rejection_is_distinct():
    def handler(request):
        return httpx.Response(403, json={"error": "AI message limit reached", "requiresUpgrade": True})

    transport = _transport(handler)
    with pytest.raises(QuotaExceededError) as info:
        asyncio.run(transport.open_turn(TurnRequest(text="hi")))
    assert info.value.kind == RejectionKind.QUOTA
    assert info.value.status_code == 403
    assert info.value.description == "AI message limit reached"


@pytest.mark.parametrize(
    "status, body, kind",
    [
        (401, {"error": "Not authenticated"}, RejectionKind.AUTH),
        (403, {"error": "Forbidden"}, RejectionKind.AUTH),
        (500, {"message": "Internal error"}, RejectionKind.SERVER),
        (400, None, RejectionKind.SERVER),
    ],
)
def test_other_rejections_are_not_quota(status, body, kind):
    def handler(request):
        if body is None:
            return httpx.Response(status, content=b"not json")
        return httpx.Response(status, json=body)

    transport = _transport(handler)
    with pytest.raises(TransportRejection) as info:
        asyncio.run(transport.open_turn(TurnRequest(text="hi")))
    assert not isinstance(info.value, QuotaExceededError)
    assert info.value.kind == kind
    assert info.value.status_code == status


def test_connection_failure_is_network_rejection():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)
    with pytest.raises(TransportRejection) as info:
        asyncio.run(transport.open_turn(TurnRequest(text="hi")))
    assert info.value.kind == RejectionKind.NETWORK
    assert info.value.status_code is None


def test_mid_stream_disconnect_raises_interrupted():
    async def body():
        yield sse({"content": "part"}).encode()
        raise httpx.ReadError("connection reset")

    transport = _transport(lambda request: httpx.Response(200, content=body()))

    async def _run():
        stream = await transport.open_turn(TurnRequest(text="hi"))
        first = await stream.pull()
        with pytest.raises(StreamInterruptedError):
            await stream.pull()
        return stream, first

    stream, first = asyncio.run(_run())
    assert first == sse({"content": "part"})
    assert stream.closed


def test_aclose_is_idempotent_and_stops_pulling():
    async def body():
        yield sse({"content": "a"}).encode()
        yield sse({"content": "b"}).encode()

    transport = _transport(lambda request: httpx.Response(200, content=body()))

    async def _run():
        stream = await transport.open_turn(TurnRequest(text="hi"))
        await stream.pull()
        await stream.aclose()
        await stream.aclose()
        return await stream.pull()

    assert asyncio.run(_run()) is None


@pytest.mark.parametrize(
    "status, body",
    [
        (402, b""),
        (429, b'{"error": "Daily quota exhausted"}'),
        (403, b'{"message": "Upgrade your plan to continue"}'),
        (403, b'{"error": "nope", "requiresPayment": true}'),
    ],
)
def test_classify_rejection_quota_signals(status, body):
    rejection = classify_rejection(status, body)
    assert isinstance(rejection, QuotaExceededError)
    assert rejection.description


def test_quota_without_body_gets_default_description():
    assert classify_rejection(402, None).description == DEFAULT_QUOTA_DESCRIPTION


def test_base_url_and_paths_come_from_settings():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, content=b"")

    transport = _transport(
        handler,
        CONSOLE_API_BASE_URL="https://console.example.test/",
        CHAT_MESSAGES_PATH="/v2/messages",
        REQUEST_ID_HEADER="x-trace-id",
    )

    async def _run():
        stream = await transport.open_turn(TurnRequest(text="hi"))
        await stream.aclose()

    asyncio.run(_run())
    assert seen["url"] == "https://console.example.test/v2/messages"


def test_unreadable_rejection_body_is_network_rejection():
    async def body():
        yield b'{"error": "Internal'
        raise httpx.ReadError("connection reset while reading body")

    transport = _transport(lambda request: httpx.Response(500, content=body()))
    with pytest.raises(TransportRejection) as info:
        asyncio.run(transport.open_turn(TurnRequest(text="hi")))
    assert info.value.kind == RejectionKind.NETWORK
    assert info.value.status_code == 500
