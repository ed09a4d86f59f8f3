import asyncio

import pytest

from conftest import FakeStream, frame, split_every, sse

from operator_console.engine.streaming import (
    CompletionMarker,
    ContentDelta,
    DecodeFault,
    FrameParser,
    SessionAssigned,
    StreamFailure,
    ThinkingSignal,
    WizardStepMarker,
    iter_frames,
)


def _collect(chunks, parser=None):
    parser = parser or FrameParser()

    async def _run():
        return [e async for e in iter_frames(FakeStream(chunks), parser)]

    return asyncio.run(_run())


def test_single_chunk_decodes_all_frames_in_order():
    body = sse({"thinking": True}, {"content": "Hel"}, {"content": "lo"}, {"done": True, "sessionId": 7})
    events = _collect([body])
    assert events == [
        ThinkingSignal(),
        ContentDelta("Hel"),
        ContentDelta("lo"),
        SessionAssigned("7"),
        CompletionMarker(),
    ]


def test_frames_split_across_arbitrary_chunk_boundaries():
    body = sse({"content": "alpha"}, {"content": "beta"}, {"content": "gamma"})
    for size in (1, 2, 3, 7, 13):
        events = _collect(split_every(body, size))
        assert [e.text for e in events] == ["alpha", "beta", "gamma"], size


def test_carry_over_is_kept_until_line_completes():
    parser = FrameParser()
    assert parser.feed('data: {"content": "par') == []
    assert parser.feed('tial"}') == []
    assert parser.feed("\n") == [ContentDelta("partial")]


def test_malformed_line_does_not_abort_following_frames():
    faults = []
    parser = FrameParser(on_fault=faults.append)
    body = frame({"content": "one"}) + "data: {not json}\n\n" + frame({"content": "two"})
    events = _collect([body], parser)

    assert [e for e in events if isinstance(e, ContentDelta)] == [ContentDelta("one"), ContentDelta("two")]
    assert len(faults) == 1
    assert isinstance(faults[0], DecodeFault)
    assert parser.decode_faults == 1
    assert parser.frames_decoded == 2


def test_wrong_typed_payload_is_a_decode_fault():
    parser = FrameParser()
    events = parser.feed('data: {"content": 5}\n')
    assert len(events) == 1 and isinstance(events[0], DecodeFault)


def test_done_sentinel_blank_and_unprefixed_lines_are_ignored():
    body = ": keep-alive\n\nevent: message\n" + frame({"content": "x"}) + "data: [DONE]\n\n"
    assert _collect([body]) == [ContentDelta("x")]


def test_crlf_line_endings():
    body = 'data: {"content": "a"}\r\n\r\ndata: {"content": "b"}\r\n'
    assert _collect([body]) == [ContentDelta("a"), ContentDelta("b")]


def test_trailing_line_without_newline_is_flushed_at_end_of_stream():
    assert _collect(['data: {"content": "tail"}']) == [ContentDelta("tail")]


def test_payload_keys_applied_in_fixed_order():
    parser = FrameParser()
    events = parser.feed(frame({"done": True, "error": "boom", "content": "c", "wizardStep": "generating", "thinking": True, "sessionId": "s1"}))
    assert events == [
        SessionAssigned("s1"),
        ThinkingSignal(),
        WizardStepMarker("generating"),
        ContentDelta("c"),
        StreamFailure("boom"),
        CompletionMarker(),
    ]


def test_empty_content_is_not_a_content_event():
    parser = FrameParser()
    assert parser.feed(frame({"content": ""})) == []


def test_custom_prefix():
    parser = FrameParser(prefix="evt:")
    assert parser.feed('evt: {"content": "x"}\ndata: {"content": "y"}\n') == [ContentDelta("x")]


def test_parser_is_not_restartable():
    parser = FrameParser()
    parser.finish()
    with pytest.raises(RuntimeError):
        parser.feed(frame({"content": "late"}))
