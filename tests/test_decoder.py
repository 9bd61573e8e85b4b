"""Tests for frame decoding across chunk boundaries."""

import json

import pytest

from chatgateway.chat.streaming.decoder import (
    FrameDecoder,
    Framing,
    aiter_events,
    decode_frames,
)
from chatgateway.chat.streaming.types import (
    CancellationToken,
    Complete,
    CompleteReason,
    Token,
)
from chatgateway.providers.ollama import OllamaFrameParser


async def _aiter(chunks):
    for chunk in chunks:
        yield chunk


class TestNdjson:
    def test_splits_frames_on_newlines(self):
        body = b'{"a": 1}\n{"b": 2}\n'
        assert list(decode_frames([body], Framing.NDJSON)) == ['{"a": 1}', '{"b": 2}']

    def test_chunk_boundaries_do_not_matter(self):
        body = '{"text": "héllo wörld"}\n{"text": "✓"}\n'.encode("utf-8")
        whole = list(decode_frames([body], Framing.NDJSON))
        for size in (1, 2, 3, 7):
            chunks = [body[i : i + size] for i in range(0, len(body), size)]
            assert list(decode_frames(chunks, Framing.NDJSON)) == whole
        assert json.loads(whole[1])["text"] == "✓"

    def test_skips_blank_lines_and_strips_carriage_returns(self):
        body = b'{"a": 1}\r\n\r\n   \n{"b": 2}\r\n'
        assert list(decode_frames([body], Framing.NDJSON)) == ['{"a": 1}', '{"b": 2}']

    def test_flushes_trailing_frame_without_newline(self):
        frames = list(decode_frames([b'{"a": 1}\n{"done": true}'], Framing.NDJSON))
        assert frames == ['{"a": 1}', '{"done": true}']

    def test_partial_line_is_buffered_until_complete(self):
        decoder = FrameDecoder(Framing.NDJSON)
        assert decoder.feed(b'{"a": ') == []
        assert decoder.feed(b"1}\n") == ['{"a": 1}']


class TestSse:
    def test_only_data_lines_are_frames(self):
        body = (
            b": keep-alive\n"
            b"event: message\n"
            b'data: {"a": 1}\n'
            b"\n"
            b"id: 7\n"
            b'data: {"b": 2}\n\n'
        )
        assert list(decode_frames([body], Framing.SSE)) == ['{"a": 1}', '{"b": 2}']

    def test_done_sentinel_ends_stream(self):
        body = b'data: {"a": 1}\n\ndata: [DONE]\n\ndata: {"late": true}\n\n'
        decoder = FrameDecoder(Framing.SSE)
        assert decoder.feed(body) == ['{"a": 1}']
        assert decoder.done is True
        assert decoder.feed(b'data: {"more": 1}\n') == []

    def test_data_prefix_split_across_chunks(self):
        chunks = [b"da", b"ta: ", b'{"a"', b": 1}\r", b"\n\n"]
        assert list(decode_frames(chunks, Framing.SSE)) == ['{"a": 1}']

    def test_flushes_residual_data_line(self):
        assert list(decode_frames([b'data: {"a": 1}'], Framing.SSE)) == ['{"a": 1}']


@pytest.mark.asyncio
async def test_aiter_events_preserves_frame_order():
    body = (
        b'{"message": {"content": "Hel"}}\n'
        b'{"message": {"content": "lo"}}\n'
        b'{"done": true, "done_reason": "stop"}\n'
    )
    events = [
        event
        async for event in aiter_events(
            _aiter([body[:10], body[10:]]), Framing.NDJSON, OllamaFrameParser()
        )
    ]
    assert events == [
        Token("Hel"),
        Token("lo"),
        Complete(CompleteReason.NORMAL, "stop"),
    ]


@pytest.mark.asyncio
async def test_aiter_events_skips_malformed_frames():
    body = b'not json\n[1, 2]\n{"message": {"content": "ok"}}\n'
    events = [
        event
        async for event in aiter_events(_aiter([body]), Framing.NDJSON, OllamaFrameParser())
    ]
    assert events == [Token("ok")]


@pytest.mark.asyncio
async def test_cancellation_yields_synthetic_complete():
    token = CancellationToken()

    async def chunks():
        yield b'{"message": {"content": "first"}}\n'
        token.cancel()
        yield b'{"message": {"content": "second"}}\n'

    events = [
        event
        async for event in aiter_events(
            chunks(), Framing.NDJSON, OllamaFrameParser(), token
        )
    ]
    assert events == [Token("first"), Complete(CompleteReason.CANCELLED)]
