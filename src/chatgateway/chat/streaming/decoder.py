"""Split provider response bodies into frames and frames into events."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, AsyncGenerator, AsyncIterable, Iterable, Iterator

from .types import CancellationToken, Complete, CompleteReason, StreamEvent

if TYPE_CHECKING:
    from ...providers.base import FrameParser

logger = logging.getLogger(__name__)

_SSE_DATA_PREFIX = "data: "
_SSE_DONE = "[DONE]"


class Framing(str, enum.Enum):
    NDJSON = "ndjson"
    SSE = "sse"


class FrameDecoder:
    """Incremental line splitter for NDJSON and ``data:``-framed SSE bodies.

    Bytes are buffered until a newline arrives, so chunk boundaries (including
    ones that fall inside a multi-byte UTF-8 sequence) never change the output.
    """

    def __init__(self, framing: Framing) -> None:
        self._framing = Framing(framing)
        self._buffer = bytearray()
        self.done = False

    @property
    def framing(self) -> Framing:
        return self._framing

    def feed(self, chunk: bytes) -> list[str]:
        if self.done or not chunk:
            return []
        self._buffer.extend(chunk)
        frames: list[str] = []
        while not self.done:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            frame = self._handle_line(raw)
            if frame is not None:
                frames.append(frame)
        if self.done:
            self._buffer.clear()
        return frames

    def flush(self) -> list[str]:
        """Emit whatever is left once the body ends without a final newline."""

        if self.done or not self._buffer:
            self._buffer.clear()
            return []
        raw = bytes(self._buffer)
        self._buffer.clear()
        frame = self._handle_line(raw)
        return [frame] if frame is not None else []

    def _handle_line(self, raw: bytes) -> str | None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if self._framing is Framing.NDJSON:
            return line if line.strip() else None

        if not line.startswith(_SSE_DATA_PREFIX):
            return None
        payload = line[len(_SSE_DATA_PREFIX) :]
        if payload.strip() == _SSE_DONE:
            self.done = True
            return None
        return payload


def decode_frames(chunks: Iterable[bytes], framing: Framing) -> Iterator[str]:
    """Lazily decode an in-memory sequence of byte chunks."""

    decoder = FrameDecoder(framing)
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.flush()


async def aiter_frames(
    chunks: AsyncIterable[bytes],
    framing: Framing,
    cancel_token: CancellationToken | None = None,
) -> AsyncGenerator[str, None]:
    """Decode a streamed body, stopping early once cancellation is requested."""

    decoder = FrameDecoder(framing)
    async for chunk in chunks:
        if cancel_token is not None and cancel_token.cancelled:
            return
        for frame in decoder.feed(chunk):
            if cancel_token is not None and cancel_token.cancelled:
                return
            yield frame
        if decoder.done:
            return
    for frame in decoder.flush():
        yield frame


async def aiter_events(
    chunks: AsyncIterable[bytes],
    framing: Framing,
    parser: "FrameParser",
    cancel_token: CancellationToken | None = None,
) -> AsyncGenerator[StreamEvent, None]:
    """Yield normalized events in frame order.

    Cancellation never raises here: a synthetic ``Complete(cancelled)`` is
    yielded instead so that whatever the caller already applied survives.
    """

    frame_count = 0
    async for frame in aiter_frames(chunks, framing, cancel_token):
        frame_count += 1
        for event in parser.parse(frame):
            if cancel_token is not None and cancel_token.cancelled:
                break
            yield event
        if cancel_token is not None and cancel_token.cancelled:
            break

    logger.debug("Stream ended after %d frame(s)", frame_count)
    if cancel_token is not None and cancel_token.cancelled:
        yield Complete(CompleteReason.CANCELLED)


__all__ = [
    "Framing",
    "FrameDecoder",
    "aiter_events",
    "aiter_frames",
    "decode_frames",
]
