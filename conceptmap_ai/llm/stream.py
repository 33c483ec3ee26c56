from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

from conceptmap_ai.errors import MalformedFrameError, StreamUnavailableError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

DeltaCallback = Callable[[str], None]


def parse_frame(payload: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError as exc:
        raise MalformedFrameError(f"无法解析流式响应行: {payload[:200]!r}") from exc


def extract_delta(frame: Any) -> str | None:
    """Return `choices[0].delta.content`, or None when the frame has any other shape."""
    if not isinstance(frame, dict):
        return None
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0] if isinstance(choices[0], dict) else {}
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamDecoder:
    """
    Incremental decoder for an OpenAI-style `text/event-stream` body.

    Feed raw byte chunks in arrival order. Bytes go through a stateful UTF-8 decoder
    (a multi-byte character may be split across chunks), are appended to one text
    buffer, and every complete line is sliced out and handled before `feed` returns:

    - lines not starting with `data: ` (blank lines, `: comments`, `event:`, `id:`) are ignored
    - `data: [DONE]` moves the decoder to its terminal state; later lines are never parsed
    - any other payload is parsed as JSON; unparsable payloads are logged and dropped
    - a non-empty `choices[0].delta.content` is passed to `on_delta` and accumulated

    Only the unterminated tail of the buffer is kept between calls.
    """

    def __init__(self, on_delta: DeltaCallback) -> None:
        self._on_delta = on_delta
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: list[str] = []
        self.done = False

    @property
    def full_text(self) -> str:
        return "".join(self._parts)

    @property
    def pending(self) -> str:
        """Unterminated text waiting for its newline."""
        return self._buffer

    def feed(self, chunk: bytes) -> bool:
        """Consume one chunk. Returns True once the sentinel has been seen."""
        if self.done:
            return True
        self._buffer += self._utf8.decode(chunk)
        self._drain()
        return self.done

    def finish(self) -> str:
        """Flush a trailing frame that lacks its newline, then return the full text."""
        if not self.done:
            self._buffer += self._utf8.decode(b"", final=True)
            if self._buffer.strip():
                self._buffer += "\n"
                self._drain()
            self.done = True
        self._buffer = ""
        return self.full_text

    def _drain(self) -> None:
        buf = self._buffer
        start = 0
        while not self.done:
            end = buf.find("\n", start)
            if end == -1:
                break
            line = buf[start:end].strip()
            start = end + 1
            self._handle_line(line)
        self._buffer = "" if self.done else buf[start:]

    def _handle_line(self, line: str) -> None:
        if not line.startswith(DATA_PREFIX):
            return
        payload = line[len(DATA_PREFIX) :]
        if payload == DONE_SENTINEL:
            self.done = True
            return

        try:
            frame = parse_frame(payload)
        except MalformedFrameError as exc:
            logger.debug("%s", exc)
            return

        if isinstance(frame, dict) and frame.get("error"):
            # OpenRouter reports mid-stream provider failures this way.
            logger.warning("流式响应包含错误帧: %s", frame["error"])

        delta = extract_delta(frame)
        if delta:
            self._on_delta(delta)
            self._parts.append(delta)


def decode_stream(source: Iterable[bytes] | None, on_delta: DeltaCallback) -> str:
    """Drive a `StreamDecoder` over a blocking byte source. The source is closed on every exit."""
    if source is None:
        raise StreamUnavailableError("响应体不可读")
    decoder = StreamDecoder(on_delta)
    chunks = iter(source)
    try:
        for chunk in chunks:
            if decoder.feed(chunk):
                break
        return decoder.finish()
    finally:
        close = getattr(chunks, "close", None)
        if close is not None:
            close()


async def adecode_stream(source: AsyncIterable[bytes] | None, on_delta: DeltaCallback) -> str:
    """Async twin of `decode_stream`; suspends only while waiting for the next chunk."""
    if source is None:
        raise StreamUnavailableError("响应体不可读")
    decoder = StreamDecoder(on_delta)
    chunks = aiter(source)
    try:
        async for chunk in chunks:
            if decoder.feed(chunk):
                break
        return decoder.finish()
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
