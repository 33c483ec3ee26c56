import logging

import pytest
from conftest import delta_frame, sse

from conceptmap_ai.errors import MalformedFrameError, StreamUnavailableError
from conceptmap_ai.llm.stream import (
    StreamDecoder,
    adecode_stream,
    decode_stream,
    extract_delta,
    parse_frame,
)


class TrackedSource:
    """Byte source that records whether the consumer released it."""

    def __init__(self, chunks, *, fail_after=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.read = 0
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.fail_after is not None and self.read >= self.fail_after:
            raise ConnectionResetError("peer reset")
        if self.read >= len(self.chunks):
            raise StopIteration
        chunk = self.chunks[self.read]
        self.read += 1
        return chunk

    def close(self):
        self.closed = True


def collect(chunks):
    seen: list[str] = []
    full = decode_stream(chunks, seen.append)
    return seen, full


# ── Scenarios ─────────────────────────────────────────────────────────────────


def test_deltas_across_reads_are_delivered_in_order():
    chunks = [
        b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
        b'data: {"choices":[{"delta":{"content":"lo"}}]}\ndata: [DONE]\n',
    ]
    seen, full = collect(chunks)
    assert seen == ["Hel", "lo"]
    assert full == "Hello"


def test_return_value_is_concatenation_of_callbacks():
    body = sse(delta_frame("概念"), delta_frame(" map"), delta_frame("!"), "[DONE]")
    # Re-chunk at awkward offsets, including inside JSON and inside "data: ".
    chunks = [body[i : i + 7] for i in range(0, len(body), 7)]
    seen, full = collect(chunks)
    assert seen == ["概念", " map", "!"]
    assert "".join(seen) == full


def test_multibyte_character_split_across_chunks():
    body = sse(delta_frame("光场"))
    cut = body.index("光".encode("utf-8")) + 1  # inside the 3-byte sequence
    seen, full = collect([body[:cut], body[cut:]])
    assert seen == ["光场"]
    assert full == "光场"
    assert "\ufffd" not in full


def test_malformed_frame_between_good_frames_is_skipped(caplog):
    caplog.set_level(logging.DEBUG, logger="conceptmap_ai.llm.stream")
    chunks = [
        sse(delta_frame("a")),
        b"data: {not json\n",
        sse(delta_frame("b")),
    ]
    seen, full = collect(chunks)
    assert seen == ["a", "b"]
    assert full == "ab"
    assert "无法解析流式响应行" in caplog.text


def test_done_stops_processing_of_later_lines_in_same_chunk():
    chunk = sse(delta_frame("first"), "[DONE]", delta_frame("never"))
    seen, full = collect([chunk])
    assert seen == ["first"]
    assert full == "first"


def test_done_stops_reading_further_chunks():
    source = TrackedSource([sse(delta_frame("x"), "[DONE]"), sse(delta_frame("y"))])
    seen: list[str] = []
    assert decode_stream(source, seen.append) == "x"
    assert seen == ["x"]
    assert source.read == 1
    assert source.closed


def test_final_frame_without_trailing_newline_is_delivered():
    chunks = [sse(delta_frame("a")), ("data: " + delta_frame("tail")).encode("utf-8")]
    seen, full = collect(chunks)
    assert seen == ["a", "tail"]
    assert full == "atail"


def test_crlf_line_endings():
    body = sse(delta_frame("x")).replace(b"\n", b"\r\n")
    assert collect([body]) == (["x"], "x")


# ── Frame filtering ───────────────────────────────────────────────────────────


def test_non_data_lines_are_ignored():
    chunk = (
        b": OPENROUTER PROCESSING\n\n"
        b"event: message\n"
        b"id: 7\n"
        b"data:" + delta_frame("no-space").encode() + b"\n"
        + sse(delta_frame("kept"))
    )
    assert collect([chunk]) == (["kept"], "kept")


@pytest.mark.parametrize(
    "payload",
    [
        "[]",
        "42",
        "null",
        '{"choices": []}',
        '{"choices": [null]}',
        '{"choices": [{"delta": {}}]}',
        '{"choices": [{"delta": {"content": null}}]}',
        '{"choices": [{"delta": {"content": ""}}]}',
        '{"choices": [{"delta": {"content": 5}}]}',
        '{"choices": [{"delta": {"role": "assistant"}}]}',
        '{"id": "gen-1", "usage": {"total_tokens": 3}}',
    ],
)
def test_unexpected_shapes_yield_no_delta(payload):
    seen, full = collect([f"data: {payload}\n".encode()])
    assert seen == []
    assert full == ""


def test_error_frame_is_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING, logger="conceptmap_ai.llm.stream")
    chunk = sse('{"error": {"message": "provider overloaded", "code": 502}}', delta_frame("ok"))
    assert collect([chunk]) == (["ok"], "ok")
    assert "provider overloaded" in caplog.text


def test_empty_chunks_and_blank_stream():
    assert collect([b"", b"\n\n", b""]) == ([], "")
    assert collect([]) == ([], "")


def test_extract_delta_reads_first_choice_only():
    frame = {"choices": [{"delta": {"content": "a"}}, {"delta": {"content": "b"}}]}
    assert extract_delta(frame) == "a"


def test_parse_frame_raises_malformed_frame_error():
    with pytest.raises(MalformedFrameError):
        parse_frame("{oops")


# ── Resource release and errors ───────────────────────────────────────────────


def test_missing_source_is_stream_unavailable():
    with pytest.raises(StreamUnavailableError):
        decode_stream(None, lambda _: None)


def test_source_is_closed_after_natural_end():
    source = TrackedSource([sse(delta_frame("a"))])
    decode_stream(source, lambda _: None)
    assert source.closed


def test_transport_failure_mid_stream_propagates_and_closes_source():
    source = TrackedSource([sse(delta_frame("partial"))], fail_after=1)
    seen: list[str] = []
    with pytest.raises(ConnectionResetError):
        decode_stream(source, seen.append)
    assert seen == ["partial"]
    assert source.closed


def test_callback_error_propagates_and_closes_source():
    source = TrackedSource([sse(delta_frame("a"), delta_frame("b"))])

    def boom(delta):
        raise RuntimeError(f"ui rejected {delta}")

    with pytest.raises(RuntimeError, match="ui rejected a"):
        decode_stream(source, boom)
    assert source.closed


def test_decoder_buffer_keeps_only_partial_tail():
    seen: list[str] = []
    decoder = StreamDecoder(seen.append)
    assert decoder.feed(sse(delta_frame("a")) + b'data: {"choi') is False
    assert decoder.pending == 'data: {"choi'
    decoder.feed(b'ces":[{"delta":{"content":"b"}}]}\n')
    assert decoder.pending == ""
    assert seen == ["a", "b"]
    assert decoder.finish() == "ab"


def test_feed_after_done_is_ignored():
    seen: list[str] = []
    decoder = StreamDecoder(seen.append)
    assert decoder.feed(sse("[DONE]")) is True
    assert decoder.feed(sse(delta_frame("late"))) is True
    assert decoder.finish() == ""
    assert seen == []


# ── Async ─────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_adecode_stream_matches_sync_behavior():
    closed = False

    async def source():
        nonlocal closed
        try:
            yield b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'
            yield b'data: {"choices":[{"delta":{"content":"lo"}}]}\ndata: [DONE]\n'
            yield sse(delta_frame("never"))
        finally:
            closed = True

    seen: list[str] = []
    assert await adecode_stream(source(), seen.append) == "Hello"
    assert seen == ["Hel", "lo"]
    assert closed


@pytest.mark.asyncio
async def test_adecode_stream_missing_source():
    with pytest.raises(StreamUnavailableError):
        await adecode_stream(None, lambda _: None)
