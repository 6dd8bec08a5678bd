"""Tests for the SSE streaming aggregator."""

import json

import pytest

from halogw.core.errors import ProviderError
from halogw.llm.schemas import ChoiceDelta, SSEChunk, StreamChoice, Usage
from halogw.streaming.aggregator import DONE_FRAME, SSEAggregator, StreamState, sse_frame


def chunk(content=None, finish_reason=None, usage=None) -> SSEChunk:
    return SSEChunk(
        id="chatcmpl-1",
        created=1700000000,
        model="gpt-4o",
        choices=[StreamChoice(delta=ChoiceDelta(content=content), finish_reason=finish_reason)],
        usage=usage,
    )


async def source(chunks, error=None):
    for c in chunks:
        yield c
    if error is not None:
        raise error


def parse(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


class TestSSEAggregator:
    async def test_hello_world(self):
        chunks = [chunk("Hello"), chunk(" "), chunk("world"), chunk("!"), chunk(finish_reason="stop")]
        aggregator = SSEAggregator()

        frames = [f async for f in aggregator.stream(source(chunks), "req_1")]

        assert len(frames) == len(chunks) + 2
        assert frames[: len(chunks)] == [sse_frame(c) for c in chunks]

        final = parse(frames[-2])
        assert final["id"] == "req_1"
        assert final["choices"][0]["delta"]["content"] == "Hello world!"
        assert final["choices"][0]["finish_reason"] == "stop"
        assert final["halo_metadata"]["chunks_count"] == 5
        assert final["halo_metadata"]["latency_ms"] >= 0

        assert frames[-1] == DONE_FRAME
        assert frames.count(DONE_FRAME) == 1
        assert aggregator.state is StreamState.DONE
        assert aggregator.aggregated_content == "Hello world!"
        assert len(aggregator.chunks) == 5

    async def test_frames_are_compact_json_without_nulls(self):
        frames = [f async for f in SSEAggregator().stream(source([chunk("Hi")]))]
        first = parse(frames[0])
        assert "usage" not in first
        assert "halo_metadata" not in first
        assert "finish_reason" not in first["choices"][0]

    async def test_finish_reason_defaults_to_stop(self):
        frames = [f async for f in SSEAggregator().stream(source([chunk("a")]))]
        assert parse(frames[-2])["choices"][0]["finish_reason"] == "stop"

    async def test_last_finish_reason_wins(self):
        chunks = [chunk("a", finish_reason="tool_calls"), chunk(finish_reason="length")]
        frames = [f async for f in SSEAggregator().stream(source(chunks))]
        assert parse(frames[-2])["choices"][0]["finish_reason"] == "length"

    async def test_last_usage_block_is_preferred(self):
        chunks = [
            chunk("a", usage=Usage(prompt_tokens=10, completion_tokens=1, total_tokens=11)),
            chunk("b", usage=Usage(prompt_tokens=10, completion_tokens=2, total_tokens=12, reasoning_tokens=4)),
        ]
        frames = [f async for f in SSEAggregator().stream(source(chunks))]
        usage = parse(frames[-2])["usage"]
        assert usage == {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12, "reasoning_tokens": 4}

    async def test_usage_falls_back_to_maxima(self):
        chunks = [
            chunk("a", usage=Usage(prompt_tokens=7, completion_tokens=3, total_tokens=10)),
            chunk(finish_reason="stop"),
        ]
        frames = [f async for f in SSEAggregator().stream(source(chunks))]
        usage = parse(frames[-2])["usage"]
        assert usage["prompt_tokens"] == 7
        assert usage["completion_tokens"] == 3
        assert usage["total_tokens"] == 10

    async def test_usage_only_chunk_without_choices(self):
        chunks = [chunk("x"), SSEChunk(id="chatcmpl-1", usage=Usage(prompt_tokens=1, completion_tokens=1, total_tokens=2))]
        aggregator = SSEAggregator()
        frames = [f async for f in aggregator.stream(source(chunks))]
        assert aggregator.aggregated_content == "x"
        assert parse(frames[-2])["usage"]["total_tokens"] == 2

    async def test_empty_source(self):
        frames = [f async for f in SSEAggregator().stream(source([]), "req_empty")]
        assert len(frames) == 2
        final = parse(frames[0])
        assert final["choices"][0]["delta"]["content"] == ""
        assert final["halo_metadata"]["chunks_count"] == 0
        assert frames[1] == DONE_FRAME

    async def test_source_error_stops_without_done(self):
        aggregator = SSEAggregator()
        frames = []
        with pytest.raises(ProviderError):
            async for frame in aggregator.stream(source([chunk("partial")], ProviderError("backend died"))):
                frames.append(frame)

        assert frames == [sse_frame(chunk("partial"))]
        assert aggregator.state is StreamState.STREAMING
