"""SSE stream aggregation.

Forwards provider chunks as ``data:`` frames in arrival order, then emits a
synthetic final chunk carrying the full content and usage, then ``[DONE]``.
OpenAI-compatible consumers expect that last content-complete frame and
backend streams rarely deliver accurate aggregate usage on their own.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import AsyncIterable, AsyncIterator

from halogw.llm.schemas import ChoiceDelta, HaloMetadata, SSEChunk, StreamChoice, Usage

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


class StreamState(str, Enum):
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"


def sse_frame(chunk: SSEChunk) -> str:
    return f"data: {chunk.model_dump_json(exclude_none=True)}\n\n"


class SSEAggregator:
    """Single-use wrapper around one provider stream."""

    def __init__(self):
        self._chunks: list[SSEChunk] = []
        self._content: list[str] = []
        self._finish_reason: str | None = None
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._reasoning_tokens = 0
        self._started = time.monotonic()
        self._state = StreamState.STREAMING

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def aggregated_content(self) -> str:
        return "".join(self._content)

    @property
    def chunks(self) -> list[SSEChunk]:
        return list(self._chunks)

    async def stream(self, source: AsyncIterable[SSEChunk], request_id: str | None = None) -> AsyncIterator[str]:
        """Yield forwarded frames, the final aggregate frame, then ``[DONE]``.

        Errors from ``source`` propagate; nothing is emitted after them.
        """
        async for chunk in source:
            self._observe(chunk)
            yield sse_frame(chunk)

        self._state = StreamState.FINALIZING
        final = self.build_final_chunk(request_id)
        logger.debug(
            "Stream finished: %d chunks, %d chars, finish_reason=%s",
            len(self._chunks),
            sum(len(c) for c in self._content),
            self._finish_reason,
        )
        yield sse_frame(final)

        self._state = StreamState.DONE
        yield DONE_FRAME

    def _observe(self, chunk: SSEChunk) -> None:
        self._chunks.append(chunk)

        if chunk.choices:
            choice = chunk.choices[0]
            if isinstance(choice.delta.content, str):
                self._content.append(choice.delta.content)
            if choice.finish_reason:
                self._finish_reason = choice.finish_reason

        if chunk.usage is not None:
            self._prompt_tokens = max(self._prompt_tokens, chunk.usage.prompt_tokens)
            self._completion_tokens = max(self._completion_tokens, chunk.usage.completion_tokens)
            self._reasoning_tokens = max(self._reasoning_tokens, chunk.usage.reasoning_tokens or 0)

    def build_final_chunk(self, request_id: str | None = None) -> SSEChunk:
        last = self._chunks[-1] if self._chunks else None
        return SSEChunk(
            id=request_id or (last.id if last and last.id else str(uuid.uuid4())),
            created=last.created if last else int(time.time()),
            model=last.model if last else "",
            choices=[
                StreamChoice(
                    index=0,
                    delta=ChoiceDelta(content=self.aggregated_content),
                    finish_reason=self._finish_reason or "stop",
                )
            ],
            usage=self._final_usage(last),
            halo_metadata=HaloMetadata(
                chunks_count=len(self._chunks),
                latency_ms=int((time.monotonic() - self._started) * 1000),
            ),
        )

    def _final_usage(self, last: SSEChunk | None) -> Usage:
        reasoning = self._reasoning_tokens or None
        if last is not None and last.usage is not None:
            # Last block wins field by field; zeros fall back to the running maxima
            usage = last.usage
            return Usage(
                prompt_tokens=usage.prompt_tokens or self._prompt_tokens,
                completion_tokens=usage.completion_tokens or self._completion_tokens,
                total_tokens=usage.total_tokens or self._prompt_tokens + self._completion_tokens,
                reasoning_tokens=usage.reasoning_tokens or reasoning,
            )
        return Usage(
            prompt_tokens=self._prompt_tokens,
            completion_tokens=self._completion_tokens,
            total_tokens=self._prompt_tokens + self._completion_tokens,
            reasoning_tokens=reasoning,
        )
