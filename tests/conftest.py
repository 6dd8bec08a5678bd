"""Test fixtures for halogw."""

from __future__ import annotations

import base64
from typing import AsyncIterator

import pytest

from halogw.core.config import Settings
from halogw.core.provider_config import ProviderEnvironment
from halogw.core.service import GatewayService
from halogw.llm.base import map_chunk, map_response
from halogw.llm.registry import get_model_capabilities
from halogw.llm.schemas import ChatCompletionResponse, ChatRequest, SSEChunk
from halogw.llm.types import ModelCapabilities, ProviderConfig, ProviderRequest

# 1x1 transparent PNG
PNG_BASE64 = base64.b64encode(
    bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
        "1f15c4890000000d49444154789c6360000002000001e221bc330000000049454e44ae426082"
    )
).decode()

DEFAULT_RESPONSE = {
    "id": "chatcmpl-test",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello!"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8},
}


def text_chunks(*parts: str, finish_reason: str = "stop", model: str = "gpt-4o") -> list[dict]:
    """Raw provider chunks streaming ``parts`` then a finish chunk."""
    chunks = [
        {
            "id": "chatcmpl-stream",
            "created": 1700000000,
            "model": model,
            "choices": [{"index": 0, "delta": {"content": part}, "finish_reason": None}],
        }
        for part in parts
    ]
    chunks.append({
        "id": "chatcmpl-stream",
        "created": 1700000000,
        "model": model,
        "choices": [{"index": 0, "delta": {}, "finish_reason": finish_reason}],
    })
    return chunks


class StubAdapter:
    """Provider adapter that records calls and replays canned payloads."""

    def __init__(
        self,
        name: str = "azure-openai",
        response: dict | None = None,
        chunks: list[dict] | None = None,
        error: Exception | None = None,
        fail_after: int | None = None,
    ):
        self.name = name
        self._response = response or DEFAULT_RESPONSE
        self._chunks = chunks if chunks is not None else text_chunks("Hello", "!")
        self._error = error
        self._fail_after = fail_after
        self.built: list[tuple[ChatRequest, ProviderConfig]] = []
        self.calls: list[ProviderRequest] = []
        self.closed = False

    def build_request(self, request: ChatRequest, config: ProviderConfig) -> ProviderRequest:
        self.built.append((request, config))
        return {
            "model": config.deployment or config.model or request.model,
            "messages": [m.model_dump(exclude_none=True) for m in request.messages],
            "stream": request.stream,
        }

    async def execute_json(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> ChatCompletionResponse:
        self.calls.append(provider_request)
        if self._error is not None:
            raise self._error
        return map_response(self._response)

    async def execute_stream(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> AsyncIterator[SSEChunk]:
        self.calls.append(provider_request)
        for i, chunk in enumerate(self._chunks):
            if self._error is not None and self._fail_after is not None and i == self._fail_after:
                raise self._error
            yield map_chunk(chunk)
        if self._error is not None and self._fail_after is None:
            raise self._error

    def get_capabilities(self, model: str) -> ModelCapabilities | None:
        return get_model_capabilities(model)

    def validate_request(self, request: ChatRequest) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def provider_env():
    return ProviderEnvironment.from_mapping({
        "AZURE_OPENAI_ENDPOINT": "https://halo-test.openai.azure.com/",
        "AZURE_OPENAI_API_KEY": "azure-key",
        "OPENAI_API_KEY": "sk-test",
        "AZURE_FOUNDRY_ENDPOINT": "https://foundry-test.inference.ai.azure.com",
        "AZURE_FOUNDRY_API_KEY": "foundry-key",
    })


@pytest.fixture
def settings():
    return Settings(default_provider="azure-openai", default_model="gpt-5-nano", api_key="")


@pytest.fixture
def stub_adapter():
    return StubAdapter()


@pytest.fixture
def service(settings, provider_env, stub_adapter):
    return GatewayService(
        settings=settings,
        environment=provider_env,
        adapters={"azure-openai": stub_adapter},
    )
