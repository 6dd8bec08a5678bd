"""Provider adapter interface and the shared OpenAI-compatible implementation."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, AsyncIterator, Protocol

import openai
from pydantic import BaseModel

from halogw.core.errors import GatewayError, ProviderError
from halogw.llm.registry import get_model_capabilities
from halogw.llm.schemas import (
    ChatCompletionResponse,
    ChatMessage,
    ChatRequest,
    Choice,
    ChoiceDelta,
    ImageUrl,
    ImageUrlPart,
    ResponseMessage,
    SSEChunk,
    StreamChoice,
    TextPart,
    Usage,
)
from halogw.llm.task_profiles import NANO_MODEL
from halogw.llm.types import ModelCapabilities, ProviderConfig, ProviderRequest

logger = logging.getLogger(__name__)

# Parameters every OpenAI-compatible backend accepts as-is.
COMMON_PARAMS = (
    "temperature",
    "top_p",
    "max_tokens",
    "max_completion_tokens",
    "response_format",
    "tools",
    "tool_choice",
    "seed",
    "stop",
    "presence_penalty",
    "frequency_penalty",
    "n",
    "user",
)


class ProviderAdapter(Protocol):
    """Protocol that every provider adapter must implement."""

    name: str

    def build_request(self, request: ChatRequest, config: ProviderConfig) -> ProviderRequest: ...

    def execute_stream(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> AsyncIterator[SSEChunk]: ...

    async def execute_json(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> ChatCompletionResponse: ...

    def get_capabilities(self, model: str) -> ModelCapabilities | None: ...

    def validate_request(self, request: ChatRequest) -> bool: ...


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _as_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return dict(obj)


def map_usage(raw: Any) -> Usage | None:
    if raw is None:
        return None
    usage = _as_dict(raw)
    reasoning = usage.get("reasoning_tokens")
    if reasoning is None:
        reasoning = (usage.get("completion_tokens_details") or {}).get("reasoning_tokens")
    return Usage(
        prompt_tokens=usage.get("prompt_tokens") or 0,
        completion_tokens=usage.get("completion_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
        reasoning_tokens=reasoning,
    )


def map_chunk(raw: Any) -> SSEChunk:
    """Convert an SDK ``ChatCompletionChunk`` (or dict) into an SSEChunk."""
    data = _as_dict(raw)
    choices = []
    for choice in data.get("choices") or []:
        delta = choice.get("delta") or {}
        content = delta.get("content")
        choices.append(
            StreamChoice(
                index=choice.get("index") or 0,
                delta=ChoiceDelta(
                    role=delta.get("role"),
                    content=content if isinstance(content, str) else None,
                    tool_calls=delta.get("tool_calls"),
                ),
                finish_reason=choice.get("finish_reason"),
                logprobs=choice.get("logprobs"),
            )
        )
    return SSEChunk(
        id=data.get("id") or "",
        created=data.get("created") or int(time.time()),
        model=data.get("model") or "",
        choices=choices,
        usage=map_usage(data.get("usage")),
    )


def map_response(raw: Any) -> ChatCompletionResponse:
    """Convert an SDK ``ChatCompletion`` (or dict) into the gateway response."""
    data = _as_dict(raw)
    choices = []
    for choice in data.get("choices") or []:
        message = choice.get("message") or {}
        choices.append(
            Choice(
                index=choice.get("index") or 0,
                message=ResponseMessage(
                    role=message.get("role") or "assistant",
                    content=message.get("content"),
                    tool_calls=message.get("tool_calls"),
                ),
                finish_reason=choice.get("finish_reason"),
                logprobs=choice.get("logprobs"),
            )
        )
    return ChatCompletionResponse(
        id=data.get("id") or f"chatcmpl-{uuid.uuid4().hex}",
        created=data.get("created") or int(time.time()),
        model=data.get("model") or "",
        choices=choices,
        usage=map_usage(data.get("usage")),
    )


def map_error(exc: BaseException, provider: str) -> GatewayError:
    """Translate SDK and transport failures into a ProviderError.

    Gateway errors pass through untouched.
    """
    if isinstance(exc, GatewayError):
        return exc

    if isinstance(exc, openai.APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        message = body.get("message") or exc.message
        return ProviderError(
            f"{provider} error: {message}",
            status_code=exc.status_code,
            provider_error={
                "code": body.get("code") or exc.code,
                "message": message,
                "type": body.get("type") or exc.type,
                "param": body.get("param") or exc.param,
                "status": exc.status_code,
            },
        )

    # APITimeoutError subclasses APIConnectionError
    if isinstance(exc, openai.APITimeoutError):
        status, message = 504, f"{provider} request timed out"
    elif isinstance(exc, openai.APIConnectionError):
        status, message = 503, f"Could not connect to {provider}"
    else:
        status, message = 500, f"{provider} request failed: {exc}"
    return ProviderError(
        message,
        status_code=status,
        provider_error={"message": str(exc), "type": type(exc).__name__, "status": status},
    )


class OpenAICompatibleAdapter:
    """Chat completions over any backend that speaks the OpenAI wire format.

    Subclasses supply ``name``, ``SUPPORTED_PARAMS`` and ``_create_client``.
    Clients are cached per ``ProviderConfig.client_key()``.
    """

    name = "openai-compatible"
    SUPPORTED_PARAMS: tuple[str, ...] = COMMON_PARAMS
    EXTRA_BODY_PARAMS: tuple[str, ...] = ()
    # Ask the backend for a trailing usage chunk when streaming
    STREAM_USAGE = True

    def __init__(self):
        self._clients: dict[tuple[str, str, str], Any] = {}

    def _create_client(self, config: ProviderConfig) -> Any:
        raise NotImplementedError

    def _get_client(self, config: ProviderConfig) -> Any:
        key = config.client_key()
        client = self._clients.get(key)
        if client is None:
            logger.debug("Creating %s client for %s", self.name, config.endpoint)
            client = self._create_client(config)
            self._clients[key] = client
        return client

    def _convert_message(self, msg: ChatMessage) -> dict[str, Any]:
        d: dict[str, Any] = {"role": msg.role}

        content = msg.content
        if msg.attachments:
            parts: list[Any] = []
            if isinstance(content, str):
                if content.strip():
                    parts.append(TextPart(text=content))
            elif content:
                parts.extend(content)
            for attachment in msg.attachments:
                if attachment.type != "image":
                    continue
                url = attachment.url or (
                    f"data:{attachment.mime_type};base64,{attachment.data}" if attachment.data else None
                )
                if url:
                    parts.append(ImageUrlPart(image_url=ImageUrl(url=url, detail="auto")))
            content = parts

        if content is not None:
            d["content"] = _jsonable(content)
        if msg.name is not None:
            d["name"] = msg.name
        if msg.tool_calls:
            d["tool_calls"] = _jsonable(msg.tool_calls)
        if msg.tool_call_id is not None:
            d["tool_call_id"] = msg.tool_call_id
        return d

    def _effective_model(self, request: ChatRequest, config: ProviderConfig) -> str:
        return config.deployment or config.model or request.model or NANO_MODEL

    def build_request(self, request: ChatRequest, config: ProviderConfig) -> ProviderRequest:
        """Build keyword arguments for ``chat.completions.create``."""
        kwargs: ProviderRequest = {
            "model": self._effective_model(request, config),
            "messages": [self._convert_message(m) for m in request.messages],
            "stream": request.stream,
        }
        for param in self.SUPPORTED_PARAMS:
            value = getattr(request, param, None)
            if value is not None:
                kwargs[param] = _jsonable(value)

        extra_body = {
            param: getattr(request, param)
            for param in self.EXTRA_BODY_PARAMS
            if getattr(request, param, None) is not None
        }
        if extra_body:
            kwargs["extra_body"] = extra_body
        return kwargs

    async def execute_stream(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> AsyncIterator[SSEChunk]:
        client = self._get_client(config)
        kwargs = {**provider_request, "stream": True}
        if self.STREAM_USAGE:
            kwargs.setdefault("stream_options", {"include_usage": True})

        try:
            stream = await client.chat.completions.create(**kwargs)
        except Exception as e:
            raise map_error(e, self.name) from e

        try:
            async for chunk in stream:
                yield map_chunk(chunk)
        except Exception as e:
            raise map_error(e, self.name) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await close()

    async def execute_json(
        self, provider_request: ProviderRequest, config: ProviderConfig
    ) -> ChatCompletionResponse:
        client = self._get_client(config)
        kwargs = {**provider_request, "stream": False}
        try:
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            raise map_error(e, self.name) from e
        return map_response(response)

    def get_capabilities(self, model: str) -> ModelCapabilities | None:
        return get_model_capabilities(model)

    def validate_request(self, request: ChatRequest) -> bool:
        return True

    async def aclose(self) -> None:
        """Close every cached client."""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.close()
