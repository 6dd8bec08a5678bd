"""Pydantic wire models for the OpenAI-compatible surface.

Requests are validated here; responses and stream chunks are built by the
provider adapters and serialized with ``exclude_none=True``.
"""

from __future__ import annotations

import json
import time
from typing import Annotated, Any, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from halogw.core.errors import InvalidRequestError

ReasoningEffort = Literal["none", "minimal", "low", "medium", "high", "xhigh"]
FinishReason = Literal["stop", "length", "tool_calls", "content_filter", "function_call"]


class Attachment(BaseModel):
    type: Literal["image", "file"]
    mime_type: str
    data: str | None = None  # base64
    url: str | None = None
    filename: str | None = None
    alt: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_source(self) -> Attachment:
        if self.type == "image" and (self.data is None) == (self.url is None):
            raise ValueError("image attachments need exactly one of 'data' or 'url'")
        return self


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] = "auto"


class ImageUrlPart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImageUrlPart], Field(discriminator="type")]


class FunctionCall(BaseModel):
    name: str
    arguments: str  # JSON string


class ToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class FunctionDefinition(BaseModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    strict: bool | None = None


class ToolDefinition(BaseModel):
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: str | list[ContentPart] | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    # Convenience field, replaced by content parts before dispatch.
    attachments: list[Attachment] | None = None

    @model_validator(mode="after")
    def validate_payload(self) -> ChatMessage:
        if not self.content and not self.attachments and not self.tool_calls:
            raise ValueError("message must carry non-empty content or attachments")
        return self


class ChatRequest(BaseModel):
    model: str | None = None
    task_profile: str | None = None
    messages: list[ChatMessage] = Field(min_length=1)

    # Provider routing
    provider: Literal["azure-openai", "openai", "azure-ai-foundry"] | None = None
    azure_endpoint: str | None = None
    azure_deployment: str | None = None
    api_version: str | None = None

    # Generation parameters
    stream: bool = False
    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)
    max_tokens: int | None = Field(default=None, ge=1)
    max_completion_tokens: int | None = Field(default=None, ge=1)
    reasoning_effort: ReasoningEffort | None = None
    reasoning_mode: Literal["standard", "deep", "thinking"] | None = None
    max_reasoning_tokens: int | None = Field(default=None, ge=1)
    response_format: dict[str, Any] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: Literal["auto", "none", "required"] | dict[str, Any] | None = None
    seed: int | None = None
    stop: str | list[str] | None = None
    presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    n: int | None = Field(default=None, ge=1, le=128)
    logit_bias: dict[str, float] | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = Field(default=None, ge=0, le=20)
    user: str | None = None

    # Gateway extensions
    system_guardrails_enabled: bool = False
    guardrail_profile: str | None = None

    @field_validator("azure_endpoint")
    @classmethod
    def validate_endpoint(cls, endpoint: str | None) -> str | None:
        if endpoint is None:
            return endpoint
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an absolute http(s) URL")
        return endpoint

    @property
    def has_attachments(self) -> bool:
        return any(m.attachments for m in self.messages)


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int | None = None


class ChoiceDelta(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: ChoiceDelta = Field(default_factory=ChoiceDelta)
    finish_reason: str | None = None
    logprobs: Any = None


class HaloMetadata(BaseModel):
    chunks_count: int
    latency_ms: int


class SSEChunk(BaseModel):
    id: str = ""
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str = ""
    choices: list[StreamChoice] = Field(default_factory=list)
    usage: Usage | None = None
    # Set only on the final aggregate chunk.
    halo_metadata: HaloMetadata | None = None


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class Choice(BaseModel):
    index: int = 0
    message: ResponseMessage
    finish_reason: str | None = None
    logprobs: Any = None


class ChatCompletionResponse(BaseModel):
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    # Gateway extensions
    request_id: str | None = None
    provider: str | None = None
    latency_ms: int | None = None


class ImageGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1)
    model: str = "dall-e-3"
    provider: Literal["azure-openai", "openai", "azure-ai-foundry"] = "openai"
    n: int = Field(default=1, ge=1, le=10)
    size: Literal["256x256", "512x512", "1024x1024", "1792x1024", "1024x1792"] = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    response_format: Literal["url", "b64_json"] = "url"
    style: Literal["vivid", "natural"] | None = None


class ImageGenerationResponse(BaseModel):
    request_id: str
    provider: str
    model: str
    created: int
    attachments: list[Attachment]
    latency_ms: int


def format_validation_errors(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``"path: message; path: message"``."""
    parts = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{path}: {err['msg']}")
    return "; ".join(parts)


def parse_request_body(raw: bytes | str | None, schema: type[BaseModel]) -> Any:
    """Decode and validate a JSON body, raising InvalidRequestError on failure."""
    if raw is None or not raw.strip():
        raise InvalidRequestError(
            "Request body is empty. Please provide a valid JSON body.",
            error_code="EMPTY_REQUEST_BODY",
        )
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(
            "Invalid JSON received. Ensure the request has a valid JSON body "
            "with Content-Type: application/json.",
            error_code="INVALID_JSON",
        ) from e
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise InvalidRequestError(
            f"Invalid request parameters: {format_validation_errors(e)}"
        ) from e


def parse_chat_request(raw: bytes | str | None) -> ChatRequest:
    return parse_request_body(raw, ChatRequest)
