"""Shared service layer used by the CLI and the web API.

``GatewayService.prepare`` runs a chat request through the whole admission
pipeline (provider selection, model resolution, capability checks, provider
configuration, attachment normalization, guardrails) and returns a
``PreparedCall`` ready to execute. ``complete`` and ``stream`` execute it.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from dotenv import load_dotenv

from halogw.attachments.inputs import normalize_attachments
from halogw.attachments.outputs import from_image_generation_response
from halogw.core.config import Settings, get_project_root, load_settings
from halogw.core.errors import CapabilityError, InvalidRequestError, ProviderError
from halogw.core.provider_config import ConfigOverrides, ProviderConfigResolver, ProviderEnvironment
from halogw.guardrails.profiles import apply_guardrails
from halogw.llm import get_provider_adapter
from halogw.llm.base import ProviderAdapter
from halogw.llm.registry import MODEL_REGISTRY, get_model_capabilities, get_models_for_provider
from halogw.llm.schemas import (
    ChatCompletionResponse,
    ChatMessage,
    ChatRequest,
    ImageGenerationRequest,
    ImageGenerationResponse,
)
from halogw.llm.task_profiles import apply_resolved_settings, describe_resolution, resolve_model
from halogw.llm.types import ModelCapabilities, ProviderConfig, ProviderRequest, ResolvedModel
from halogw.streaming.aggregator import SSEAggregator

logger = logging.getLogger(__name__)

# Backend answers that make the status check fail outright
_STATUS_FAILURES = {
    401: "Authentication failed",
    403: "Access forbidden",
    404: "Endpoint not found",
    429: "Rate limit exceeded",
}


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


@dataclass
class PreparedCall:
    """Everything needed to execute one admitted chat request."""

    request_id: str
    provider: str
    adapter: ProviderAdapter
    config: ProviderConfig
    provider_request: ProviderRequest
    resolved: ResolvedModel
    capabilities: ModelCapabilities
    stream: bool


class GatewayService:
    """Central service that wires settings, provider configuration and adapters.

    Adapters are created lazily and kept for the life of the service so their
    client caches are reused across requests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        environment: ProviderEnvironment | None = None,
        adapters: dict[str, ProviderAdapter] | None = None,
    ):
        self._load_env()
        self.settings = settings or load_settings()
        self.environment = environment or ProviderEnvironment.from_env()
        self.resolver = ProviderConfigResolver(self.environment)
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})

    @staticmethod
    def _load_env():
        load_dotenv(get_project_root() / ".env")

    async def aclose(self) -> None:
        """Release provider clients held by the adapters."""
        for adapter in self._adapters.values():
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()

    def get_adapter(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            adapter = get_provider_adapter(provider)
            if adapter is None:
                raise InvalidRequestError(
                    f"Unknown provider: {provider}. Choose: azure-openai, openai, azure-ai-foundry",
                    error_code="UNKNOWN_PROVIDER",
                )
            self._adapters[provider] = adapter
        return adapter

    def prepare(self, request: ChatRequest, request_id: str | None = None) -> PreparedCall:
        """Admit a chat request and build the provider call.

        Raises a GatewayError subclass for every rejection; nothing has been
        sent to a provider when this returns or raises.
        """
        request_id = request_id or new_request_id()
        provider = request.provider or self.settings.default_provider
        adapter = self.get_adapter(provider)

        resolved = resolve_model(
            request.model,
            request.task_profile,
            default_model=self.settings.default_model,
            default_deployment=self.settings.default_deployment,
        )
        logger.info("[%s] %s (provider: %s)", request_id, describe_resolution(resolved), provider)
        settings = apply_resolved_settings(
            resolved,
            {
                "model": request.model,
                "reasoning_effort": request.reasoning_effort,
                "temperature": request.temperature,
                "max_completion_tokens": request.max_completion_tokens,
            },
        )
        request = request.model_copy(update=settings)

        capabilities = adapter.get_capabilities(resolved.model)
        if capabilities is None:
            raise InvalidRequestError(
                f"Unknown model: {resolved.model}",
                error_code="UNKNOWN_MODEL",
            )
        self._check_capabilities(request, resolved.model, capabilities)

        if not adapter.validate_request(request):
            raise InvalidRequestError(f"Request not supported by provider {provider}")

        overrides = ConfigOverrides(
            endpoint=request.azure_endpoint,
            deployment=request.azure_deployment
            or (resolved.deployment if resolved.deployment != resolved.model else None),
            api_version=request.api_version,
        )
        config = self.resolver.resolve(
            provider,
            overrides,
            model_id=resolved.model,
            model_requested=resolved.source != "default",
        )

        messages = normalize_attachments(request.messages, capabilities)
        if request.system_guardrails_enabled and request.guardrail_profile:
            messages = apply_guardrails(messages, request.guardrail_profile)
        if messages is not request.messages:
            request = request.model_copy(update={"messages": messages})

        return PreparedCall(
            request_id=request_id,
            provider=provider,
            adapter=adapter,
            config=config,
            provider_request=adapter.build_request(request, config),
            resolved=resolved,
            capabilities=capabilities,
            stream=request.stream,
        )

    @staticmethod
    def _check_capabilities(request: ChatRequest, model: str, capabilities: ModelCapabilities) -> None:
        if not capabilities.chat:
            raise CapabilityError(f"Model {model} does not support chat completions")
        if request.has_attachments and not capabilities.vision:
            raise CapabilityError(f"Model {model} does not support vision/attachments")
        if request.tools and not capabilities.tool_calls:
            raise CapabilityError(f"Model {model} does not support tool calling")
        if request.stream and not capabilities.supports_streaming:
            raise CapabilityError(f"Model {model} does not support streaming")

    async def complete(self, prepared: PreparedCall) -> ChatCompletionResponse:
        """Execute a non-streaming call and stamp the gateway fields."""
        start = time.monotonic()
        response = await prepared.adapter.execute_json(prepared.provider_request, prepared.config)
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info("[%s] %s responded in %dms", prepared.request_id, prepared.provider, latency_ms)
        return response.model_copy(
            update={
                "request_id": prepared.request_id,
                "provider": prepared.provider,
                "latency_ms": latency_ms,
            }
        )

    async def stream(self, prepared: PreparedCall) -> AsyncIterator[str]:
        """Yield SSE frames for a streaming call, ending with ``[DONE]``."""
        aggregator = SSEAggregator()
        source = prepared.adapter.execute_stream(prepared.provider_request, prepared.config)
        async for frame in aggregator.stream(source, prepared.request_id):
            yield frame
        logger.info(
            "[%s] %s stream completed: %d chunks",
            prepared.request_id,
            prepared.provider,
            len(aggregator.chunks),
        )

    async def chat(self, request: ChatRequest, request_id: str | None = None) -> ChatCompletionResponse:
        """Prepare and execute a non-streaming request."""
        return await self.complete(self.prepare(request.model_copy(update={"stream": False}), request_id))

    async def generate_images(
        self, request: ImageGenerationRequest, request_id: str | None = None
    ) -> ImageGenerationResponse:
        request_id = request_id or new_request_id()
        if request.provider != "openai":
            raise InvalidRequestError(
                f"Image generation not yet supported for provider: {request.provider}",
                error_code="UNSUPPORTED_PROVIDER",
            )

        capabilities = get_model_capabilities(request.model)
        if capabilities is None or not capabilities.image_generate:
            raise CapabilityError(f"Model {request.model} does not support image generation")

        adapter = self.get_adapter(request.provider)
        config = self.resolver.resolve(request.provider, model_id=request.model)
        params: dict[str, Any] = request.model_dump(exclude={"provider"}, exclude_none=True)

        start = time.monotonic()
        response = await adapter.generate_images(params, config)
        latency_ms = int((time.monotonic() - start) * 1000)
        attachments = from_image_generation_response(response)
        logger.info("[%s] Generated %d image(s) in %dms", request_id, len(attachments), latency_ms)

        return ImageGenerationResponse(
            request_id=request_id,
            provider=request.provider,
            model=request.model,
            created=getattr(response, "created", None) or int(time.time()),
            attachments=attachments,
            latency_ms=latency_ms,
        )

    def list_models(self, provider: str | None = None) -> list[dict[str, Any]]:
        """Model cards in the ``/v1/models`` format, optionally filtered by provider."""
        models = get_models_for_provider(provider) if provider else list(MODEL_REGISTRY)
        created = int(time.time())
        return [
            {
                "id": model,
                "object": "model",
                "created": created,
                "owned_by": "halogw",
                "capabilities": asdict(MODEL_REGISTRY[model]),
            }
            for model in models
        ]

    async def check_status(self, request_id: str | None = None) -> dict[str, Any]:
        """Send a one-token completion through the default provider and model.

        401/403/404/429 and unreachable backends (5xx) raise a ProviderError
        with the backend's status. Any other backend error is reported as
        ``provider_status: "error (<status>)"`` with a 200.
        """
        request_id = request_id or new_request_id()
        request = ChatRequest(
            messages=[ChatMessage(role="user", content="Hello")],
            max_completion_tokens=1,
        )
        prepared = self.prepare(request, request_id)

        provider_status, details = "reachable", None
        start = time.monotonic()
        try:
            await prepared.adapter.execute_json(prepared.provider_request, prepared.config)
        except ProviderError as e:
            if e.status_code in _STATUS_FAILURES:
                raise ProviderError(
                    f"{_STATUS_FAILURES[e.status_code]}: {e.message}",
                    status_code=e.status_code,
                    error_code=e.error_code,
                    provider_error=e.provider_error,
                    request_id=request_id,
                ) from e
            if e.status_code >= 500:
                raise
            provider_status, details = f"error ({e.status_code})", e.message
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info("[%s] Status check: %s is %s", request_id, prepared.provider, provider_status)

        status: dict[str, Any] = {
            "status": "ok",
            "provider": prepared.provider,
            "model": prepared.resolved.model,
            "provider_status": provider_status,
            "latency_ms": latency_ms,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if details:
            status["details"] = details
        return status
