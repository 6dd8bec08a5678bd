"""Model capability registry.

Static table of the models the gateway knows how to route, used for
admission control before any provider request is built.
"""

from __future__ import annotations

from dataclasses import fields
from types import MappingProxyType

from halogw.llm.types import ModelCapabilities

_NUMERIC_FLAGS = ("max_context_tokens", "max_output_tokens")
_FLAGS = frozenset(f.name for f in fields(ModelCapabilities))


def _chat_model(
    *,
    vision: bool,
    tool_calls: bool,
    json_mode: bool,
    reasoning: bool,
    context: int,
    output: int,
    streaming: bool = True,
) -> ModelCapabilities:
    return ModelCapabilities(
        chat=True,
        vision=vision,
        image_generate=False,
        tool_calls=tool_calls,
        json_mode=json_mode,
        reasoning=reasoning,
        max_context_tokens=context,
        max_output_tokens=output,
        supports_streaming=streaming,
    )


_IMAGE_MODEL = ModelCapabilities(
    chat=False,
    vision=False,
    image_generate=True,
    tool_calls=False,
    json_mode=False,
    reasoning=False,
    max_context_tokens=0,
    max_output_tokens=0,
    supports_streaming=False,
)

MODEL_REGISTRY: MappingProxyType[str, ModelCapabilities] = MappingProxyType({
    # --- OpenAI family (Azure OpenAI and direct OpenAI) ---
    "gpt-4o": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=False,
                          context=128000, output=16384),
    "gpt-4o-mini": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=False,
                               context=128000, output=16384),
    "gpt-4-turbo": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=False,
                               context=128000, output=4096),
    "gpt-4": _chat_model(vision=False, tool_calls=True, json_mode=True, reasoning=False,
                         context=8192, output=4096),
    "gpt-3.5-turbo": _chat_model(vision=False, tool_calls=True, json_mode=True, reasoning=False,
                                 context=16385, output=4096),
    # o-series reasoning models do not stream
    "o1-preview": _chat_model(vision=False, tool_calls=False, json_mode=False, reasoning=True,
                              context=200000, output=100000, streaming=False),
    "o1-mini": _chat_model(vision=False, tool_calls=False, json_mode=False, reasoning=True,
                           context=128000, output=65536, streaming=False),
    "o3-mini": _chat_model(vision=False, tool_calls=False, json_mode=True, reasoning=True,
                           context=200000, output=100000, streaming=False),
    # GPT-5 accepts reasoning_effort
    "gpt-5.2": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=True,
                           context=128000, output=16384),
    "gpt-5": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=True,
                         context=128000, output=16384),
    "gpt-5-mini": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=True,
                              context=64000, output=8192),
    "gpt-5-nano": _chat_model(vision=True, tool_calls=True, json_mode=True, reasoning=True,
                              context=128000, output=16384),
    # --- Image generation ---
    "dall-e-2": _IMAGE_MODEL,
    "dall-e-3": _IMAGE_MODEL,
    "gpt-image-1": _IMAGE_MODEL,
    # --- OSS models served by Azure AI Foundry ---
    "llama-3-70b": _chat_model(vision=False, tool_calls=False, json_mode=False, reasoning=False,
                               context=8192, output=4096),
    "llama-3-8b": _chat_model(vision=False, tool_calls=False, json_mode=False, reasoning=False,
                              context=8192, output=4096),
    "mistral-large": _chat_model(vision=False, tool_calls=True, json_mode=False, reasoning=False,
                                 context=32000, output=8192),
    "phi-3-mini": _chat_model(vision=False, tool_calls=False, json_mode=False, reasoning=False,
                              context=4096, output=2048),
})

OSS_MODELS = frozenset({"llama-3-70b", "llama-3-8b", "mistral-large", "phi-3-mini"})

# Longest keys first so "gpt-4o-2024-08-06" resolves to gpt-4o, not gpt-4.
_PREFIX_ORDER = sorted(MODEL_REGISTRY, key=len, reverse=True)


def get_model_capabilities(model: str) -> ModelCapabilities | None:
    """Look up a model by exact, case-insensitive, then longest-prefix match."""
    if not model:
        return None
    if model in MODEL_REGISTRY:
        return MODEL_REGISTRY[model]

    lowered = model.lower()
    for key in MODEL_REGISTRY:
        if key.lower() == lowered:
            return MODEL_REGISTRY[key]

    # Deployment names often carry a date/version suffix
    for key in _PREFIX_ORDER:
        if lowered.startswith(key.lower()):
            return MODEL_REGISTRY[key]

    return None


def has_capability(model: str, capability: str) -> bool:
    """True if the model is known and supports ``capability``. Never raises."""
    if capability not in _FLAGS:
        return False
    caps = get_model_capabilities(model)
    if caps is None:
        return False
    value = getattr(caps, capability)
    if capability in _NUMERIC_FLAGS:
        return value > 0
    return value is True


def get_models_for_provider(provider: str) -> list[str]:
    """Model ids routable through ``provider``."""
    if provider == "azure-ai-foundry":
        return list(MODEL_REGISTRY)
    if provider in ("azure-openai", "openai"):
        return [m for m in MODEL_REGISTRY if m not in OSS_MODELS]
    return []
