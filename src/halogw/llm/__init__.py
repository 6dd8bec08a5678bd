"""Provider adapters and the closed dispatch table over them."""

from halogw.llm.azure_foundry_provider import AzureFoundryAdapter
from halogw.llm.azure_openai_provider import AzureOpenAIAdapter
from halogw.llm.base import OpenAICompatibleAdapter, ProviderAdapter
from halogw.llm.openai_provider import OpenAIAdapter

PROVIDER_ADAPTERS: dict[str, type[OpenAICompatibleAdapter]] = {
    "azure-openai": AzureOpenAIAdapter,
    "openai": OpenAIAdapter,
    "azure-ai-foundry": AzureFoundryAdapter,
}


def get_provider_adapter(provider: str) -> ProviderAdapter | None:
    """Fresh adapter for ``provider``, or None if the name is not supported."""
    adapter_cls = PROVIDER_ADAPTERS.get(provider)
    return adapter_cls() if adapter_cls is not None else None


__all__ = [
    "PROVIDER_ADAPTERS",
    "AzureFoundryAdapter",
    "AzureOpenAIAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "get_provider_adapter",
]
