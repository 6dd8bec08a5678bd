"""Request-scoped value objects shared across providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ProviderName = Literal["azure-openai", "openai", "azure-ai-foundry"]
AuthType = Literal["api-key", "aad"]

# Keyword arguments for ``chat.completions.create``.
ProviderRequest = dict[str, Any]


@dataclass(frozen=True)
class ModelCapabilities:
    chat: bool
    vision: bool
    image_generate: bool
    tool_calls: bool
    json_mode: bool
    reasoning: bool
    max_context_tokens: int
    max_output_tokens: int
    supports_streaming: bool


@dataclass(frozen=True)
class ProviderConfig:
    provider: ProviderName
    endpoint: str
    api_version: str
    auth_type: AuthType = "api-key"
    deployment: str | None = None
    model: str | None = None
    api_key: str | None = None
    organization: str | None = None

    def client_key(self) -> tuple[str, str, str]:
        """Key under which adapters cache provider clients."""
        return (self.endpoint, self.deployment or self.model or "", self.auth_type)


@dataclass(frozen=True)
class ResolvedModel:
    model: str
    deployment: str
    source: Literal["direct", "task_profile", "default"]
    reasoning_effort: str | None = None
    temperature: float | None = None
    max_completion_tokens: int | None = None
    task_profile: str | None = None
