"""Azure OpenAI provider adapter.

Supports API-key and Azure AD (``DefaultAzureCredential``) authentication.
With AAD the SDK calls the token provider before every request, so expired
tokens are refreshed without rebuilding the client.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from azure.core.exceptions import ClientAuthenticationError
from azure.identity.aio import DefaultAzureCredential
from openai import AsyncAzureOpenAI

from halogw.core.errors import AuthenticationError
from halogw.llm.base import COMMON_PARAMS, OpenAICompatibleAdapter
from halogw.llm.types import ProviderConfig

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


def aad_token_provider(credential, scope: str = COGNITIVE_SERVICES_SCOPE) -> Callable[[], Awaitable[str]]:
    """Wrap an async azure-identity credential as an ``azure_ad_token_provider``."""

    async def get_token() -> str:
        try:
            token = await credential.get_token(scope)
        except ClientAuthenticationError as e:
            logger.error("Azure AD token acquisition failed: %s", e.message)
            raise AuthenticationError(f"Failed to acquire Azure AD token: {e.message}") from e
        return token.token

    return get_token


class AzureOpenAIAdapter(OpenAICompatibleAdapter):
    """Azure-hosted OpenAI deployments."""

    name = "azure-openai"
    SUPPORTED_PARAMS = COMMON_PARAMS + (
        "reasoning_effort",
        "logit_bias",
        "logprobs",
        "top_logprobs",
    )
    EXTRA_BODY_PARAMS = ("reasoning_mode", "max_reasoning_tokens")

    def __init__(self, credential=None):
        super().__init__()
        self._credential = credential

    def _token_provider(self) -> Callable[[], Awaitable[str]]:
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return aad_token_provider(self._credential)

    def _create_client(self, config: ProviderConfig) -> AsyncAzureOpenAI:
        deployment = config.deployment or config.model
        if config.auth_type == "aad":
            return AsyncAzureOpenAI(
                azure_endpoint=config.endpoint,
                azure_deployment=deployment,
                api_version=config.api_version,
                azure_ad_token_provider=self._token_provider(),
            )
        return AsyncAzureOpenAI(
            azure_endpoint=config.endpoint,
            azure_deployment=deployment,
            api_version=config.api_version,
            api_key=config.api_key,
        )

    async def aclose(self) -> None:
        await super().aclose()
        if self._credential is not None:
            await self._credential.close()
