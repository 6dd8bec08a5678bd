"""OpenAI provider adapter: chat completions and image generation."""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from halogw.llm.base import COMMON_PARAMS, OpenAICompatibleAdapter, map_error
from halogw.llm.types import ProviderConfig

logger = logging.getLogger(__name__)


class OpenAIAdapter(OpenAICompatibleAdapter):
    """Direct OpenAI API access."""

    name = "openai"
    SUPPORTED_PARAMS = COMMON_PARAMS + (
        "reasoning_effort",
        "logit_bias",
        "logprobs",
        "top_logprobs",
    )

    def _create_client(self, config: ProviderConfig) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=config.api_key,
            organization=config.organization,
            base_url=config.endpoint or None,
        )

    async def generate_images(self, params: dict[str, Any], config: ProviderConfig) -> Any:
        """Call ``images.generate`` and return the SDK's ``ImagesResponse``.

        ``params`` holds the keyword arguments (prompt, model, n, size, ...).
        """
        client = self._get_client(config)
        logger.debug("Generating %s image(s) with %s", params.get("n", 1), params.get("model"))
        try:
            return await client.images.generate(**params)
        except Exception as e:
            raise map_error(e, self.name) from e
