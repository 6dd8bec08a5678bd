"""Azure AI Foundry provider adapter for models-as-a-service (Llama, Mistral, Phi).

Foundry deployments speak the Azure OpenAI wire format, so the client setup is
shared with ``AzureOpenAIAdapter``. OSS models reject reasoning, logprob and
logit-bias parameters; those are never forwarded.
"""

from __future__ import annotations

from halogw.llm.azure_openai_provider import AzureOpenAIAdapter
from halogw.llm.base import COMMON_PARAMS


class AzureFoundryAdapter(AzureOpenAIAdapter):
    name = "azure-ai-foundry"
    SUPPORTED_PARAMS = COMMON_PARAMS
    EXTRA_BODY_PARAMS = ()
    STREAM_USAGE = False
