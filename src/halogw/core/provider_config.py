"""Per-call provider configuration.

Credentials are read once into a ``ProviderEnvironment`` (from ``os.environ``
or any other mapping) and merged with request overrides by
``ProviderConfigResolver``. For Azure OpenAI the precedence, highest first, is:

1. a model-specific block (``AZURE_OPENAI_*_<MODEL>``)
2. an endpoint-specific block matched on the normalized endpoint URL
3. endpoint/deployment/api_version supplied on the request
4. the global ``AZURE_OPENAI_*`` defaults

A matching model block suppresses the endpoint lookup entirely.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from halogw.core.errors import ConfigurationError, InvalidRequestError
from halogw.llm.types import AuthType, ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_AZURE_API_VERSION = "2024-12-01-preview"
DEFAULT_FOUNDRY_API_VERSION = "2023-12-01-preview"
DEFAULT_OPENAI_ENDPOINT = "https://api.openai.com/v1"

_AZURE_PREFIX = "AZURE_OPENAI_ENDPOINT_"
_DEPLOYMENT_IN_URL = re.compile(r"/deployments/([^/?]+)")
_STRIP_PATTERNS = (
    re.compile(r"\?.*$"),
    re.compile(r"/+$"),
    re.compile(r"/openai/v1(/chat/completions)?$"),
    re.compile(r"/openai/deployments/[^/]+.*$"),
    re.compile(r"/chat/completions.*$"),
)


def normalize_endpoint(url: str) -> str:
    """Reduce an Azure endpoint URL to its resource root.

    Strips query strings, trailing slashes, ``/openai/v1``,
    ``/openai/deployments/<name>`` and ``/chat/completions`` suffixes.
    Idempotent.
    """
    normalized = url.strip()
    while True:
        previous = normalized
        for pattern in _STRIP_PATTERNS:
            normalized = pattern.sub("", normalized)
        if normalized == previous:
            return normalized


def normalize_model_key(model: str) -> str:
    """``gpt-4o`` -> ``GPT_4O``; the suffix used by model-specific env blocks."""
    return re.sub(r"[^A-Z0-9]", "_", model.upper())


def _auth_type(value: str | None) -> AuthType | None:
    if value is None:
        return None
    value = value.strip().lower()
    if value not in ("api-key", "aad"):
        raise ConfigurationError(f"Unsupported auth type: {value!r}. Choose: api-key, aad")
    return value  # type: ignore[return-value]


@dataclass(frozen=True)
class CredentialBundle:
    """One configuration block. ``None`` means "not set at this level"."""

    endpoint: str
    api_key: str | None = None
    api_version: str | None = None
    auth_type: AuthType | None = None
    deployment: str | None = None
    organization: str | None = None


@dataclass(frozen=True)
class ConfigOverrides:
    """Values a caller may supply on the request itself."""

    endpoint: str | None = None
    deployment: str | None = None
    api_version: str | None = None


@dataclass
class ProviderEnvironment:
    azure_openai: CredentialBundle | None = None
    azure_openai_models: dict[str, CredentialBundle] = field(default_factory=dict)
    azure_openai_endpoints: dict[str, CredentialBundle] = field(default_factory=dict)
    openai: CredentialBundle | None = None
    azure_foundry: CredentialBundle | None = None

    @classmethod
    def from_env(cls) -> ProviderEnvironment:
        return cls.from_mapping(os.environ)

    @classmethod
    def from_mapping(cls, env: Mapping[str, str]) -> ProviderEnvironment:
        """Build the environment from ``AZURE_OPENAI_*``/``OPENAI_*``/``AZURE_FOUNDRY_*`` keys."""
        result = cls()

        endpoint_url = env.get("AZURE_OPENAI_ENDPOINT", "")
        if endpoint_url:
            deployment = env.get("AZURE_OPENAI_DEPLOYMENT")
            match = _DEPLOYMENT_IN_URL.search(endpoint_url)
            if match and not deployment:
                deployment = match.group(1)
            result.azure_openai = CredentialBundle(
                endpoint=normalize_endpoint(endpoint_url),
                api_key=env.get("AZURE_OPENAI_API_KEY"),
                api_version=env.get("AZURE_OPENAI_API_VERSION"),
                auth_type=_auth_type(env.get("AZURE_OPENAI_AUTH_TYPE")),
                deployment=deployment,
            )

        # Each AZURE_OPENAI_ENDPOINT_<ID> block is usable both by model and by endpoint
        for key, value in env.items():
            if not key.startswith(_AZURE_PREFIX) or not value:
                continue
            block_id = key[len(_AZURE_PREFIX):]
            bundle = CredentialBundle(
                endpoint=normalize_endpoint(value),
                api_key=env.get(f"AZURE_OPENAI_API_KEY_{block_id}"),
                api_version=env.get(f"AZURE_OPENAI_API_VERSION_{block_id}"),
                auth_type=_auth_type(env.get(f"AZURE_OPENAI_AUTH_TYPE_{block_id}")),
            )
            result.azure_openai_models[normalize_model_key(block_id)] = bundle
            result.azure_openai_endpoints[bundle.endpoint] = bundle

        if env.get("OPENAI_API_KEY"):
            result.openai = CredentialBundle(
                endpoint=env.get("OPENAI_BASE_URL") or DEFAULT_OPENAI_ENDPOINT,
                api_key=env["OPENAI_API_KEY"],
                organization=env.get("OPENAI_ORGANIZATION"),
            )

        if env.get("AZURE_FOUNDRY_ENDPOINT"):
            result.azure_foundry = CredentialBundle(
                endpoint=env["AZURE_FOUNDRY_ENDPOINT"].rstrip("/"),
                api_key=env.get("AZURE_FOUNDRY_API_KEY"),
                api_version=env.get("AZURE_FOUNDRY_API_VERSION"),
                auth_type=_auth_type(env.get("AZURE_FOUNDRY_AUTH_TYPE")),
                deployment=env.get("AZURE_FOUNDRY_DEPLOYMENT"),
            )

        logger.debug(
            "Loaded provider environment: %d model blocks, %d endpoint blocks",
            len(result.azure_openai_models),
            len(result.azure_openai_endpoints),
        )
        return result

    def model_block(self, model: str | None) -> CredentialBundle | None:
        if not model:
            return None
        return self.azure_openai_models.get(normalize_model_key(model))

    def endpoint_block(self, endpoint: str | None) -> CredentialBundle | None:
        if not endpoint:
            return None
        return self.azure_openai_endpoints.get(normalize_endpoint(endpoint))


class ProviderConfigResolver:
    """Builds a fresh ``ProviderConfig`` for every call."""

    def __init__(self, environment: ProviderEnvironment):
        self._env = environment

    @property
    def environment(self) -> ProviderEnvironment:
        return self._env

    def resolve(
        self,
        provider: str,
        overrides: ConfigOverrides | None = None,
        model_id: str | None = None,
        model_requested: bool = True,
    ) -> ProviderConfig:
        """Build the config for one call.

        With ``model_requested=False`` (the model is only the configured
        default) an Azure deployment set in the environment takes precedence
        over the model id.
        """
        overrides = overrides or ConfigOverrides()
        if provider == "azure-openai":
            return self._resolve_azure_openai(overrides, model_id, model_requested)
        if provider == "openai":
            return self._resolve_openai(model_id)
        if provider == "azure-ai-foundry":
            return self._resolve_foundry(overrides, model_id)
        raise InvalidRequestError(f"Unknown provider: {provider}", error_code="UNKNOWN_PROVIDER")

    def _resolve_azure_openai(
        self, overrides: ConfigOverrides, model_id: str | None, model_requested: bool = True
    ) -> ProviderConfig:
        defaults = self._env.azure_openai or CredentialBundle(endpoint="")

        # Levels 4 and 3: global defaults, then request overrides
        endpoint = overrides.endpoint or defaults.endpoint
        api_key = defaults.api_key
        api_version = overrides.api_version or defaults.api_version
        auth_type = defaults.auth_type

        model_block = self._env.model_block(model_id)
        if model_block is not None:
            # Level 1
            logger.debug("Using model-specific Azure OpenAI config for %s", model_id)
            endpoint = model_block.endpoint
            api_key = model_block.api_key or api_key
            api_version = model_block.api_version or api_version
            auth_type = model_block.auth_type or auth_type
        else:
            # Level 2
            endpoint_block = self._env.endpoint_block(endpoint)
            if endpoint_block is not None:
                logger.debug("Using endpoint-specific Azure OpenAI config for %s", endpoint_block.endpoint)
                api_key = endpoint_block.api_key or api_key
                api_version = endpoint_block.api_version or api_version
                auth_type = endpoint_block.auth_type or auth_type

        config = ProviderConfig(
            provider="azure-openai",
            endpoint=normalize_endpoint(endpoint) if endpoint else "",
            deployment=overrides.deployment
            or (None if model_requested else defaults.deployment)
            or model_id
            or defaults.deployment,
            api_key=api_key,
            api_version=api_version or DEFAULT_AZURE_API_VERSION,
            auth_type=auth_type or "api-key",
        )
        self._check_credentials(config, "AZURE_OPENAI")
        return config

    def _resolve_openai(self, model_id: str | None) -> ProviderConfig:
        block = self._env.openai
        if block is None or not block.api_key:
            raise ConfigurationError("OpenAI configuration not found. Set OPENAI_API_KEY.")
        return ProviderConfig(
            provider="openai",
            endpoint=block.endpoint,
            model=model_id,
            api_key=block.api_key,
            api_version="v1",
            auth_type="api-key",
            organization=block.organization,
        )

    def _resolve_foundry(self, overrides: ConfigOverrides, model_id: str | None) -> ProviderConfig:
        block = self._env.azure_foundry
        if block is None:
            raise ConfigurationError(
                "Azure AI Foundry configuration not found. Set AZURE_FOUNDRY_ENDPOINT."
            )
        config = ProviderConfig(
            provider="azure-ai-foundry",
            endpoint=overrides.endpoint or block.endpoint,
            deployment=overrides.deployment or block.deployment,
            # For MaaS models the deployment name is the model name
            model=model_id,
            api_key=block.api_key,
            api_version=overrides.api_version or block.api_version or DEFAULT_FOUNDRY_API_VERSION,
            auth_type=block.auth_type or "api-key",
        )
        self._check_credentials(config, "AZURE_FOUNDRY")
        return config

    @staticmethod
    def _check_credentials(config: ProviderConfig, env_prefix: str) -> None:
        if not config.endpoint:
            raise ConfigurationError(
                f"No endpoint configured for {config.provider}. Set {env_prefix}_ENDPOINT."
            )
        if config.auth_type == "api-key" and not config.api_key:
            raise ConfigurationError(
                f"No API key configured for {config.provider} at {config.endpoint}. "
                f"Set {env_prefix}_API_KEY or use {env_prefix}_AUTH_TYPE=aad."
            )
