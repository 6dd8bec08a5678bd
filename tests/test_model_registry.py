"""Tests for the model capability registry."""

import pytest

from halogw.llm.registry import (
    MODEL_REGISTRY,
    OSS_MODELS,
    get_model_capabilities,
    get_models_for_provider,
    has_capability,
)


class TestGetModelCapabilities:
    def test_exact_match(self):
        caps = get_model_capabilities("gpt-4o")
        assert caps is MODEL_REGISTRY["gpt-4o"]
        assert caps.vision is True
        assert caps.max_context_tokens == 128000

    def test_case_insensitive(self):
        assert get_model_capabilities("GPT-4O") is MODEL_REGISTRY["gpt-4o"]

    def test_dated_deployment_resolves_to_base_model(self):
        assert get_model_capabilities("gpt-4o-2024-08-06") is MODEL_REGISTRY["gpt-4o"]

    def test_lookup_forms_agree(self):
        assert (
            get_model_capabilities("GPT-4O")
            == get_model_capabilities("gpt-4o")
            == get_model_capabilities("gpt-4o-2024-08-06")
        )

    def test_longest_prefix_wins(self):
        # "gpt-4o-mini-..." also starts with "gpt-4" and "gpt-4o"
        assert get_model_capabilities("gpt-4o-mini-2024-07-18") is MODEL_REGISTRY["gpt-4o-mini"]
        assert get_model_capabilities("gpt-5-nano-preview") is MODEL_REGISTRY["gpt-5-nano"]

    def test_unknown_model(self):
        assert get_model_capabilities("claude-3-opus") is None
        assert get_model_capabilities("") is None

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            MODEL_REGISTRY["new-model"] = MODEL_REGISTRY["gpt-4o"]  # type: ignore[index]


class TestHasCapability:
    def test_supported_flag(self):
        assert has_capability("gpt-4o", "vision") is True
        assert has_capability("o1-preview", "reasoning") is True

    def test_unsupported_flag(self):
        assert has_capability("gpt-4", "vision") is False
        assert has_capability("o1-mini", "supports_streaming") is False

    def test_numeric_flags_mean_positive(self):
        assert has_capability("gpt-4o", "max_context_tokens") is True
        assert has_capability("dall-e-3", "max_context_tokens") is False

    def test_unknown_model_or_flag_never_raises(self):
        assert has_capability("nope", "vision") is False
        assert has_capability("gpt-4o", "teleportation") is False


class TestModelsForProvider:
    def test_foundry_gets_everything(self):
        assert set(get_models_for_provider("azure-ai-foundry")) == set(MODEL_REGISTRY)

    def test_openai_excludes_oss(self):
        models = get_models_for_provider("openai")
        assert "gpt-4o" in models
        assert not OSS_MODELS & set(models)

    def test_unknown_provider(self):
        assert get_models_for_provider("bedrock") == []
