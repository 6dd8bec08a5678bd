"""Tests for task profile resolution."""

import pytest

from halogw.core.errors import InvalidRequestError, UnknownTaskProfileError
from halogw.llm.task_profiles import (
    FLAGSHIP_MODEL,
    NANO_MODEL,
    TASK_PROFILES,
    apply_resolved_settings,
    describe_resolution,
    resolve_model,
    task_profile_names,
)
from halogw.llm.types import ResolvedModel


class TestResolveModel:
    def test_direct_model_wins(self):
        resolved = resolve_model("gpt-4o", "reasoning", default_model="gpt-5-nano")
        assert resolved.source == "direct"
        assert resolved.model == "gpt-4o"
        assert resolved.reasoning_effort is None
        assert resolved.temperature is None
        assert resolved.task_profile is None

    def test_task_profile(self):
        resolved = resolve_model(task_profile="deep_reasoning")
        assert resolved.source == "task_profile"
        assert resolved.model == FLAGSHIP_MODEL
        assert resolved.reasoning_effort == "xhigh"
        assert resolved.task_profile == "deep_reasoning"

    def test_creative_profile_sets_temperature(self):
        resolved = resolve_model(task_profile="creative")
        assert resolved.temperature == 0.9

    def test_unknown_profile_lists_valid_names(self):
        with pytest.raises(UnknownTaskProfileError) as exc_info:
            resolve_model(task_profile="turbo")
        assert exc_info.value.status_code == 400
        assert "balanced" in exc_info.value.message

    def test_default_model(self):
        resolved = resolve_model(default_model="gpt-4o", default_deployment="prod-gpt4o")
        assert resolved.source == "default"
        assert resolved.model == "gpt-4o"
        assert resolved.deployment == "prod-gpt4o"

    def test_no_default_is_an_error(self):
        with pytest.raises(InvalidRequestError):
            resolve_model(default_model=None)

    def test_profiles_table(self):
        assert set(task_profile_names()) == {
            "fast", "balanced", "cost_effective", "reasoning", "deep_reasoning", "creative",
        }
        assert TASK_PROFILES["fast"].model == NANO_MODEL
        assert TASK_PROFILES["fast"].reasoning_effort == "none"


class TestApplyResolvedSettings:
    def test_request_value_wins_over_profile(self):
        resolved = resolve_model(task_profile="creative")
        merged = apply_resolved_settings(resolved, {"temperature": 0.5})
        assert merged["temperature"] == 0.5
        assert merged["model"] == FLAGSHIP_MODEL

    def test_profile_fills_missing_and_none(self):
        resolved = resolve_model(task_profile="reasoning")
        merged = apply_resolved_settings(resolved, {"reasoning_effort": None})
        assert merged["reasoning_effort"] == "high"

    def test_direct_resolution_adds_nothing(self):
        resolved = ResolvedModel(model="gpt-4o", deployment="gpt-4o", source="direct")
        params = {"temperature": None}
        merged = apply_resolved_settings(resolved, params)
        assert merged == {"temperature": None, "model": "gpt-4o"}
        assert params == {"temperature": None}


class TestDescribeResolution:
    def test_profile_description(self):
        desc = describe_resolution(resolve_model(task_profile="balanced"))
        assert '"balanced"' in desc
        assert "reasoning_effort: medium" in desc

    def test_direct_description(self):
        assert "gpt-4o" in describe_resolution(resolve_model("gpt-4o"))
