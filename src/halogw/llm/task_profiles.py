"""Task profiles: pick a model by intent rather than by name.

Example:
    {"task_profile": "fast", "messages": [...]}       -> gpt-5-nano, no reasoning
    {"task_profile": "reasoning", "messages": [...]}  -> gpt-5.2, high reasoning

Resolution priority is direct model > task profile > configured default.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from halogw.core.errors import InvalidRequestError, UnknownTaskProfileError
from halogw.llm.types import ResolvedModel

NANO_MODEL = "gpt-5-nano"
FLAGSHIP_MODEL = "gpt-5.2"


@dataclass(frozen=True)
class TaskProfile:
    name: str
    description: str
    model: str
    reasoning_effort: str | None = None
    temperature: float | None = None
    max_completion_tokens: int | None = None


TASK_PROFILES: MappingProxyType[str, TaskProfile] = MappingProxyType({
    "fast": TaskProfile(
        name="fast",
        description="Quick responses for intent detection, simple decisions",
        model=NANO_MODEL,
        reasoning_effort="none",
    ),
    "balanced": TaskProfile(
        name="balanced",
        description="Good quality/speed trade-off for general tasks",
        model=NANO_MODEL,
        reasoning_effort="medium",
    ),
    "cost_effective": TaskProfile(
        name="cost_effective",
        description="Budget-conscious for high-volume simple tasks",
        model=NANO_MODEL,
        reasoning_effort="low",
    ),
    "reasoning": TaskProfile(
        name="reasoning",
        description="Complex analysis, multi-step problem solving",
        model=FLAGSHIP_MODEL,
        reasoning_effort="high",
    ),
    "deep_reasoning": TaskProfile(
        name="deep_reasoning",
        description="Maximum reasoning for research-level tasks",
        model=FLAGSHIP_MODEL,
        reasoning_effort="xhigh",
    ),
    "creative": TaskProfile(
        name="creative",
        description="Creative writing, brainstorming, idea generation",
        model=FLAGSHIP_MODEL,
        reasoning_effort="medium",
        temperature=0.9,
    ),
})

# Profile fields that may be merged into an outgoing request.
_PROFILE_SETTINGS = ("reasoning_effort", "temperature", "max_completion_tokens")


def get_task_profile(name: str) -> TaskProfile | None:
    return TASK_PROFILES.get(name)


def task_profile_names() -> list[str]:
    return list(TASK_PROFILES)


def resolve_model(
    request_model: str | None = None,
    task_profile: str | None = None,
    default_model: str | None = NANO_MODEL,
    default_deployment: str | None = None,
) -> ResolvedModel:
    """Resolve the model for a request.

    A non-empty ``request_model`` always wins and never carries profile
    settings. An unknown ``task_profile`` is an error, not a fallback.
    """
    if request_model:
        return ResolvedModel(model=request_model, deployment=request_model, source="direct")

    if task_profile:
        profile = get_task_profile(task_profile)
        if profile is None:
            raise UnknownTaskProfileError(
                f"Unknown task profile: {task_profile}. "
                f"Valid profiles: {', '.join(task_profile_names())}"
            )
        return ResolvedModel(
            model=profile.model,
            deployment=profile.model,
            source="task_profile",
            reasoning_effort=profile.reasoning_effort,
            temperature=profile.temperature,
            max_completion_tokens=profile.max_completion_tokens,
            task_profile=profile.name,
        )

    if not default_model:
        raise InvalidRequestError(
            "No model specified in request and no default model configured. "
            "Please specify either 'model' or 'task_profile' in your request."
        )
    return ResolvedModel(
        model=default_model,
        deployment=default_deployment or default_model,
        source="default",
    )


def apply_resolved_settings(resolved: ResolvedModel, params: Mapping[str, Any]) -> dict[str, Any]:
    """Merge profile settings into ``params`` without overwriting explicit values."""
    result = dict(params)
    result["model"] = resolved.model

    if resolved.source != "task_profile":
        return result

    for name in _PROFILE_SETTINGS:
        value = getattr(resolved, name)
        if value is not None and result.get(name) is None:
            result[name] = value
    return result


def describe_resolution(resolved: ResolvedModel) -> str:
    if resolved.source == "direct":
        return f"Using directly specified model: {resolved.model}"
    if resolved.source == "task_profile":
        desc = f'Using task profile "{resolved.task_profile}" -> model: {resolved.model}'
        if resolved.reasoning_effort:
            desc += f", reasoning_effort: {resolved.reasoning_effort}"
        return desc
    return f"Using default model: {resolved.model}"
