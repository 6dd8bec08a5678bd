"""Guardrail profiles.

Optional system-level instructions injected ahead of the caller's messages
when a request enables them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from halogw.llm.schemas import ChatMessage, TextPart


@dataclass(frozen=True)
class GuardrailProfile:
    system_prefix: str
    content_filter_level: Literal["strict", "moderate", "permissive"]
    pii_redaction: bool
    max_output_length: int | None = None
    blocked_topics: tuple[str, ...] = field(default_factory=tuple)


GUARDRAIL_PROFILES: MappingProxyType[str, GuardrailProfile] = MappingProxyType({
    "enterprise-safe": GuardrailProfile(
        system_prefix=(
            "You are a helpful AI assistant. You must not generate:\n"
            "- Harmful, illegal, or inappropriate content\n"
            "- Personal information (PII) unless explicitly requested\n"
            "- Content that violates privacy or security policies\n"
            "- Misleading or false information\n"
            "\n"
            "Always prioritize safety, accuracy, and user privacy."
        ),
        content_filter_level="strict",
        pii_redaction=True,
        max_output_length=10000,
        blocked_topics=("violence", "illegal-activities", "personal-data"),
    ),
    "creative-mode": GuardrailProfile(
        system_prefix="",
        content_filter_level="moderate",
        pii_redaction=False,
    ),
    "academic": GuardrailProfile(
        system_prefix=(
            "You are an academic research assistant. You must:\n"
            "- Cite sources when making factual claims\n"
            "- Distinguish between facts and opinions\n"
            "- Avoid generating copyrighted material\n"
            "- Maintain academic integrity standards"
        ),
        content_filter_level="moderate",
        pii_redaction=True,
    ),
    "customer-support": GuardrailProfile(
        system_prefix=(
            "You are a customer support assistant. You must:\n"
            "- Be polite, professional, and empathetic\n"
            "- Protect customer privacy and data\n"
            "- Escalate sensitive issues appropriately\n"
            "- Provide accurate information about products/services"
        ),
        content_filter_level="strict",
        pii_redaction=True,
    ),
})


def get_guardrail_profile(name: str) -> GuardrailProfile | None:
    return GUARDRAIL_PROFILES.get(name)


def _prefixed(message: ChatMessage, prefix: str) -> ChatMessage:
    content = message.content
    if isinstance(content, list):
        new_content: str | list = [TextPart(text=f"{prefix}\n\n"), *content]
    else:
        new_content = f"{prefix}\n\n{content or ''}"
    return message.model_copy(update={"content": new_content})


def apply_guardrails(messages: list[ChatMessage], profile_name: str | None) -> list[ChatMessage]:
    """Inject the profile's system prefix.

    Returns ``messages`` itself when there is nothing to apply.
    """
    if not profile_name:
        return messages

    profile = get_guardrail_profile(profile_name)
    if profile is None or not profile.system_prefix:
        return messages

    if messages and messages[0].role == "system":
        return [_prefixed(messages[0], profile.system_prefix), *messages[1:]]
    return [ChatMessage(role="system", content=profile.system_prefix), *messages]
