"""Tests for request parsing and wire models."""

import json

import pytest

from halogw.core.errors import GatewayError, InvalidRequestError
from halogw.llm.schemas import (
    ChatRequest,
    ImageGenerationRequest,
    SSEChunk,
    parse_chat_request,
    parse_request_body,
)


def body(**fields) -> str:
    payload = {"messages": [{"role": "user", "content": "Hi"}]}
    payload.update(fields)
    return json.dumps(payload)


class TestParseChatRequest:
    def test_minimal_request(self):
        request = parse_chat_request(body(model="gpt-4o"))
        assert isinstance(request, ChatRequest)
        assert request.model == "gpt-4o"
        assert request.stream is False
        assert request.messages[0].content == "Hi"

    def test_empty_body(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_chat_request(b"  ")
        assert exc_info.value.error_code == "EMPTY_REQUEST_BODY"

    def test_malformed_json(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_chat_request("{not json")
        assert exc_info.value.error_code == "INVALID_JSON"

    def test_violations_are_aggregated(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_chat_request(json.dumps({"messages": [], "temperature": 3}))
        message = exc_info.value.message
        assert message.startswith("Invalid request parameters: ")
        assert "messages:" in message
        assert "temperature:" in message
        assert "; " in message

    def test_bounds(self):
        with pytest.raises(InvalidRequestError, match="top_logprobs"):
            parse_chat_request(body(top_logprobs=21))
        with pytest.raises(InvalidRequestError, match="presence_penalty"):
            parse_chat_request(body(presence_penalty=-2.5))

    def test_reasoning_effort_values(self):
        assert parse_chat_request(body(reasoning_effort="xhigh")).reasoning_effort == "xhigh"
        with pytest.raises(InvalidRequestError):
            parse_chat_request(body(reasoning_effort="extreme"))

    def test_unknown_provider_rejected(self):
        with pytest.raises(InvalidRequestError, match="provider"):
            parse_chat_request(body(provider="bedrock"))

    def test_azure_endpoint_must_be_url(self):
        with pytest.raises(InvalidRequestError, match="azure_endpoint"):
            parse_chat_request(body(azure_endpoint="not-a-url"))

    def test_message_needs_content(self):
        with pytest.raises(InvalidRequestError):
            parse_chat_request(json.dumps({"messages": [{"role": "user"}]}))

    def test_tool_call_message_without_content(self):
        request = parse_chat_request(json.dumps({
            "messages": [
                {"role": "user", "content": "Weather?"},
                {
                    "role": "assistant",
                    "tool_calls": [{
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "get_weather", "arguments": "{}"},
                    }],
                },
                {"role": "tool", "tool_call_id": "call_1", "content": "Sunny"},
            ],
        }))
        assert request.messages[1].tool_calls[0].function.name == "get_weather"

    def test_image_attachment_needs_one_source(self):
        with pytest.raises(InvalidRequestError, match="exactly one"):
            parse_chat_request(json.dumps({
                "messages": [{
                    "role": "user",
                    "content": "Look",
                    "attachments": [{"type": "image", "mime_type": "image/png"}],
                }],
            }))

    def test_has_attachments(self):
        request = parse_chat_request(json.dumps({
            "messages": [{
                "role": "user",
                "attachments": [{"type": "image", "mime_type": "image/png", "url": "https://x.example.com/a.png"}],
            }],
        }))
        assert request.has_attachments is True


class TestImageGenerationRequest:
    def test_defaults(self):
        request = parse_request_body('{"prompt": "a red fox"}', ImageGenerationRequest)
        assert request.model == "dall-e-3"
        assert request.provider == "openai"
        assert request.size == "1024x1024"

    def test_prompt_required(self):
        with pytest.raises(InvalidRequestError, match="prompt"):
            parse_request_body('{"n": 2}', ImageGenerationRequest)


class TestSerialization:
    def test_chunk_omits_none(self):
        chunk = SSEChunk(id="c1", created=1, model="gpt-4o")
        data = json.loads(chunk.model_dump_json(exclude_none=True))
        assert data == {"id": "c1", "object": "chat.completion.chunk", "created": 1, "model": "gpt-4o", "choices": []}

    def test_error_envelope(self):
        error = InvalidRequestError("bad", request_id="req_1")
        envelope = error.to_response()["error"]
        assert envelope["code"] == "INVALID_PARAMETERS"
        assert envelope["status"] == 400
        assert envelope["request_id"] == "req_1"
        assert "timestamp" in envelope
        assert "provider_error" not in envelope

    def test_error_envelope_generates_request_id(self):
        envelope = GatewayError("boom").to_response()["error"]
        assert envelope["status"] == 500
        assert envelope["request_id"].startswith("req_")
