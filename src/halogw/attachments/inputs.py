"""Convert user attachments into multimodal content parts."""

from __future__ import annotations

import base64
import binascii
import logging

from halogw.core.errors import AttachmentError, CapabilityError
from halogw.llm.schemas import Attachment, ChatMessage, ImageUrl, ImageUrlPart, TextPart
from halogw.llm.types import ModelCapabilities

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})
MAX_ATTACHMENT_BYTES = 20 * 1024 * 1024  # 20 MiB


def decoded_size(data: str) -> int:
    """Byte length of a base64 payload. Raises AttachmentError if malformed."""
    try:
        return len(base64.b64decode(data, validate=True))
    except (binascii.Error, ValueError) as e:
        raise AttachmentError("Attachment data is not valid base64") from e


def validate_attachment(attachment: Attachment) -> None:
    """Reject unsupported MIME types and payloads above MAX_ATTACHMENT_BYTES."""
    if attachment.type == "image" and attachment.mime_type.lower() not in ALLOWED_IMAGE_MIME_TYPES:
        raise AttachmentError(f"Unsupported image MIME type: {attachment.mime_type}")

    if attachment.size_bytes is not None and attachment.size_bytes > MAX_ATTACHMENT_BYTES:
        raise AttachmentError(
            f"Attachment size exceeds maximum of {MAX_ATTACHMENT_BYTES} bytes",
            error_code="ATTACHMENT_TOO_LARGE",
        )

    if attachment.data is not None and decoded_size(attachment.data) > MAX_ATTACHMENT_BYTES:
        raise AttachmentError(
            f"Base64 attachment data exceeds maximum of {MAX_ATTACHMENT_BYTES} bytes",
            error_code="ATTACHMENT_TOO_LARGE",
        )


def attachment_url(attachment: Attachment) -> str | None:
    """Literal URL if present, else a base64 data URI."""
    if attachment.url:
        return attachment.url
    if attachment.data:
        return f"data:{attachment.mime_type};base64,{attachment.data}"
    return None


def image_part(attachment: Attachment) -> ImageUrlPart | None:
    url = attachment_url(attachment)
    if url is None:
        return None
    return ImageUrlPart(image_url=ImageUrl(url=url, detail="auto"))


def _convert_message(msg: ChatMessage, capabilities: ModelCapabilities) -> ChatMessage:
    attachments = msg.attachments or []

    if not capabilities.vision and any(a.type == "image" for a in attachments):
        raise CapabilityError("Model does not support vision/attachments")

    parts: list[TextPart | ImageUrlPart] = []
    if isinstance(msg.content, str):
        if msg.content.strip():
            parts.append(TextPart(text=msg.content))
    elif msg.content:
        parts.extend(msg.content)

    for attachment in attachments:
        if attachment.type == "file":
            raise AttachmentError(
                "File attachments are not yet supported",
                error_code="UNSUPPORTED_ATTACHMENT_TYPE",
            )
        validate_attachment(attachment)
        part = image_part(attachment)
        if part is not None:
            parts.append(part)

    return msg.model_copy(update={"content": parts or msg.content, "attachments": None})


def normalize_attachments(
    messages: list[ChatMessage],
    capabilities: ModelCapabilities,
) -> list[ChatMessage]:
    """Replace each message's ``attachments`` with content parts.

    Messages without attachments are passed through as the same objects.
    """
    result = []
    converted = 0
    for msg in messages:
        if not msg.attachments:
            result.append(msg)
            continue
        result.append(_convert_message(msg, capabilities))
        converted += 1

    if converted:
        logger.debug("Normalized attachments on %d message(s)", converted)
    return result
